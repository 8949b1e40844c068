import threading
from pathlib import Path

import pytest

from app.models.schemas import ConversionTemplate
from app.utils.state_store import StateStore
from domains.conversion.orchestrator import ConversionOrchestrator
from domains.conversion.templates import TemplateRegistry
from domains.folder_watch.access import AccessController


COPY_TEMPLATES = [
    ConversionTemplate(input_extension="mov", output_extension="mp4",
                       command="cp $input $output", delete_original=True),
    ConversionTemplate(input_extension="mp4", output_extension="mp4",
                       command="cp $input $output", delete_original=False),
    ConversionTemplate(input_extension="bad", output_extension="out",
                       command="echo broken >&2; exit 3", delete_original=True),
]


class Recorder:
    """Collects progress callbacks and signals when batches finish."""

    def __init__(self):
        self.lock = threading.Lock()
        self.progress = []
        self.completed = []
        self.finished = threading.Event()

    def on_progress(self, snapshot):
        with self.lock:
            self.progress.append(snapshot)
        if not snapshot.is_converting:
            self.finished.set()

    def on_batch_complete(self, snapshot):
        with self.lock:
            self.completed.append(snapshot)


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    folder = tmp_path / "watch"
    folder.mkdir()
    return folder.resolve()


@pytest.fixture
def store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "state" / "state.json")


@pytest.fixture
def access(store: StateStore, watch_dir: Path) -> AccessController:
    controller = AccessController(store)
    assert controller.request_access(watch_dir) is not None
    return controller


@pytest.fixture
def registry() -> TemplateRegistry:
    registry = TemplateRegistry()
    registry.templates = list(COPY_TEMPLATES)
    return registry


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def orchestrator(registry, access, recorder):
    orchestrator = ConversionOrchestrator(
        registry=registry,
        access=access,
        max_workers=2,
        on_progress=recorder.on_progress,
        on_batch_complete=recorder.on_batch_complete,
    )
    yield orchestrator
    orchestrator.shutdown(wait=True)
