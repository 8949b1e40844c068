from app.service import ConvertService, build_service
from app.utils.config import Settings
from app.utils.state_store import StateStore
from domains.conversion.orchestrator import ConversionOrchestrator
from domains.folder_watch.access import AccessController


def _service(store, registry, default_folder=None, grant=None):
    access = AccessController(store, grant=grant)
    orchestrator = ConversionOrchestrator(registry, access)
    return ConvertService(store, registry, access, orchestrator, default_folder=default_folder)


def test_select_folder_and_enable(store, registry, watch_dir):
    service = _service(store, registry)
    try:
        assert service.select_folder(watch_dir)
        assert store.watch_folder_path == str(watch_dir)
        assert not service.status().watching

        assert service.enable()
        status = service.status()
        assert status.enabled and status.watching
        assert status.folder == str(watch_dir)

        service.disable()
        assert not service.status().watching
        assert store.enabled is False
    finally:
        service.shutdown()


def test_denied_folder_keeps_previous_target(store, registry, watch_dir, tmp_path):
    service = _service(store, registry)
    try:
        service.select_folder(watch_dir)

        assert not service.select_folder(tmp_path / "other", grant=lambda _p: None)
        assert service.status().folder == str(watch_dir)
    finally:
        service.shutdown()


def test_replacing_folder_resets_processed_files(store, registry, watch_dir, tmp_path):
    (watch_dir / "a.txt").write_bytes(b"1")
    other = tmp_path / "other"
    other.mkdir()
    service = _service(store, registry)
    try:
        service.select_folder(watch_dir)
        service.enable()
        assert service.status().processed_files == 1

        service.select_folder(other)
        status = service.status()
        assert status.folder == str(other.resolve())
        assert status.processed_files == 0
        assert status.watching
    finally:
        service.shutdown()


def test_restore_resumes_watching(store, registry, watch_dir):
    first = _service(store, registry)
    first.select_folder(watch_dir)
    first.enable()
    first.shutdown()

    restored = _service(StateStore(store.path), registry)
    try:
        restored.restore()
        status = restored.status()
        assert status.enabled and status.watching
        assert status.folder == str(watch_dir)
    finally:
        restored.shutdown()


def test_restore_uses_configured_folder(store, registry, watch_dir):
    service = _service(store, registry, default_folder=watch_dir)
    try:
        service.restore()
        assert store.watch_folder_path == str(watch_dir)
        assert not service.status().watching
    finally:
        service.shutdown()


def test_force_convert_without_folder(store, registry):
    service = _service(store, registry)
    try:
        assert service.force_convert() is None
    finally:
        service.shutdown()


def test_toggle_flips_enabled(store, registry, watch_dir):
    service = _service(store, registry)
    try:
        service.select_folder(watch_dir)
        assert service.toggle() is True
        assert service.status().watching
        assert service.toggle() is False
        assert not service.status().watching
    finally:
        service.shutdown()


def test_build_service_from_settings(tmp_path, watch_dir):
    settings = Settings(
        state_file=tmp_path / "state" / "state.json",
        templates_file=tmp_path / "missing.json",
        tool_search_paths=str(tmp_path / "bin"),
        known_tools="definitely-not-a-real-tool",
        watch_folder=watch_dir,
    )

    service = build_service(settings)
    try:
        service.restore()
        assert len(service.registry.templates) == 6
        assert service.store.tool_exists("definitely-not-a-real-tool") is False
        assert service.status().folder == str(watch_dir)
    finally:
        service.shutdown()
