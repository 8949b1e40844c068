"""
AutoConvert service.

Wires the template registry, access controller, orchestrator and folder
watcher together and exposes the enable/disable/select-folder/force-convert
operations used by the API and the headless runner.
"""

import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from app.models.schemas import BatchProgress, ServiceStatus
from app.utils.config import Settings
from app.utils.state_store import StateStore
from domains.conversion.orchestrator import ConversionOrchestrator
from domains.conversion.templates import TemplateRegistry
from domains.conversion.tools import ToolLocator
from domains.folder_watch.access import AccessController, GrantCallback
from domains.folder_watch.watcher import FolderWatcher


class ConvertService:
    """Owns the single active watch target and its components."""

    def __init__(
        self,
        store: StateStore,
        registry: TemplateRegistry,
        access: AccessController,
        orchestrator: ConversionOrchestrator,
        default_folder: Optional[Path] = None,
        default_enabled: bool = False,
    ):
        self.store = store
        self.registry = registry
        self.access = access
        self.orchestrator = orchestrator
        self.default_folder = default_folder
        self.default_enabled = default_enabled
        self.watcher: Optional[FolderWatcher] = None
        self._lock = threading.RLock()

    @property
    def enabled(self) -> bool:
        return self.store.enabled

    def restore(self) -> None:
        """Restore the persisted enabled flag and watch folder."""
        if self.store.get(StateStore.ENABLED) is None:
            self.store.enabled = self.default_enabled

        folder = self.store.watch_folder_path
        if folder is None and self.default_folder is not None:
            logger.info(f"No saved watch folder, using configured folder {self.default_folder}")
            self.select_folder(self.default_folder)
            return

        if folder is None:
            logger.info("No watch folder configured")
            return

        if self.access.resolve_access(folder) is None:
            # Capability lost or folder gone; ask again
            if self.access.request_access(folder) is None:
                logger.warning(f"Saved watch folder is no longer accessible: {folder}")
                return

        with self._lock:
            self._replace_watcher(Path(folder))

    def select_folder(self, path, grant: Optional[GrantCallback] = None) -> bool:
        """
        Request access to a folder and make it the watch target.

        Returns:
            True when access was granted
        """
        capability = self.access.request_access(path, grant)
        if capability is None:
            return False

        with self._lock:
            self.store.watch_folder_path = capability.path
            self._replace_watcher(Path(capability.path))
        return True

    def enable(self) -> bool:
        """Turn auto-conversion on; returns whether the folder is watched."""
        with self._lock:
            self.store.enabled = True
            if self.watcher is None:
                logger.warning("Auto-convert enabled but no watch folder selected")
                return False
            return self.watcher.start()

    def disable(self) -> None:
        with self._lock:
            self.store.enabled = False
            if self.watcher is not None:
                self.watcher.stop()

    def toggle(self) -> bool:
        """Flip the enabled flag; returns the new value."""
        with self._lock:
            if self.enabled:
                self.disable()
                return False
            self.enable()
            return True

    def force_convert(self) -> Optional[str]:
        """Force-convert the watch folder; None when no folder is selected."""
        with self._lock:
            watcher = self.watcher

        if watcher is None:
            logger.warning("Force convert requested but no watch folder selected")
            return None
        return watcher.force_convert()

    def status(self) -> ServiceStatus:
        with self._lock:
            watcher = self.watcher

        return ServiceStatus(
            enabled=self.enabled,
            watching=watcher.is_watching if watcher else False,
            folder=str(watcher.folder) if watcher else None,
            processed_files=len(watcher.processed) if watcher else 0,
            batches=self.orchestrator.active_batches(),
            last_completed=self.orchestrator.tracker.last_completed,
        )

    def shutdown(self) -> None:
        """Stop watching and wait for running conversions."""
        with self._lock:
            if self.watcher is not None:
                self.watcher.stop()
        self.orchestrator.shutdown(wait=True)

    def _replace_watcher(self, folder: Path) -> None:
        if self.watcher is not None:
            self.watcher.stop()

        self.watcher = FolderWatcher(folder, self.access, self.orchestrator)
        logger.info(f"Watch folder set to {self.watcher.folder}")

        if self.enabled:
            self.watcher.start()


def notify_batch_complete(progress: BatchProgress) -> None:
    """Default batch completion sink."""
    logger.success(
        f"Batch complete: {progress.conversions} of {progress.total_files} file(s) converted"
    )


def build_service(settings: Settings) -> ConvertService:
    """Build a service from configuration."""
    store = StateStore(settings.get_state_file())

    registry = TemplateRegistry(settings.templates_file)
    registry.load()

    tool_paths = ToolLocator(settings.get_tool_search_paths(), store).locate(
        settings.get_known_tools()
    )

    access = AccessController(store)
    orchestrator = ConversionOrchestrator(
        registry=registry,
        access=access,
        settings_provider=store.get_conversion_settings,
        tool_paths=tool_paths,
        max_workers=settings.max_workers,
        on_batch_complete=notify_batch_complete,
    )

    return ConvertService(
        store=store,
        registry=registry,
        access=access,
        orchestrator=orchestrator,
        default_folder=settings.watch_folder,
        default_enabled=settings.start_enabled,
    )
