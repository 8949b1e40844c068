"""
Folder watcher for the Folder Watch domain.

Monitors one directory for new files and hands each newly-eligible file to the
conversion orchestrator exactly once per watch target.
Uses watchdog library for cross-platform file system event monitoring.
"""

import threading
from pathlib import Path
from typing import Callable, List, Optional, Set

from loguru import logger
from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from app.utils.errors import AccessDeniedError
from app.utils.helpers import format_bytes, is_hidden, normalise_path
from domains.conversion.orchestrator import ConversionOrchestrator
from domains.folder_watch.access import AccessController


SCAN_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED, EVENT_TYPE_CLOSED}


class ProcessedSet:
    """Paths already submitted for the current watch target."""

    def __init__(self):
        self._lock = threading.Lock()
        self._paths: Set[str] = set()

    def add_if_absent(self, path: Path) -> bool:
        """Insert ``path``; False when it was already present."""
        key = str(path)
        with self._lock:
            if key in self._paths:
                return False
            self._paths.add(key)
            return True

    def add(self, path: Path) -> None:
        with self._lock:
            self._paths.add(str(path))

    def discard(self, path: Path) -> None:
        with self._lock:
            self._paths.discard(str(path))

    def __contains__(self, path) -> bool:
        with self._lock:
            return str(path) in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


class FolderEventHandler(FileSystemEventHandler):
    """Watchdog handler that rescans the folder on relevant events."""

    def __init__(self, on_change: Callable[[], None]):
        """
        Initialize event handler.

        Args:
            on_change: Scan routine run on the observer thread
        """
        super().__init__()
        self.on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in SCAN_EVENTS:
            return

        # Directory modifications mirror the file events that caused them
        if event.is_directory and event.event_type == EVENT_TYPE_MODIFIED:
            return

        logger.debug(f"Folder event: {event.event_type} {event.src_path}")
        self.on_change()


class FolderWatcher:
    """Watches one folder and submits new files for conversion."""

    def __init__(
        self,
        folder,
        access: AccessController,
        orchestrator: ConversionOrchestrator,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """
        Initialize folder watcher.

        Args:
            folder: Directory to watch (the watch target)
            access: Access controller guarding folder reads
            orchestrator: Receives batches of new files
            observer_factory: Builds the watchdog observer
        """
        self.folder = normalise_path(folder)
        self.access = access
        self.orchestrator = orchestrator
        self.observer_factory = observer_factory
        self.processed = ProcessedSet()

        self._state_lock = threading.Lock()
        self._scan_lock = threading.Lock()
        self._observer: Optional[Observer] = None
        self._capability = None
        self._handler = FolderEventHandler(self._handle_change)

    @property
    def is_watching(self) -> bool:
        with self._state_lock:
            return self._observer is not None

    def start(self) -> bool:
        """
        Start watching the folder and scan once immediately.

        Returns:
            True when watching, False when access was denied
        """
        with self._state_lock:
            if self._observer is not None:
                return True

            capability = self.access.resolve_access(self.folder)
            if capability is None or not self.access.begin_use(capability):
                logger.error(f"No permission to access folder: {self.folder}")
                return False

            observer = self.observer_factory()
            try:
                observer.schedule(self._handler, str(self.folder), recursive=False)
                observer.daemon = True
                observer.start()
            except Exception as e:
                logger.error(f"Failed to watch {self.folder}: {e}")
                self.access.end_use(capability)
                return False

            self._observer = observer
            self._capability = capability

        logger.success(f"Started watching: {self.folder}")
        self.scan()
        return True

    def stop(self) -> None:
        """Stop watching; in-flight conversions keep running."""
        with self._state_lock:
            observer, self._observer = self._observer, None
            capability, self._capability = self._capability, None

        if observer is None:
            return

        observer.stop()
        if threading.current_thread() is not observer:
            observer.join()

        if capability is not None:
            self.access.end_use(capability)

        logger.info(f"Stopped watching: {self.folder}")

    def scan(self) -> Optional[str]:
        """
        Submit every new, non-empty file in the folder.

        Returns:
            Batch id, or None when nothing was submitted
        """
        with self._scan_lock:
            if not self.is_watching:
                logger.debug("Ignoring scan request, watcher is stopped")
                return None

            try:
                with self.access.scoped(self.folder):
                    new_files = self._collect(forced=False)
            except AccessDeniedError as e:
                logger.warning(f"Scan skipped: {e}")
                return None
            except OSError as e:
                logger.error(f"Error listing {self.folder}: {e}")
                return None

            if not self.is_watching:
                logger.debug("Watcher stopped during scan, dropping batch")
                for path in new_files:
                    self.processed.discard(path)
                return None

            if not new_files:
                logger.debug("No new files to convert")
                return None

            logger.info(f"Auto-converting {len(new_files)} new file(s)")
            return self.orchestrator.submit_batch(new_files)

    def force_convert(self) -> Optional[str]:
        """
        Resubmit every eligible file regardless of earlier processing.

        Returns:
            Batch id, or None when access was denied or nothing was found
        """
        logger.info(f"Force converting all files in: {self.folder}")

        with self._scan_lock:
            try:
                with self.access.scoped(self.folder):
                    files = self._collect(forced=True)
            except AccessDeniedError as e:
                logger.error(f"Force conversion skipped: {e}")
                return None
            except OSError as e:
                logger.error(f"Error listing {self.folder}: {e}")
                return None

            if not files:
                logger.info("No files to force convert")
                return None

            return self.orchestrator.submit_batch(files, forced=True)

    # Helpers -------------------------------------------------------------------------

    def _handle_change(self) -> None:
        try:
            self.scan()
        except Exception as e:
            logger.error(f"Scan after folder event failed: {e}")

    def _collect(self, forced: bool) -> List[Path]:
        files: List[Path] = []

        for path in sorted(self.folder.iterdir()):
            if is_hidden(path) or path.is_dir():
                continue

            if not forced and path in self.processed:
                continue

            try:
                size = path.stat().st_size
            except FileNotFoundError:
                # Removed between listing and stat
                continue
            except OSError as e:
                logger.warning(f"Skipping unreadable entry {path.name}: {e}")
                continue

            if size == 0:
                logger.debug(f"File has no content yet: {path.name}")
                continue

            if self.orchestrator.is_pending_output(path):
                logger.debug(f"File is still being written by a conversion: {path.name}")
                continue

            if forced:
                self.processed.add(path)
                files.append(path)
            elif self.processed.add_if_absent(path):
                files.append(path)
            else:
                continue

            logger.debug(f"Queued {path.name} ({format_bytes(size)})")

        return files
