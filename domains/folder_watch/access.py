"""
Scoped folder access for the watch folder.

Mints, persists and renews an access capability for the watched directory and
brackets every filesystem operation in a begin/end access window. A missing
or unrenewable capability is reported as "no access", never raised past the
caller that asked for it.
"""

import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

from loguru import logger
from pydantic import ValidationError

from app.models.schemas import AccessCapability
from app.utils.errors import AccessDeniedError
from app.utils.helpers import normalise_path
from app.utils.state_store import StateStore


GrantCallback = Callable[[Path], Optional[Path]]


def is_readable_dir(path: Path) -> bool:
    """Check that ``path`` is a directory we can list."""
    return path.is_dir() and os.access(path, os.R_OK | os.X_OK)


def default_grant(path: Path) -> Optional[Path]:
    """Grant step used when no interactive picker is wired in."""
    return path if is_readable_dir(path) else None


class AccessController:
    """Owns the folder access capability and its access windows."""

    def __init__(self, store: StateStore, grant: Optional[GrantCallback] = None):
        """
        Initialize access controller.

        Args:
            store: State store persisting the capability
            grant: Out-of-band grant step (directory picker); receives the
                requested path and returns the granted path or None
        """
        self.store = store
        self.grant = grant or default_grant
        self._lock = threading.Lock()
        self._capability: Optional[AccessCapability] = None
        self._windows: Dict[str, int] = {}

    def request_access(
        self, path, grant: Optional[GrantCallback] = None
    ) -> Optional[AccessCapability]:
        """
        Run the grant step and mint a capability for the granted folder.

        Returns:
            New capability, or None when access was denied
        """
        requested = normalise_path(path)
        granted = (grant or self.grant)(requested)

        if granted is None:
            logger.warning(f"Folder access denied: {requested}")
            return None

        capability = self._mint(normalise_path(granted))
        if capability is None:
            logger.warning(f"Granted path is not a readable folder: {granted}")
            return None

        self._persist(capability)
        logger.success(f"Folder access granted: {capability.path}")
        return capability

    def resolve_access(self, path) -> Optional[AccessCapability]:
        """
        Return a usable capability for ``path``.

        A stale capability is regenerated and re-persisted when the folder is
        still readable.
        """
        path = normalise_path(path)

        with self._lock:
            capability = self._capability or self._load()

        if capability is None or capability.path != str(path):
            logger.debug(f"No capability issued for {path}")
            return None

        if self._is_stale(capability):
            renewed = self._mint(path)
            if renewed is None:
                logger.warning(f"Capability for {path} is stale and cannot be renewed")
                return None
            logger.info(f"Renewed stale capability for {path}")
            self._persist(renewed)
            return renewed

        if not is_readable_dir(path):
            logger.warning(f"Folder is no longer readable: {path}")
            return None

        return capability

    def begin_use(self, capability: AccessCapability) -> bool:
        """Open an access window; False when the folder is not readable."""
        if not is_readable_dir(Path(capability.path)):
            logger.warning(f"Cannot open access window for {capability.path}")
            return False

        with self._lock:
            self._windows[capability.path] = self._windows.get(capability.path, 0) + 1
        return True

    def end_use(self, capability: AccessCapability) -> None:
        """Close an access window opened with begin_use."""
        with self._lock:
            count = self._windows.get(capability.path, 0)
            if count <= 0:
                logger.warning(f"Unbalanced end_use for {capability.path}")
                return
            if count == 1:
                del self._windows[capability.path]
            else:
                self._windows[capability.path] = count - 1

    def open_windows(self, path) -> int:
        with self._lock:
            return self._windows.get(str(normalise_path(path)), 0)

    @contextmanager
    def scoped(self, path) -> Iterator[AccessCapability]:
        """
        Resolve access for ``path`` and hold a window for the block.

        Raises:
            AccessDeniedError: No usable capability or the folder is unreadable
        """
        capability = self.resolve_access(path)
        if capability is None:
            raise AccessDeniedError(path)

        with self.hold(capability):
            yield capability

    @contextmanager
    def hold(self, capability: AccessCapability) -> Iterator[AccessCapability]:
        """
        Hold a window on an already resolved capability.

        The capability stays usable after a newer one is issued for another
        folder, so work queued against the old folder can still finish.

        Raises:
            AccessDeniedError: The capability's folder is unreadable
        """
        if not self.begin_use(capability):
            raise AccessDeniedError(capability.path)

        try:
            yield capability
        finally:
            self.end_use(capability)

    # Helpers -------------------------------------------------------------------------

    def _mint(self, path: Path) -> Optional[AccessCapability]:
        if not is_readable_dir(path):
            return None

        stats = path.stat()
        return AccessCapability(
            path=str(path),
            device=stats.st_dev,
            inode=stats.st_ino,
            issued_at=datetime.now(timezone.utc),
        )

    def _is_stale(self, capability: AccessCapability) -> bool:
        try:
            stats = Path(capability.path).stat()
        except OSError:
            return True
        return (stats.st_dev, stats.st_ino) != (capability.device, capability.inode)

    def _persist(self, capability: AccessCapability) -> None:
        with self._lock:
            self._capability = capability
        self.store.save_folder_bookmark(capability.model_dump_json())

    def _load(self) -> Optional[AccessCapability]:
        raw = self.store.get_folder_bookmark()
        if not raw:
            return None

        try:
            self._capability = AccessCapability.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable folder bookmark: {e}")
            return None
        return self._capability
