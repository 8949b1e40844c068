"""
External tool discovery.

Resolves bare tool names used in command templates (ffmpeg, cwebp, magick)
to absolute install paths and records which tools exist.
"""

import os
import shutil
from pathlib import Path
from typing import Dict, Iterable, Optional

from loguru import logger

from app.utils.state_store import StateStore


class ToolLocator:
    """Finds external conversion tools on disk."""

    def __init__(self, search_paths: Iterable[Path], store: Optional[StateStore] = None):
        """
        Initialize tool locator.

        Args:
            search_paths: Directories checked before falling back to PATH
            store: Optional state store receiving per-tool exists flags
        """
        self.search_paths = [Path(p) for p in search_paths]
        self.store = store

    def find(self, name: str) -> Optional[str]:
        """
        Resolve one tool to an absolute path.

        Args:
            name: Bare executable name

        Returns:
            Absolute path with symlinks resolved, or None
        """
        for directory in self.search_paths:
            candidate = directory / name
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return os.path.realpath(candidate)

        found = shutil.which(name)
        if found:
            return os.path.realpath(found)
        return None

    def locate(self, names: Iterable[str]) -> Dict[str, str]:
        """
        Resolve every tool in ``names``.

        Returns:
            Mapping of tool name to absolute path for the tools found
        """
        paths: Dict[str, str] = {}

        for name in names:
            path = self.find(name)
            if path:
                paths[name] = path
                logger.info(f"Found {name}: {path}")
            else:
                logger.warning(f"{name} not found; templates using it will fail")

            if self.store is not None:
                self.store.set_tool_exists(name, path is not None)

        return paths
