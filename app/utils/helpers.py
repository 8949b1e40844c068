"""
Helper utilities for AutoConvert.

Common functions used across domains.
"""

from pathlib import Path


def get_file_extension(path: Path) -> str:
    """Get lower-cased file extension without dot."""
    return path.suffix.lstrip('.').lower()


def normalise_path(path) -> Path:
    """Return a resolved version of ``path`` without forcing existence."""

    path = Path(path)
    try:
        return path.expanduser().resolve()
    except FileNotFoundError:
        return path.expanduser().absolute()


def is_hidden(path: Path) -> bool:
    """Check if path is hidden (starts with dot)."""
    return path.name.startswith('.')


def format_bytes(bytes_count: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024.0:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024.0
    return f"{bytes_count:.1f} PB"
