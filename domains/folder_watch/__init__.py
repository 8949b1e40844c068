"""
Folder Watch Domain

Observes one directory and feeds newly-eligible files to the conversion
orchestrator:
- Access controller guards every read of the watched folder
- Watcher subscribes to change notifications and scans on each one
"""

__all__ = ["access", "watcher"]
