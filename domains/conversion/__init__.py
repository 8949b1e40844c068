"""
Conversion Domain

Turns newly-arrived media files into converted outputs:
- Templates map an input extension to an output extension and command line
- Commands are built from templates and live conversion settings
- The orchestrator runs external tools on a worker pool and tracks batch progress
"""

__all__ = ["templates", "tools", "commands", "progress", "orchestrator"]
