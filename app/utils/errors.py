"""
Conversion pipeline error hierarchy.

All errors are non-fatal to the application. They indicate that one file or
one watch did not proceed while the rest of the service keeps running.
"""


class ConvertError(Exception):
    """Base exception for watch-and-convert failures."""

    pass


class AccessDeniedError(ConvertError):
    """No valid access capability exists for the requested directory."""

    def __init__(self, path):
        super().__init__(f"No access to folder: {path}")
        self.path = path


class TemplateNotFoundError(ConvertError):
    """No conversion template matches the file extension."""

    def __init__(self, extension: str):
        super().__init__(f"No conversion template for extension: {extension!r}")
        self.extension = extension


class OutputExistsError(ConvertError):
    """Computed output path already exists and the run is not forced."""

    def __init__(self, path):
        super().__init__(f"Output file already exists: {path}")
        self.path = path


class ProcessFailedError(ConvertError):
    """External tool could not be spawned or exited with a non-zero status."""

    def __init__(self, command: str, returncode, output: str = ""):
        detail = "spawn failed" if returncode is None else f"exit status {returncode}"
        super().__init__(f"Command failed ({detail}): {command}")
        self.command = command
        self.returncode = returncode
        self.output = output
