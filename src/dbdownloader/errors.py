"""Domain errors for dbdownloader."""

from typing import Optional


class DownloaderError(RuntimeError):
    """Raised when the import cannot continue safely."""


class EnvironmentBlocked(DownloaderError):
    """Raised when the current environment forbids running the import."""


class InvalidInput(DownloaderError):
    """Raised for malformed names, paths, sources or remote filenames."""


class ConfigurationError(DownloaderError):
    """Raised when server or credential configuration is missing."""


class NotFound(DownloaderError):
    """Raised when no importable file or table section could be located."""


class CommandFailed(DownloaderError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, message: str, exit_code: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output
