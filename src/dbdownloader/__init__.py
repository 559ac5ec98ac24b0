"""
dbdownloader - Import remote MySQL snapshots into a local development database
"""

__version__ = "0.1.0"

from .core import DatabaseDownloader
from .errors import DownloaderError
from .events import DatabaseImported, EventDispatcher

__all__ = ["DatabaseDownloader", "DatabaseImported", "DownloaderError", "EventDispatcher"]
