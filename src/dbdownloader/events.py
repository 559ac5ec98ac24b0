"""Post-import notifications for dbdownloader."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

logger = logging.getLogger("dbdownloader")


@dataclass(frozen=True)
class DatabaseImported:
    """Fired once the SQL file has been imported successfully."""

    files_imported: bool = False
    tenant: Optional[str] = None


Listener = Callable[[object], None]


class EventDispatcher:
    """Synchronous, fire-and-forget dispatcher.

    A failing listener is logged and skipped; it never changes the outcome of
    the import that triggered the event.
    """

    def __init__(self):
        self._listeners: Dict[Type, List[Listener]] = {}

    def listen(self, event_type: Type, listener: Listener):
        self._listeners.setdefault(event_type, []).append(listener)

    def listeners_for(self, event_type: Type) -> List[Listener]:
        return list(self._listeners.get(event_type, []))

    def dispatch(self, event) -> int:
        failures = 0
        for listener in self.listeners_for(type(event)):
            try:
                listener(event)
            except Exception:
                failures += 1
                logger.exception(
                    "Listener %s failed while handling %s",
                    getattr(listener, "__name__", type(listener).__name__),
                    type(event).__name__,
                )
        return failures
