"""Change notifications for session storage observers."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


class Signal:
    """A minimal synchronous callback list."""

    def __init__(self) -> None:
        self._handlers: list[Callable[..., Any]] = []

    def connect(self, handler: Callable[..., Any]) -> Callable[..., Any]:
        self._handlers.append(handler)
        return handler

    def disconnect(self, handler: Callable[..., Any]) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, *args: Any) -> None:
        for handler in list(self._handlers):
            handler(*args)


@dataclass
class SessionEvents:
    """Notifications raised by the store and catalog.

    - ``list_changed()`` after the catalog is rebuilt
    - ``session_loaded(session_id, success)``
    - ``session_saved(session_id, success)``
    """

    list_changed: Signal = field(default_factory=Signal)
    session_loaded: Signal = field(default_factory=Signal)
    session_saved: Signal = field(default_factory=Signal)
