"""
Handler registry - ordered handlers per event kind, plus plugins.

Populated once at process start by the extension script; the dispatcher
only reads it.
"""
from collections import defaultdict

from hookkit.events import EventKind, kind_name
from hookkit.sdk import Handler


class HandlerRegistry:
    """Event kind -> handlers, in registration order."""

    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._plugins: list = []

    def register(self, kind: EventKind | str, handler: Handler) -> None:
        if not callable(handler):
            raise TypeError(f"Handler for {kind_name(kind)} must be callable")
        name = kind_name(kind)
        if not name:
            raise ValueError("Event kind must be non-empty")
        self._handlers[name].append(handler)

    def add_plugin(self, plugin) -> None:
        self._plugins.append(plugin)

    def handlers_for(self, kind: EventKind | str) -> list[Handler]:
        """Copy of the handler list for ``kind`` (empty if none registered)."""
        return list(self._handlers.get(kind_name(kind), ()))

    @property
    def plugins(self) -> list:
        return list(self._plugins)

