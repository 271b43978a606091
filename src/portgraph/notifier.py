from __future__ import annotations
from collections import defaultdict
from typing import Any, Callable, Dict, List

Handler = Callable[..., Any]

class Notifier:
    """Named-event publish/subscribe.

    Handlers run synchronously in registration order. Errors raised by a
    handler propagate to whoever emitted the event.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> Handler:
        if not callable(handler):
            raise TypeError("handler must be callable")
        self._handlers[event].append(handler)
        return handler

    def unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[event]

    def handlers(self, event: str) -> List[Handler]:
        return list(self._handlers.get(event, ()))

    def emit(self, event: str, *args: Any) -> None:
        # snapshot so handlers may (un)subscribe while being called
        for handler in list(self._handlers.get(event, ())):
            handler(*args)
