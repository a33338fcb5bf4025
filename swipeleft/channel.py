import asyncio
from collections import defaultdict
from collections.abc import Callable, Coroutine
from typing import Any, TypeAlias, TypeVar

from swipeleft.logging import get_logger

T = TypeVar("T")

Handler: TypeAlias = Callable[[T], Coroutine[Any, Any, None]]

_logger = get_logger(__name__)


class Channel:
    """In-process notification bus for engine and sync events.

    Handlers subscribe to an event class and also receive its subclasses, so a
    handler on `Event` sees everything. Each delivery runs as its own task;
    `drain()` waits for the ones still running. A failing handler is logged and
    does not affect the publisher or the other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def subscribe(self, event_type: type[T], handler: Handler[T]) -> Callable[[], None]:
        self._handlers[event_type].append(handler)
        return lambda: self.unsubscribe(event_type, handler)

    def unsubscribe(self, event_type: type[T], handler: Handler[T]) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event_type: type) -> list[Handler]:
        found: list[Handler] = []
        for cls in event_type.__mro__:
            for handler in self._handlers.get(cls, []):
                if handler not in found:
                    found.append(handler)
        return found

    def publish(self, event: object) -> int:
        handlers = self.handlers_for(type(event))
        for handler in handlers:
            task = asyncio.create_task(self._deliver(handler, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return len(handlers)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _deliver(self, handler: Handler, event: object) -> None:
        try:
            await handler(event)
        except Exception:
            _logger.exception(
                "Handler %s failed on %s",
                getattr(handler, "__qualname__", handler),
                type(event).__name__,
            )
