import asyncio
from collections.abc import Iterable
from swipeleft.logging import get_logger
from swipeleft.sources.base import ImageLoader

_logger = get_logger(__name__)


class Prefetcher:
    """Background loads for pooled items, one task per id.

    A second request for an id attaches to the task already running for it.
    Awaiters are shielded from each other: cancelling one `get` does not cancel
    the shared load. Failed loads are dropped so a later request starts fresh.
    """

    def __init__(self, loader: ImageLoader):
        self._loader = loader
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def pending(self) -> list[str]:
        return [item_id for item_id, task in self._tasks.items() if not task.done()]

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._tasks

    def request(self, item_id: str) -> asyncio.Task:
        task = self._tasks.get(item_id)
        if task is None or task.cancelled():
            task = asyncio.create_task(self._loader.load(item_id), name=f"prefetch:{item_id}")
            task.add_done_callback(lambda t, item_id=item_id: self._on_done(item_id, t))
            self._tasks[item_id] = task
        return task

    def request_many(self, item_ids: Iterable[str]) -> None:
        for item_id in item_ids:
            self.request(item_id)

    async def get(self, item_id: str) -> bytes:
        return await asyncio.shield(self.request(item_id))

    def retain(self, item_ids: Iterable[str]) -> None:
        keep = set(item_ids)
        for item_id in [i for i in self._tasks if i not in keep]:
            self.cancel(item_id)

    def cancel(self, item_id: str) -> bool:
        task = self._tasks.pop(item_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_done(self, item_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        _logger.warning("Prefetch failed for %s: %s", item_id, exc)
        if self._tasks.get(item_id) is task:
            del self._tasks[item_id]
