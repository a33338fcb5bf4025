from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from swipeleft.constants import COLLECTION_KEY_PREFIX
from swipeleft.models import PRIVATE_COLLECTION, Collection, Item, Status, utcnow
from swipeleft.repository.locks import KeyedLock


class StatusRepository(ABC):
    """Per-item status and collection membership.

    Writes for one item id (and for one collection) are serialized; writes for
    different ids may interleave freely.
    """

    def __init__(self) -> None:
        self._locks = KeyedLock()

    # --- Lookups ---

    @abstractmethod
    async def get_item(self, item_id: str) -> Item | None: ...

    async def get_status(self, item_id: str) -> Status:
        item = await self.get_item(item_id)
        return item.status if item else Status.UNPROCESSED

    @abstractmethod
    async def list_by_status(self, status: Status, candidates: Iterable[str] | None = None) -> list[Item]: ...

    @abstractmethod
    async def get_collection(self, name: str) -> Collection: ...

    async def list_public_feed(self) -> list[Item]:
        return await self.list_by_status(Status.UPLOADED)

    # --- Writes ---

    async def set_status(self, item_id: str, status: Status, at: datetime | None = None) -> Item:
        async with self._locks.hold(item_id):
            return await self._write_status(item_id, Status(status), at or utcnow())

    async def add_to_collection(self, name: str, item_id: str) -> bool:
        async with self._locks.hold(COLLECTION_KEY_PREFIX + name):
            return await self._add_member(name, item_id)

    async def remove_from_collection(self, name: str, item_id: str) -> bool:
        async with self._locks.hold(COLLECTION_KEY_PREFIX + name):
            return await self._remove_member(name, item_id)

    async def mark_ignored(self, item_id: str) -> Item:
        return await self.set_status(item_id, Status.IGNORED)

    async def save_to_private(self, item_id: str) -> Item:
        item = await self.set_status(item_id, Status.SAVED)
        await self.add_to_collection(PRIVATE_COLLECTION, item_id)
        return item

    async def mark_uploaded(self, item_id: str) -> Item:
        return await self.set_status(item_id, Status.UPLOADED)

    async def sync(self) -> None:
        return None

    @abstractmethod
    async def _write_status(self, item_id: str, status: Status, at: datetime) -> Item: ...

    @abstractmethod
    async def _add_member(self, name: str, item_id: str) -> bool: ...

    @abstractmethod
    async def _remove_member(self, name: str, item_id: str) -> bool: ...
