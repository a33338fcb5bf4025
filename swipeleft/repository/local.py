import json
from collections.abc import Iterable
from datetime import datetime

import aiosqlite

from swipeleft.constants import COLLECTION_KEY_PREFIX
from swipeleft.errors import SaveFailed
from swipeleft.logging import get_logger
from swipeleft.models import PRIVATE_COLLECTION, Collection, Item, Status, from_dt
from swipeleft.repository.base import StatusRepository

_logger = get_logger(__name__)

# status_map: id -> status string (+ timestamps)
# collections: collection.<name> -> ordered member ids (+ metadata)
SCHEMA = """
CREATE TABLE IF NOT EXISTS status_map (
    item_id TEXT PRIMARY KEY,
    status TEXT NOT NULL,
    date_added TEXT NOT NULL,
    last_modified TEXT
);

CREATE INDEX IF NOT EXISTS idx_status_map_status ON status_map(status);

CREATE TABLE IF NOT EXISTS collections (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

SQL_UPSERT_STATUS = """
INSERT INTO status_map (item_id, status, date_added, last_modified)
VALUES (?, ?, ?, ?)
ON CONFLICT(item_id) DO UPDATE SET
    status = excluded.status,
    last_modified = excluded.last_modified
"""

SQL_GET_STATUS = "SELECT * FROM status_map WHERE item_id = ?"
SQL_LIST_BY_STATUS = "SELECT * FROM status_map WHERE status = ? ORDER BY last_modified"
SQL_LIST_BY_IDS = "SELECT * FROM status_map WHERE item_id IN ({placeholders})"

SQL_GET_COLLECTION = "SELECT value FROM collections WHERE key = ?"
SQL_SAVE_COLLECTION = "INSERT OR REPLACE INTO collections (key, value) VALUES (?, ?)"

_ID_CHUNK = 500


def _row_to_item(row: aiosqlite.Row) -> Item:
    return Item(
        id=row["item_id"],
        status=row["status"],
        date_added=row["date_added"],
        last_modified=row["last_modified"],
    )


class LocalStatusStore(StatusRepository):
    """On-device store; every write is read back before it counts as saved."""

    def __init__(self, conn: aiosqlite.Connection):
        super().__init__()
        self.conn = conn

    async def init_schema(self) -> None:
        await self.conn.executescript(SCHEMA)
        await self.conn.commit()

    # --- Status ---

    async def get_item(self, item_id: str) -> Item | None:
        rows = await self.conn.execute_fetchall(SQL_GET_STATUS, (item_id,))
        return _row_to_item(rows[0]) if rows else None

    async def list_by_status(self, status: Status, candidates: Iterable[str] | None = None) -> list[Item]:
        status = Status(status)
        if candidates is None:
            rows = await self.conn.execute_fetchall(SQL_LIST_BY_STATUS, (status.value,))
            return [_row_to_item(row) for row in rows]

        ids = list(dict.fromkeys(candidates))
        known: dict[str, Item] = {}
        for start in range(0, len(ids), _ID_CHUNK):
            chunk = ids[start : start + _ID_CHUNK]
            sql = SQL_LIST_BY_IDS.format(placeholders=",".join("?" * len(chunk)))
            for row in await self.conn.execute_fetchall(sql, chunk):
                known[row["item_id"]] = _row_to_item(row)

        result = []
        for item_id in ids:
            item = known.get(item_id)
            if item is None and status is Status.UNPROCESSED:
                item = Item(id=item_id)
            if item is not None and item.status is status:
                result.append(item)
        return result

    async def _write_status(self, item_id: str, status: Status, at: datetime) -> Item:
        existing = await self.get_item(item_id)
        item = existing.with_status(status, at) if existing else Item(id=item_id, status=status, last_modified=at)

        try:
            await self.conn.execute(
                SQL_UPSERT_STATUS,
                (item.id, item.status.value, from_dt(item.date_added), from_dt(item.last_modified)),
            )
            await self.conn.commit()
        except aiosqlite.Error as e:
            _logger.error("Status write failed for %s: %s", item_id, e)
            raise SaveFailed(f"Failed to save status for {item_id}") from e

        stored = await self.get_item(item_id)
        if stored is None or stored.status is not status or stored.last_modified != item.last_modified:
            raise SaveFailed(f"Status for {item_id} did not persist")

        if status is Status.SAVED:
            await self.add_to_collection(PRIVATE_COLLECTION, item_id)
        return stored

    # --- Collections ---

    async def get_collection(self, name: str) -> Collection:
        rows = await self.conn.execute_fetchall(SQL_GET_COLLECTION, (COLLECTION_KEY_PREFIX + name,))
        if not rows:
            return Collection(name=name)
        collection = Collection.from_dict(json.loads(rows[0]["value"]))
        collection.name = collection.name or name
        return collection

    async def _add_member(self, name: str, item_id: str) -> bool:
        collection = await self.get_collection(name)
        if not collection.add(item_id):
            return False
        await self._save_collection(collection)
        return True

    async def _remove_member(self, name: str, item_id: str) -> bool:
        collection = await self.get_collection(name)
        if not collection.remove(item_id):
            return False
        await self._save_collection(collection)
        return True

    async def _save_collection(self, collection: Collection) -> None:
        key = COLLECTION_KEY_PREFIX + collection.name
        payload = json.dumps(collection.to_dict())
        try:
            await self.conn.execute(SQL_SAVE_COLLECTION, (key, payload))
            await self.conn.commit()
        except aiosqlite.Error as e:
            _logger.error("Collection write failed for %s: %s", key, e)
            raise SaveFailed(f"Failed to save collection {collection.name}") from e

        rows = await self.conn.execute_fetchall(SQL_GET_COLLECTION, (key,))
        if not rows or rows[0]["value"] != payload:
            raise SaveFailed(f"Collection {collection.name} did not persist")
