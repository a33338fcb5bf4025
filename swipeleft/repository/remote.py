from collections.abc import Iterable
from datetime import datetime
from urllib.parse import quote

from swipeleft.constants import IMAGE_CACHE_MAX_ENTRIES
from swipeleft.errors import NotFound, SaveFailed, ServerError
from swipeleft.logging import get_logger
from swipeleft.models import PRIVATE_COLLECTION, Collection, Item, Status, from_dt
from swipeleft.remote.client import ApiClient
from swipeleft.repository.base import StatusRepository
from swipeleft.sources.base import IdentifierSource, ImageLoader

_logger = get_logger(__name__)


class ImageCache:
    """Image bytes by id. Entries go oldest-inserted first once full."""

    def __init__(self, max_entries: int = IMAGE_CACHE_MAX_ENTRIES):
        self.max_entries = max_entries
        self._images: dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._images)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._images

    def get(self, item_id: str) -> bytes | None:
        return self._images.get(item_id)

    def put(self, item_id: str, image: bytes) -> None:
        self._images.pop(item_id, None)
        self._images[item_id] = image
        while len(self._images) > self.max_entries:
            del self._images[next(iter(self._images))]

    def clear(self) -> None:
        self._images.clear()


def _photo_path(item_id: str, suffix: str = "") -> str:
    return f"photos/{quote(item_id, safe='')}{suffix}"


def _parse_item(data: object, item_id: str | None = None) -> Item:
    if not isinstance(data, dict):
        raise ServerError("Invalid response format")
    try:
        return Item(
            id=data.get("photoId") or item_id,
            status=data["status"],
            date_added=data.get("dateAdded"),
            last_modified=data.get("lastModified"),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise ServerError("Invalid response format") from e


class RemoteStatusStore(StatusRepository):
    """Status and collections kept by the backend API."""

    def __init__(
        self,
        client: ApiClient,
        *,
        loader: ImageLoader | None = None,
        cache: ImageCache | None = None,
    ):
        super().__init__()
        self.client = client
        self.loader = loader
        self.cache = cache if cache is not None else ImageCache()

    # --- Status ---

    async def get_item(self, item_id: str) -> Item | None:
        try:
            data = await self.client.get(_photo_path(item_id, "/status"))
        except NotFound:
            return None
        return _parse_item(data, item_id)

    async def list_by_status(self, status: Status, candidates: Iterable[str] | None = None) -> list[Item]:
        data = await self.client.get("photos", params={"status": Status(status).value})
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise ServerError("Invalid response format")
        items = [_parse_item(entry) for entry in data["items"]]
        if candidates is not None:
            wanted = set(candidates)
            items = [item for item in items if item.id in wanted]
        return items

    async def _write_status(self, item_id: str, status: Status, at: datetime) -> Item:
        body = {"status": status.value, "lastModified": from_dt(at)}
        data = await self.client.put(_photo_path(item_id, "/status"), body)
        if isinstance(data, dict) and "status" in data:
            item = _parse_item(data, item_id)
            if item.status is not status:
                _logger.error("Server echoed %s for %s, expected %s", item.status, item_id, status)
                raise SaveFailed(f"Status for {item_id} did not persist")
        else:
            item = Item(id=item_id, status=status, last_modified=at)

        if status is Status.SAVED:
            await self.add_to_collection(PRIVATE_COLLECTION, item_id)
        return item

    # --- Collections ---

    async def get_collection(self, name: str) -> Collection:
        data = await self.client.get(f"collections/{quote(name, safe='')}")
        if not isinstance(data, dict) or not isinstance(data.get("photoIds"), list):
            raise ServerError("Invalid response format")
        return Collection(name=name, member_ids=[str(x) for x in data["photoIds"]])

    async def _add_member(self, name: str, item_id: str) -> bool:
        collection = await self.get_collection(name)
        if collection.contains(item_id):
            return False
        await self.client.post(f"collections/{quote(name, safe='')}/add", {"photoId": item_id})
        return True

    async def _remove_member(self, name: str, item_id: str) -> bool:
        collection = await self.get_collection(name)
        if not collection.contains(item_id):
            return False
        await self.client.post(f"collections/{quote(name, safe='')}/remove", {"photoId": item_id})
        return True

    # --- Public feed ---

    async def publish(self, item_id: str, payload: bytes, creation_date: datetime | None = None) -> None:
        metadata = {
            "photoId": item_id,
            "creationDate": creation_date.timestamp() if creation_date else 0,
        }
        await self.client.upload("photos/public", payload, metadata)
        _logger.info("Published %s (%d bytes)", item_id, len(payload))

    async def load_image(self, item_id: str) -> bytes:
        cached = self.cache.get(item_id)
        if cached is not None:
            return cached
        if self.loader is None:
            raise NotFound(f"No image loader for {item_id}")
        image = await self.loader.load(item_id)
        self.cache.put(item_id, image)
        return image


class PublicFeedUploader:
    """Upload pipeline that posts the item's image bytes to the public feed."""

    def __init__(self, store: RemoteStatusStore, source: IdentifierSource):
        self.store = store
        self.source = source

    async def upload(self, item_id: str) -> None:
        handle = await self.source.fetch(item_id)
        if handle is None:
            raise NotFound(f"No asset for {item_id}")
        payload = await self.store.load_image(item_id)
        await self.store.publish(item_id, payload, handle.creation_date)
