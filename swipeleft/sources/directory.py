import asyncio
from datetime import UTC, datetime
from pathlib import Path

from swipeleft.constants import IMAGE_SUFFIXES
from swipeleft.errors import NotFound
from swipeleft.logging import get_logger
from swipeleft.sources.base import AssetHandle, SortKey

_logger = get_logger(__name__)


def _creation_date(path: Path) -> datetime:
    stat = path.stat()
    ts = getattr(stat, "st_birthtime", None) or stat.st_mtime
    return datetime.fromtimestamp(ts, tz=UTC)


class DirectorySource:
    """Image files under a directory, identified by their relative POSIX path."""

    def __init__(self, root: Path, suffixes: frozenset[str] = IMAGE_SUFFIXES):
        self.root = Path(root).expanduser()
        self.suffixes = suffixes

    def _resolve(self, item_id: str) -> Path | None:
        path = (self.root / item_id).resolve()
        if not path.is_relative_to(self.root.resolve()) or not path.is_file():
            return None
        return path

    def _scan(self, sort_key: SortKey) -> list[str]:
        if not self.root.is_dir():
            _logger.warning("Library directory %s does not exist", self.root)
            return []

        files = [p for p in self.root.rglob("*") if p.is_file() and p.suffix.lower() in self.suffixes]
        match sort_key:
            case SortKey.NAME:
                files.sort(key=lambda p: p.relative_to(self.root).as_posix())
            case SortKey.CREATION_DATE_ASC:
                files.sort(key=_creation_date)
            case SortKey.CREATION_DATE_DESC:
                files.sort(key=_creation_date, reverse=True)
        return [p.relative_to(self.root).as_posix() for p in files]

    async def list_all(self, sort_key: SortKey = SortKey.CREATION_DATE_DESC) -> list[str]:
        ids = await asyncio.to_thread(self._scan, sort_key)
        _logger.info("Found %d images under %s", len(ids), self.root)
        return ids

    async def fetch(self, item_id: str) -> AssetHandle | None:
        path = self._resolve(item_id)
        if path is None:
            return None
        return AssetHandle(id=item_id, location=path, creation_date=_creation_date(path))

    async def load(self, item_id: str) -> bytes:
        path = self._resolve(item_id)
        if path is None:
            raise NotFound(f"No image for {item_id}")
        return await asyncio.to_thread(path.read_bytes)
