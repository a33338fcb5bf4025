from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol


class SortKey(StrEnum):
    CREATION_DATE_DESC = "creation_date_desc"
    CREATION_DATE_ASC = "creation_date_asc"
    NAME = "name"


@dataclass(frozen=True)
class AssetHandle:
    id: str
    location: Any
    creation_date: datetime | None = None


class IdentifierSource(Protocol):
    async def list_all(self, sort_key: SortKey) -> list[str]: ...

    async def fetch(self, item_id: str) -> AssetHandle | None: ...


class ImageLoader(Protocol):
    async def load(self, item_id: str) -> bytes: ...


class TokenProvider(Protocol):
    async def get_token(self) -> str | None: ...


class UploadPipeline(Protocol):
    async def upload(self, item_id: str) -> None: ...
