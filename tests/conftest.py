import asyncio
import json
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import unquote

import httpx
import pytest_asyncio
from tenacity import wait_none

import swipeleft.database as database
from swipeleft.remote.auth import StaticTokenProvider
from swipeleft.remote.client import ApiClient
from swipeleft.repository.local import LocalStatusStore
from swipeleft.repository.remote import RemoteStatusStore
from swipeleft.sources.base import AssetHandle, SortKey

API_BASE = "https://api.test/v1"
CREATED = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class FakeSource:
    def __init__(self, ids: list[str]):
        self.ids = list(ids)
        self.sort_keys: list[SortKey] = []

    async def list_all(self, sort_key: SortKey = SortKey.CREATION_DATE_DESC) -> list[str]:
        self.sort_keys.append(sort_key)
        return list(self.ids)

    async def fetch(self, item_id: str) -> AssetHandle | None:
        if item_id not in self.ids:
            return None
        return AssetHandle(id=item_id, location=item_id, creation_date=CREATED)


class FakeLoader:
    """Returns `b"img:<id>"`; holds every load until `gate` is set."""

    def __init__(self, fail: set[str] | None = None):
        self.calls: list[str] = []
        self.fail = fail or set()
        self.gate = asyncio.Event()
        self.gate.set()

    async def load(self, item_id: str) -> bytes:
        self.calls.append(item_id)
        await self.gate.wait()
        if item_id in self.fail:
            raise OSError(f"cannot decode {item_id}")
        return f"img:{item_id}".encode()


class FakeApi:
    """In-memory backend served through httpx.MockTransport."""

    def __init__(self):
        self.records: dict[str, dict] = {}
        self.private: list[str] = []
        self.uploads: list[dict] = []
        self.requests: list[httpx.Request] = []
        self.failing_ids: set[str] = set()
        self.queued_statuses: list[int] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.queued_statuses:
            return httpx.Response(self.queued_statuses.pop(0))

        raw = request.url.raw_path.decode().split("?")[0]
        parts = [unquote(p) for p in raw.removeprefix("/v1/").split("/")]
        method = request.method

        if parts[:2] == ["collections", "private"]:
            if len(parts) == 2 and method == "GET":
                return httpx.Response(200, json={"photoIds": list(self.private)})
            photo_id = json.loads(request.content)["photoId"]
            if parts[2:] == ["add"] and photo_id not in self.private:
                self.private.append(photo_id)
            elif parts[2:] == ["remove"] and photo_id in self.private:
                self.private.remove(photo_id)
            return httpx.Response(200, json={})

        if parts == ["photos"] and method == "GET":
            status = request.url.params.get("status")
            items = [{"photoId": k, **v} for k, v in self.records.items() if v["status"] == status]
            return httpx.Response(200, json={"items": items})

        if parts == ["photos", "public"] and method == "POST":
            self.uploads.append(
                {"content_type": request.headers["content-type"], "body": request.content}
            )
            return httpx.Response(201)

        if len(parts) == 3 and parts[0] == "photos" and parts[2] == "status":
            photo_id = parts[1]
            if photo_id in self.failing_ids:
                return httpx.Response(500)
            if method == "GET":
                if photo_id not in self.records:
                    return httpx.Response(404)
                return httpx.Response(200, json={"photoId": photo_id, **self.records[photo_id]})
            if method == "PUT":
                body = json.loads(request.content)
                record = self.records.setdefault(photo_id, {"dateAdded": CREATED.isoformat()})
                record.update(status=body["status"], lastModified=body["lastModified"])
                return httpx.Response(200, json={"photoId": photo_id, **record})

        return httpx.Response(404)


@pytest_asyncio.fixture
async def conn(tmp_path: Path):
    conn = await database.connect(tmp_path / "test_swipeleft.db")
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def local_store(conn) -> LocalStatusStore:
    store = LocalStatusStore(conn)
    await store.init_schema()
    return store


@pytest_asyncio.fixture
async def fake_api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def api_client(fake_api: FakeApi) -> AsyncGenerator[ApiClient]:
    client = ApiClient(
        API_BASE,
        token_provider=StaticTokenProvider("secret-token"),
        max_attempts=1,
        wait=wait_none(),
        transport=fake_api.transport(),
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def remote_store(api_client: ApiClient) -> RemoteStatusStore:
    return RemoteStatusStore(api_client, loader=FakeLoader())
