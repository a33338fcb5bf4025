from datetime import timedelta

import httpx
import pytest
from tenacity import wait_none

from swipeleft.errors import (
    NetworkError,
    NotFound,
    PermissionDenied,
    ServerError,
    Timeout,
    Unauthorized,
    Unknown,
    is_retryable,
)
from swipeleft.models import utcnow
from swipeleft.remote.auth import StaticTokenProvider
from swipeleft.remote.client import ApiClient, error_for_status
from tests.conftest import API_BASE, FakeApi


def _client(handler, *, token: str | None = "secret-token", max_attempts: int = 1) -> ApiClient:
    return ApiClient(
        API_BASE,
        token_provider=StaticTokenProvider(token),
        max_attempts=max_attempts,
        wait=wait_none(),
        transport=httpx.MockTransport(handler),
    )


class TestStatusMapping:
    @pytest.mark.parametrize(
        "code,expected",
        [
            (401, Unauthorized),
            (403, PermissionDenied),
            (404, NotFound),
            (408, Timeout),
            (400, ServerError),
            (422, ServerError),
            (500, ServerError),
            (503, ServerError),
            (302, Unknown),
        ],
    )
    def test_error_types(self, code: int, expected: type):
        assert isinstance(error_for_status(code), expected)

    @pytest.mark.parametrize("code", [200, 201, 204])
    def test_success_codes(self, code: int):
        assert error_for_status(code) is None

    def test_retryable_split(self):
        assert is_retryable(error_for_status(503))
        assert is_retryable(error_for_status(408))
        assert not is_retryable(error_for_status(400))
        assert not is_retryable(error_for_status(401))
        assert not is_retryable(error_for_status(404))


class TestAuth:
    @pytest.mark.asyncio
    async def test_bearer_header_sent(self, api_client: ApiClient, fake_api: FakeApi):
        await api_client.get("collections/private")

        assert fake_api.requests[0].headers["authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_no_token_sends_unauthenticated(self, fake_api: FakeApi):
        async with _client(fake_api.handle, token=None) as client:
            await client.get("collections/private")

        assert "authorization" not in fake_api.requests[0].headers

    @pytest.mark.asyncio
    async def test_expired_token_is_dropped(self, fake_api: FakeApi):
        provider = StaticTokenProvider("old", expires_at=utcnow() - timedelta(minutes=1))
        async with ApiClient(API_BASE, token_provider=provider, transport=fake_api.transport()) as client:
            await client.get("collections/private")

        assert "authorization" not in fake_api.requests[0].headers

    @pytest.mark.asyncio
    async def test_provider_failure_sends_unauthenticated(self, fake_api: FakeApi):
        class BrokenProvider:
            async def get_token(self) -> str | None:
                raise RuntimeError("keychain locked")

        async with ApiClient(API_BASE, token_provider=BrokenProvider(), transport=fake_api.transport()) as client:
            data = await client.get("collections/private")

        assert data == {"photoIds": []}
        assert "authorization" not in fake_api.requests[0].headers


class TestErrors:
    @pytest.mark.asyncio
    async def test_timeout_is_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        async with _client(handler) as client:
            with pytest.raises(Timeout):
                await client.get("photos")

    @pytest.mark.asyncio
    async def test_connection_error_is_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError) as exc_info:
                await client.get("photos")

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_invalid_json_is_server_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>oops</html>")

        async with _client(handler) as client:
            with pytest.raises(ServerError, match="Invalid response format"):
                await client.get("photos")

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(204)

        async with _client(handler) as client:
            assert await client.delete("photos/a") is None


class TestRetry:
    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, fake_api: FakeApi):
        fake_api.queued_statuses = [503, 502]

        async with _client(fake_api.handle, max_attempts=3) as client:
            data = await client.get("collections/private")

        assert data == {"photoIds": []}
        assert len(fake_api.requests) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, fake_api: FakeApi):
        fake_api.queued_statuses = [500, 500, 500, 500]

        async with _client(fake_api.handle, max_attempts=3) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.get("collections/private")

        assert exc_info.value.status_code == 500
        assert len(fake_api.requests) == 3

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, fake_api: FakeApi):
        fake_api.queued_statuses = [401]

        async with _client(fake_api.handle, max_attempts=3) as client:
            with pytest.raises(Unauthorized):
                await client.get("collections/private")

        assert len(fake_api.requests) == 1
