from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter
from tenacity.wait import wait_base

from swipeleft.constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT,
    REQUEST_MAX_ATTEMPTS,
    UPLOAD_FILENAME,
    UPLOAD_MIME_TYPE,
)
from swipeleft.errors import (
    NetworkError,
    NotFound,
    PermissionDenied,
    ServerError,
    StatusError,
    Timeout,
    Unauthorized,
    Unknown,
    is_retryable,
)
from swipeleft.logging import get_logger
from swipeleft.sources.base import TokenProvider

_logger = get_logger(__name__)


def error_for_status(status_code: int) -> StatusError | None:
    if 200 <= status_code < 300:
        return None
    if status_code == 401:
        return Unauthorized()
    if status_code == 403:
        return PermissionDenied()
    if status_code == 404:
        return NotFound()
    if status_code == 408:
        return Timeout()
    if 400 <= status_code < 500:
        return ServerError(f"status {status_code}", status_code=status_code)
    if 500 <= status_code < 600:
        return ServerError(f"Server returned status code {status_code}", status_code=status_code)
    return Unknown()


def _log_retry(retry_state) -> None:
    _logger.warning(
        "API call failed (attempt %d), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


class ApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        *,
        token_provider: TokenProvider | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_attempts: int = REQUEST_MAX_ATTEMPTS,
        wait: wait_base | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._token_provider = token_provider
        self._max_attempts = max_attempts
        self._wait = wait or wait_exponential_jitter(initial=0.5, max=8, jitter=2)
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def get(self, endpoint: str, params: dict | None = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def post(self, endpoint: str, body: dict) -> Any:
        return await self._request("POST", endpoint, json=body)

    async def put(self, endpoint: str, body: dict) -> Any:
        return await self._request("PUT", endpoint, json=body)

    async def delete(self, endpoint: str) -> Any:
        return await self._request("DELETE", endpoint)

    async def upload(
        self,
        endpoint: str,
        data: bytes,
        metadata: dict[str, Any],
        filename: str = UPLOAD_FILENAME,
        mime_type: str = UPLOAD_MIME_TYPE,
    ) -> Any:
        fields = {key: str(value) for key, value in metadata.items()}
        return await self._request(
            "POST",
            endpoint,
            data=fields,
            files={"file": (filename, data, mime_type)},
        )

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_retryable),
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            reraise=True,
            before_sleep=_log_retry,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(method, endpoint, **kwargs)

    async def _send(self, method: str, endpoint: str, **kwargs) -> Any:
        headers = await self._auth_headers()
        try:
            response = await self._client.request(method, endpoint, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise Timeout() from e
        except httpx.TransportError as e:
            raise NetworkError(e) from e
        except httpx.HTTPError as e:
            raise Unknown(str(e)) from e

        error = error_for_status(response.status_code)
        if error is not None:
            _logger.debug("%s %s -> %d", method, endpoint, response.status_code)
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ServerError("Invalid response format", status_code=response.status_code) from e

    async def _auth_headers(self) -> dict[str, str]:
        if self._token_provider is None:
            return {}
        try:
            token = await self._token_provider.get_token()
        except Exception as e:
            _logger.warning("Token lookup failed, sending unauthenticated: %s", e)
            return {}
        return {"Authorization": f"Bearer {token}"} if token else {}
