from __future__ import annotations

from typing import Any, Dict, Optional, Type
from types import TracebackType

import httpx


class HttpRequestError(Exception):
    """Transport-level failure (connect, read, timeout)."""


class HttpResponseError(Exception):
    """Non-successful HTTP status from the remote side."""

    def __init__(self, message: str, response: httpx.Response):
        super().__init__(message)
        self.response = response


class AsyncHttpClient:
    """Thin asynchronous HTTP client wrapper around httpx.AsyncClient.

    - Normalizes base URLs and paths.
    - Applies a default timeout and default headers.
    - Raises HttpResponseError for non-successful responses and
      HttpRequestError for transport failures.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout, headers=headers, transport=transport
        )

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, self._url(path), **kwargs)
        except httpx.RequestError as e:
            raise HttpRequestError(f"{method} {path} failed: {e!r}") from e
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise HttpResponseError(str(e), e.response) from e
        return resp

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._send("GET", path, **kwargs)

    async def post(
        self,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        return await self._send("POST", path, json=json, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
