"""HTTP transport built on ``httpx.AsyncClient``.

The transport issues one POST per request and hands back a
:class:`StreamHandle` over the response body.  It never retries; a non-2xx
status becomes a :class:`~polychat.errors.TransportError` carrying the
response body.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

import httpx

from polychat.errors import TransportError

_logger = logging.getLogger(__name__)


class AbortSignal:
    """Cancellation flag shared by the service, transport and reader."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class StreamHandle:
    """Open response whose body has not been consumed yet."""

    def __init__(
        self,
        response: httpx.Response,
        signal: AbortSignal | None = None,
    ) -> None:
        self.response = response
        self._signal = signal

    @property
    def status_code(self) -> int:
        return self.response.status_code

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Yield body chunks until the body ends or the signal is set."""
        try:
            async for chunk in self.response.aiter_bytes():
                if self._signal is not None and self._signal.is_set():
                    _logger.debug("Stream aborted by signal")
                    break
                if chunk:
                    yield chunk
        except httpx.HTTPError as e:
            raise TransportError(f"Stream interrupted: {e}") from e
        finally:
            await self.aclose()

    async def json(self) -> Any:
        """Read the whole body and decode it as JSON."""
        try:
            body = await self.response.aread()
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to read response: {e}") from e
        finally:
            await self.aclose()
        return json.loads(body)

    async def aclose(self) -> None:
        await self.response.aclose()


def _error_message(status: int, body: Any) -> str:
    detail = ""
    if isinstance(body, dict):
        err = body.get("error", body)
        if isinstance(err, dict):
            detail = str(err.get("message") or err.get("msg") or "")
        elif isinstance(err, str):
            detail = err
    elif isinstance(body, str):
        detail = body[:500]
    msg = f"HTTP {status}"
    return f"{msg}: {detail}" if detail else msg


class HttpTransport:
    """Thin async HTTP layer: one client, no retries."""

    def __init__(
        self,
        timeout: float = 120,
        proxy: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=30, read=300),
            proxy=proxy or None,
        )

    async def open(
        self,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        signal: AbortSignal | None = None,
    ) -> StreamHandle:
        """POST *payload* and return the open response.

        Raises :class:`TransportError` on network failure or non-2xx status.
        """
        request = self._client.build_request("POST", url, headers=headers, json=payload)
        _logger.debug("POST %s", request.url.copy_with(query=None))
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}") from e

        if response.status_code >= 300:
            raw = await response.aread()
            await response.aclose()
            try:
                body: Any = json.loads(raw)
            except ValueError:
                body = raw.decode("utf-8", errors="replace")
            status = response.status_code
            if status == 404:
                message = f"{url.split('?', 1)[0]} not found, verify your API base."
            else:
                message = _error_message(status, body)
            raise TransportError(message, status_code=status, body=body)

        return StreamHandle(response, signal)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
