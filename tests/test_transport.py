"""Tests for the httpx-based transport."""

import json

import httpx
import pytest

from polychat.errors import TransportError
from polychat.transport import AbortSignal, HttpTransport, StreamHandle


def _transport(handler) -> HttpTransport:
    return HttpTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestOpen:
    async def test_posts_json(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, content=b"data: x\n\n")

        transport = _transport(handler)
        handle = await transport.open(
            "https://api.test/v1/chat", {"Authorization": "Bearer k"}, {"model": "m"},
        )
        chunks = [c async for c in handle.aiter_bytes()]
        assert b"".join(chunks) == b"data: x\n\n"
        assert seen == {"method": "POST", "body": {"model": "m"}, "auth": "Bearer k"}

    async def test_error_status_carries_body(self):
        transport = _transport(
            lambda r: httpx.Response(429, json={"error": {"message": "slow down"}}),
        )
        with pytest.raises(TransportError) as exc:
            await transport.open("https://api.test/x", {}, {})
        assert exc.value.status_code == 429
        assert exc.value.body == {"error": {"message": "slow down"}}
        assert str(exc.value) == "HTTP 429: slow down"

    async def test_text_error_body(self):
        transport = _transport(lambda r: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(TransportError, match="HTTP 502: Bad Gateway"):
            await transport.open("https://api.test/x", {}, {})

    async def test_not_found_hides_query(self):
        transport = _transport(lambda r: httpx.Response(404))
        with pytest.raises(TransportError) as exc:
            await transport.open("https://api.test/x?key=secret", {}, {})
        assert "secret" not in str(exc.value)
        assert "verify your API base" in str(exc.value)

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError, match="Request failed"):
            await _transport(handler).open("https://api.test/x", {}, {})


class TestStreamHandle:
    async def test_json(self):
        transport = _transport(lambda r: httpx.Response(200, json={"ok": True}))
        handle = await transport.open("https://api.test/x", {}, {})
        assert handle.status_code == 200
        assert await handle.json() == {"ok": True}

    async def test_signal_stops_iteration(self):
        async def body():
            yield b"one"
            yield b"two"

        transport = _transport(lambda r: httpx.Response(200, content=body()))
        signal = AbortSignal()
        handle = await transport.open("https://api.test/x", {}, {}, signal)
        received = []
        async for chunk in handle.aiter_bytes():
            received.append(chunk)
            signal.set()
        assert received == [b"one"]
        assert handle.response.is_closed

    async def test_read_error_wrapped(self):
        async def body():
            yield b"partial"
            raise httpx.ReadError("reset")

        response = httpx.Response(200, content=body())
        handle = StreamHandle(response)
        with pytest.raises(TransportError, match="Stream interrupted"):
            async for _ in handle.aiter_bytes():
                pass


class TestAbortSignal:
    async def test_wait(self):
        signal = AbortSignal()
        assert not signal.is_set()
        signal.set()
        await signal.wait()
        assert signal.is_set()


class TestLifecycle:
    async def test_external_client_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with HttpTransport(client=client):
            pass
        assert not client.is_closed
        await client.aclose()

    async def test_owned_client_closed(self):
        transport = HttpTransport(timeout=5)
        await transport.aclose()
        assert transport._client.is_closed
