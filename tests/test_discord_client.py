# ============================================================================
#  File: test_discord_client.py
#  Purpose: Discord REST request shapes for setup and runtime clients
# ============================================================================
# SECTION 1: Imports & Helpers
# ============================================================================
#
import json
from pathlib import Path

import aiofiles
import httpx
import pytest
import requests

from reporting.discord_client import (
    THREAD_AUTO_ARCHIVE_MINUTES,
    DiscordRestClient,
    DiscordSetupClient,
)
from reporting.error_handling import ConfigError, TransportError

API = "https://discord.test/api/v10"


class FakeResponse:

    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


class FakeSession(requests.Session):
    """requests.Session that answers from a list instead of the network."""

    def __init__(self, responses):
        super().__init__()
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def post(self, url, json=None, timeout=None, **kwargs):
        self.calls.append((url, json, dict(self.headers)))
        return self.responses.pop(0)

    def close(self):
        self.closed = True
        super().close()


def rest_client(handler):
    transport = httpx.MockTransport(handler)
    return DiscordRestClient(
        "token-x", API,
        client_factory=lambda: httpx.AsyncClient(base_url=API, transport=transport),
    )
#
# ============================================================================
# SECTION 2: Setup client
# ============================================================================
#
def test_create_header_posts_message_then_thread():
    session = FakeSession([FakeResponse(200, {"id": "m1"}), FakeResponse(201, {"id": "t1"})])
    client = DiscordSetupClient("token-x", "c1", API, session=session)

    assert client.create_header("Suite: LOCAL | all", "Suite Run Logs") == ("m1", "t1")

    (first_url, first_body, headers), (second_url, second_body, _) = session.calls
    assert first_url == f"{API}/channels/c1/messages"
    assert first_body == {"content": "Suite: LOCAL | all"}
    assert headers["Authorization"] == "Bot token-x"
    assert second_url == f"{API}/channels/c1/messages/m1/threads"
    assert second_body == {"name": "Suite Run Logs", "auto_archive_duration": THREAD_AUTO_ARCHIVE_MINUTES}


def test_create_header_rejected_raises_transport_error():
    session = FakeSession([FakeResponse(403, {"message": "Missing Access"})])
    client = DiscordSetupClient("token-x", "c1", API, session=session)

    with pytest.raises(TransportError) as excinfo:
        client.create_header("title", "logs")
    assert excinfo.value.status_code == 403


def test_setup_client_requires_credentials():
    with pytest.raises(ConfigError):
        DiscordSetupClient("", "c1")
    with pytest.raises(ConfigError):
        DiscordSetupClient("token", "")
#
# ============================================================================
# SECTION 3: Runtime client
# ============================================================================
#
@pytest.mark.asyncio
async def test_edit_message_patches_header():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "h1"})

    client = rest_client(handler)
    await client.edit_message("c1", "h1", "60%", embeds=[])
    await client.aclose()

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.path == "/api/v10/channels/c1/messages/h1"
    assert json.loads(request.content) == {"content": "60%", "embeds": []}


@pytest.mark.asyncio
async def test_post_to_thread_plain_text():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "p1"})

    client = rest_client(handler)
    assert await client.post_to_thread("t1", "❌ test\nReason: boom") is True
    await client.aclose()

    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/v10/channels/t1/messages"
    assert json.loads(seen[0].content) == {"content": "❌ test\nReason: boom"}


@pytest.mark.asyncio
async def test_post_to_thread_with_attachment_is_multipart(tmp_path):
    shot = tmp_path / "shot.png"
    shot.write_bytes(b"\x89PNG fake")
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "p2"})

    client = rest_client(handler)
    await client.post_to_thread("t1", "❌ test", attachment=shot)
    await client.aclose()

    request = seen[0]
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="payload_json"' in body
    assert b'name="files[0]"; filename="shot.png"' in body
    assert b"\x89PNG fake" in body


@pytest.mark.asyncio
async def test_large_attachment_is_read_through_aiofiles(tmp_path, monkeypatch):
    shot = tmp_path / "viewport.png"
    data = bytes(range(256)) * 8192  # 2 MiB
    shot.write_bytes(data)
    opened = []
    real_open = aiofiles.open

    def recording_open(path, *args, **kwargs):
        opened.append((Path(path), args))
        return real_open(path, *args, **kwargs)

    monkeypatch.setattr("reporting.discord_client.aiofiles.open", recording_open)
    seen = []

    def handler(request):
        seen.append(request.content)
        return httpx.Response(200, json={"id": "p3"})

    client = rest_client(handler)
    await client.post_to_thread("t1", "❌ big", attachment=str(shot))
    await client.aclose()

    assert opened == [(shot, ("rb",))]
    assert data in seen[0]


@pytest.mark.asyncio
async def test_http_error_becomes_transport_error():
    client = rest_client(lambda request: httpx.Response(429, json={"retry_after": 1}))

    with pytest.raises(TransportError) as excinfo:
        await client.post_to_thread("t1", "hello")
    await client.aclose()
    assert excinfo.value.status_code == 429


@pytest.mark.asyncio
async def test_network_error_becomes_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = rest_client(handler)
    with pytest.raises(TransportError, match="ConnectError"):
        await client.edit_message("c1", "h1", "x")
    await client.aclose()


@pytest.mark.asyncio
async def test_aclose_is_idempotent():
    client = rest_client(lambda request: httpx.Response(200, json={}))
    await client.edit_message("c1", "h1", "x")

    await client.aclose()
    await client.aclose()
