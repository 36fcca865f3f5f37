# ============================================================================
#  File:    discord_client.py
#  Purpose: Discord REST clients. A synchronous setup client posts the suite
#           header and opens the run thread once; an async client edits the
#           header and posts into the thread for the rest of the run.
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import json
import mimetypes
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import aiofiles
import httpx
import requests
from loguru import logger

from reporting.error_handling import ConfigError, TransportError

DISCORD_API_BASE = "https://discord.com/api/v10"
THREAD_AUTO_ARCHIVE_MINUTES = 1440  # 24h
USER_AGENT = "DiscordBot (https://discord.com/developers/docs/reference, 1.0)"
#
# ============================================================================
# SECTION 2: Helpers
# ============================================================================
#
def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bot {token}", "User-Agent": USER_AGENT}


def _raise_for_discord(status_code: int, text: str, action: str) -> None:
    if status_code >= 400:
        raise TransportError(f"{action} -> HTTP {status_code} {text[:200]}", status_code=status_code)
#
# ============================================================================
# SECTION 3: Setup Client (one-time, synchronous)
# ============================================================================
# Class 3.1: DiscordSetupClient
# Purpose: Posts the header message into the report channel and starts the
#          thread that receives per-test logs.
# ============================================================================
#
class DiscordSetupClient:

    def __init__(self, token: str, channel_id: str, api_base: str = DISCORD_API_BASE,
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        if not token or not channel_id:
            raise ConfigError("Missing DISCORD_BOT_TOKEN or DISCORD_CHANNEL_ID")
        self.channel_id = channel_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(_auth_headers(token))

    def create_header(self, title: str, thread_name: str) -> Tuple[str, str]:
        """Returns (header_message_id, thread_id)."""
        header = self._post(f"/channels/{self.channel_id}/messages", {"content": title}, "post header")
        header_id = str(header["id"])

        thread = self._post(
            f"/channels/{self.channel_id}/messages/{header_id}/threads",
            {"name": thread_name[:100], "auto_archive_duration": THREAD_AUTO_ARCHIVE_MINUTES},
            "start thread",
        )
        logger.info(f"Posted suite header {header_id} with thread {thread['id']}")
        return header_id, str(thread["id"])

    def close(self) -> None:
        self.session.close()

    def _post(self, route: str, payload: Dict[str, Any], action: str) -> Dict[str, Any]:
        try:
            r = self.session.post(f"{self.api_base}{route}", json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{action}: {e}")
        _raise_for_discord(r.status_code, r.text, action)
        try:
            return r.json()
        except ValueError:
            raise TransportError(f"{action}: response was not JSON")
#
# ============================================================================
# SECTION 4: REST Client (frequent edits/posts, async)
# ============================================================================
# Class 4.1: DiscordRestClient
# Purpose: Lightweight client over one persistent httpx.AsyncClient.
# ============================================================================
#
class DiscordRestClient:
    """
    Edits the header and posts into the run thread. The underlying
    AsyncClient is created lazily on the reporting loop and closed by
    aclose(), after which the client can be reopened.
    """

    def __init__(self, token: str, api_base: str = DISCORD_API_BASE, timeout: float = 10.0,
                 client_factory: Optional[Callable[[], httpx.AsyncClient]] = None):
        if not token:
            raise ConfigError("Missing DISCORD_BOT_TOKEN")
        self.api_base = api_base.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client_factory = client_factory
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            if self._client_factory is not None:
                self._client = self._client_factory()
            else:
                self._client = httpx.AsyncClient(
                    base_url=self.api_base,
                    headers=_auth_headers(self._token),
                    timeout=self._timeout,
                )
        return self._client

    async def edit_message(self, channel_id: str, message_id: str, content: str,
                           embeds: Optional[List[Dict[str, Any]]] = None) -> bool:
        body: Dict[str, Any] = {"content": content}
        if embeds is not None:
            body["embeds"] = embeds
        await self._request("PATCH", f"/channels/{channel_id}/messages/{message_id}",
                            "edit header", json=body)
        return True

    async def post_to_thread(self, thread_id: str, content: str,
                             attachment: Union[str, Path, None] = None) -> bool:
        route = f"/channels/{thread_id}/messages"
        if attachment is None:
            await self._request("POST", route, "post to thread", json={"content": content})
            return True

        path = Path(attachment)
        async with aiofiles.open(path, "rb") as file:
            data = await file.read()
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        payload = {
            "content": content,
            "attachments": [{"id": 0, "filename": path.name}],
        }
        await self._request(
            "POST", route, "post to thread",
            data={"payload_json": json.dumps(payload)},
            files={"files[0]": (path.name, data, content_type)},
        )
        return True

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, route: str, action: str, **kwargs) -> httpx.Response:
        try:
            r = await self._get_client().request(method, route, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{action}: {e.__class__.__name__}: {e}")
        _raise_for_discord(r.status_code, r.text, action)
        return r
#
#
## End of discord_client.py
