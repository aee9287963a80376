"""Slack Web API client.

Covers only what the display needs: auth check, channel and user lookups,
custom emoji, thread parent lookup and the Socket Mode handshake. Every method
raises ``NetworkError`` when Slack can't be reached, ``ApiError`` when Slack
answers ``ok: false`` and ``DecodeError`` when the body isn't a JSON object.
"""

import asyncio
import logging

import aiohttp

from ..core.models import SlackChannel
from .base import ApiError, BaseApiClient, DecodeError, NetworkError, safe_json

logger = logging.getLogger(__name__)

CHANNEL_PAGE_SIZE = 1000
USER_PAGE_SIZE = 200


def _next_cursor(data: dict) -> str:
    meta = data.get("response_metadata") or {}
    return meta.get("next_cursor") or ""


class SlackApiClient(BaseApiClient):
    """Stateless wrapper over the Slack Web API. Tokens are passed per call."""

    BASE_URL = "https://slack.com/api"

    def _get_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    async def _call(
        self,
        method: str,
        token: str,
        params: dict[str, str] | None = None,
        http_method: str = "GET",
    ) -> dict:
        """Call a Web API method and return the decoded body of an ok response."""
        url = f"{self.BASE_URL}/{method}"
        request = self.session.post if http_method == "POST" else self.session.get
        try:
            async with request(url, headers=self._get_headers(token), params=params) as resp:
                data = await safe_json(resp)
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method}: {str(e) or type(e).__name__}") from e

        if not isinstance(data, dict):
            raise DecodeError(f"{method}: unexpected response (HTTP {status})")
        if not data.get("ok"):
            raise ApiError(method, data.get("error") or f"HTTP {status}")
        return data

    async def auth_test(self, token: str) -> dict:
        """Check a token. Returns the identity Slack reports for it."""
        data = await self._call("auth.test", token, http_method="POST")
        logger.info(f"Slack: authenticated as {data.get('user')} ({data.get('team')})")
        return data

    async def open_connection(self, app_token: str) -> str:
        """Ask for a one-time Socket Mode WebSocket URL."""
        data = await self._call("apps.connections.open", app_token, http_method="POST")
        url = data.get("url")
        if not url:
            raise DecodeError("apps.connections.open: response has no url")
        return url

    async def list_channels(self, token: str) -> list[SlackChannel]:
        """List all non-archived public and private channels, following cursors."""
        channels: dict[str, SlackChannel] = {}
        cursor = ""
        pages = 0
        while True:
            params = {
                "types": "public_channel,private_channel",
                "exclude_archived": "true",
                "limit": str(CHANNEL_PAGE_SIZE),
            }
            if cursor:
                params["cursor"] = cursor
            data = await self._call("conversations.list", token, params)
            pages += 1
            for raw in data.get("channels") or []:
                if raw.get("id"):
                    channels.setdefault(raw["id"], SlackChannel.from_api(raw))
            cursor = _next_cursor(data)
            if not cursor:
                break

        logger.info(f"Slack: fetched {len(channels)} channels in {pages} page(s)")
        return list(channels.values())

    async def channel_info(self, token: str, channel_id: str) -> SlackChannel | None:
        data = await self._call("conversations.info", token, {"channel": channel_id})
        raw = data.get("channel")
        if not isinstance(raw, dict):
            return None
        return SlackChannel.from_api(raw)

    async def list_users(self, token: str) -> list[dict]:
        """List workspace members that carry a profile object."""
        users: list[dict] = []
        cursor = ""
        while True:
            params = {"limit": str(USER_PAGE_SIZE)}
            if cursor:
                params["cursor"] = cursor
            data = await self._call("users.list", token, params)
            for member in data.get("members") or []:
                if isinstance(member, dict) and member.get("id") and "profile" in member:
                    users.append(member)
            cursor = _next_cursor(data)
            if not cursor:
                break
        return users

    async def user_info(self, token: str, user_id: str) -> dict | None:
        data = await self._call("users.info", token, {"user": user_id})
        user = data.get("user")
        return user if isinstance(user, dict) else None

    async def list_emojis(self, token: str) -> dict[str, str]:
        """Custom emoji name -> image URL. Alias entries ("alias:foo") are dropped."""
        data = await self._call("emoji.list", token)
        emoji = data.get("emoji") or {}
        return {
            name: url
            for name, url in emoji.items()
            if isinstance(url, str) and url.startswith(("http://", "https://"))
        }

    async def thread_replies(
        self,
        token: str,
        channel_id: str,
        thread_ts: str,
        limit: int = 1,
        inclusive: bool = True,
    ) -> dict | None:
        """First message of a thread (the parent), or None if the thread is empty."""
        params = {
            "channel": channel_id,
            "ts": thread_ts,
            "limit": str(limit),
            "inclusive": "true" if inclusive else "false",
        }
        data = await self._call("conversations.replies", token, params)
        messages = data.get("messages") or []
        return messages[0] if messages else None
