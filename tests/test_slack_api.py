"""Tests for the Slack Web API client against a recorded-response session."""

import asyncio

import aiohttp
import pytest

from conftest import FakeResponse, FakeSession
from waigaya.api.base import ApiError, DecodeError, NetworkError
from waigaya.api.slack import SlackApiClient


def _client(handler):
    client = SlackApiClient()
    client._session = FakeSession(handler)
    return client


def _params(call):
    return call[2].get("params") or {}


# --- conversations.list ---


@pytest.mark.asyncio
async def test_list_channels_follows_cursor_pages():
    first = [{"id": f"C{i}", "name": f"ch{i}"} for i in range(1000)]
    second = [{"id": f"D{i}", "name": f"dm{i}", "is_private": True} for i in range(37)]

    def handler(method, url, kwargs):
        if _params((method, url, kwargs)).get("cursor") == "page2":
            return FakeResponse(json_data={"ok": True, "channels": second})
        return FakeResponse(
            json_data={
                "ok": True,
                "channels": first,
                "response_metadata": {"next_cursor": "page2"},
            }
        )

    client = _client(handler)
    channels = await client.list_channels("xoxb-test")

    assert len(channels) == 1037
    calls = client._session.calls
    assert len(calls) == 2
    assert calls[0][1] == "https://slack.com/api/conversations.list"
    assert _params(calls[0]) == {
        "types": "public_channel,private_channel",
        "exclude_archived": "true",
        "limit": "1000",
    }
    assert _params(calls[1])["cursor"] == "page2"
    assert calls[0][2]["headers"]["Authorization"] == "Bearer xoxb-test"


@pytest.mark.asyncio
async def test_list_channels_dedupes_by_id():
    def handler(method, url, kwargs):
        return FakeResponse(
            json_data={
                "ok": True,
                "channels": [{"id": "C1", "name": "general"}, {"id": "C1", "name": "dupe"}],
            }
        )

    channels = await _client(handler).list_channels("xoxb-test")
    assert [c.name for c in channels] == ["general"]


# --- error taxonomy ---


@pytest.mark.asyncio
async def test_ok_false_raises_api_error():
    client = _client(lambda *_: FakeResponse(json_data={"ok": False, "error": "invalid_auth"}))
    with pytest.raises(ApiError) as exc_info:
        await client.auth_test("xoxb-bad")
    assert exc_info.value.error == "invalid_auth"
    assert exc_info.value.method == "auth.test"


@pytest.mark.asyncio
async def test_connection_failure_raises_network_error():
    client = _client(lambda *_: aiohttp.ClientConnectionError("connection refused"))
    with pytest.raises(NetworkError):
        await client.auth_test("xoxb-test")


@pytest.mark.asyncio
async def test_timeout_raises_network_error():
    client = _client(lambda *_: asyncio.TimeoutError())
    with pytest.raises(NetworkError) as exc_info:
        await client.list_emojis("xoxb-test")
    assert "TimeoutError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_object_body_raises_decode_error():
    client = _client(lambda *_: FakeResponse(status=502, json_data=["not", "an", "object"]))
    with pytest.raises(DecodeError):
        await client.auth_test("xoxb-test")


@pytest.mark.asyncio
async def test_html_body_raises_decode_error():
    # safe_json yields None for an HTML error page
    client = _client(lambda *_: FakeResponse(status=503, json_data=None))
    with pytest.raises(DecodeError):
        await client.channel_info("xoxb-test", "C1")


@pytest.mark.asyncio
async def test_invalid_utf8_body_raises_decode_error():
    error = UnicodeDecodeError("utf-8", b"\xff\xfe{bad", 0, 1, "invalid start byte")
    client = _client(lambda *_: FakeResponse(json_error=error))
    with pytest.raises(DecodeError):
        await client.list_channels("xoxb-test")


@pytest.mark.asyncio
async def test_auth_test_uses_post():
    client = _client(lambda *_: FakeResponse(json_data={"ok": True, "user": "bot"}))
    await client.auth_test("xoxb-test")
    assert client._session.calls[0][0] == "POST"


# --- apps.connections.open ---


@pytest.mark.asyncio
async def test_open_connection_returns_url():
    client = _client(
        lambda *_: FakeResponse(json_data={"ok": True, "url": "wss://wss.slack.test/link"})
    )
    assert await client.open_connection("xapp-test") == "wss://wss.slack.test/link"
    method, url, kwargs = client._session.calls[0]
    assert method == "POST"
    assert url == "https://slack.com/api/apps.connections.open"
    assert kwargs["headers"]["Authorization"] == "Bearer xapp-test"


@pytest.mark.asyncio
async def test_open_connection_without_url_raises_decode_error():
    client = _client(lambda *_: FakeResponse(json_data={"ok": True}))
    with pytest.raises(DecodeError):
        await client.open_connection("xapp-test")


# --- emoji.list / users.list ---


@pytest.mark.asyncio
async def test_list_emojis_drops_aliases():
    emoji = {
        "party": "https://emoji.test/party.gif",
        "partyparrot": "alias:party",
        "shipit": "https://emoji.test/shipit.png",
    }
    client = _client(lambda *_: FakeResponse(json_data={"ok": True, "emoji": emoji}))
    assert await client.list_emojis("xoxb-test") == {
        "party": "https://emoji.test/party.gif",
        "shipit": "https://emoji.test/shipit.png",
    }


@pytest.mark.asyncio
async def test_list_users_keeps_members_with_profile():
    members = [
        {"id": "U1", "name": "alice", "profile": {}},
        {"id": "U2", "name": "no-profile"},
        {"name": "no-id", "profile": {}},
    ]
    client = _client(lambda *_: FakeResponse(json_data={"ok": True, "members": members}))
    users = await client.list_users("xoxb-test")
    assert [u["id"] for u in users] == ["U1"]


# --- conversations.info / replies ---


@pytest.mark.asyncio
async def test_channel_info_parses_snapshot():
    client = _client(
        lambda *_: FakeResponse(
            json_data={
                "ok": True,
                "channel": {"id": "C1", "name": "general", "is_private": False, "is_member": True},
            }
        )
    )
    channel = await client.channel_info("xoxb-test", "C1")
    assert channel.name == "general"
    assert channel.is_member is True
    assert _params(client._session.calls[0]) == {"channel": "C1"}


@pytest.mark.asyncio
async def test_thread_replies_returns_parent():
    parent = {"ts": "100.0", "user": "U1", "text": "parent"}
    reply = {"ts": "101.0", "user": "U2", "text": "reply"}
    client = _client(
        lambda *_: FakeResponse(json_data={"ok": True, "messages": [parent, reply]})
    )
    assert await client.thread_replies("xoxb-test", "C1", "100.0") == parent
    assert _params(client._session.calls[0]) == {
        "channel": "C1",
        "ts": "100.0",
        "limit": "1",
        "inclusive": "true",
    }


@pytest.mark.asyncio
async def test_thread_replies_empty_thread_returns_none():
    client = _client(lambda *_: FakeResponse(json_data={"ok": True, "messages": []}))
    assert await client.thread_replies("xoxb-test", "C1", "100.0") is None

