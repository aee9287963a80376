"""Shared test fixtures and network stand-ins for waigaya tests."""

import asyncio
import json

import aiohttp
import pytest

from waigaya.api.base import ApiError
from waigaya.core.models import SlackChannel
from waigaya.core.settings import SlackConfig
from waigaya.core.state import SharedState

# --- HTTP stand-ins ---


class FakeResponse:
    """Minimal aiohttp response usable as ``async with session.get(...)``."""

    def __init__(self, status=200, json_data=None, body=b"", headers=None, json_error=None):
        self.status = status
        self.headers = headers or {}
        self._json = json_data
        self._body = body
        self._json_error = json_error

    async def json(self, content_type="application/json"):
        if self._json_error is not None:
            raise self._json_error
        return self._json

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeWebSocket:
    """Socket Mode WebSocket fed from a queue of aiohttp.WSMessage frames."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.pongs: list = []
        self.closed = False

    def feed(self, msg_type, data=None):
        self.incoming.put_nowait(aiohttp.WSMessage(msg_type, data, None))

    def feed_json(self, payload):
        self.feed(aiohttp.WSMsgType.TEXT, json.dumps(payload))

    async def receive(self):
        return await self.incoming.get()

    async def send_str(self, data):
        self.sent.append(json.loads(data))

    async def pong(self, data=b""):
        self.pongs.append(data)

    async def close(self):
        self.closed = True


class FakeSession:
    """Records requests and answers them through ``handler(method, url, kwargs)``."""

    def __init__(self, handler=None):
        self.handler = handler
        self.calls: list[tuple[str, str, dict]] = []
        self.websockets: list[FakeWebSocket] = []
        self.pending_ws: list[FakeWebSocket] = []
        self.closed = False

    def get(self, url, **kwargs):
        return self._request("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, kwargs)

    def _request(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        result = self.handler(method, url, kwargs)
        if isinstance(result, Exception):
            raise result
        return result

    async def ws_connect(self, url, **kwargs):
        self.calls.append(("WS", url, kwargs))
        ws = self.pending_ws.pop(0) if self.pending_ws else FakeWebSocket()
        self.websockets.append(ws)
        return ws

    async def close(self):
        self.closed = True


# --- Slack API stand-in ---


class FakeSlackApi:
    """In-memory replacement for SlackApiClient."""

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.channels: dict[str, SlackChannel] = {}
        self.emojis: dict[str, str] = {}
        self.thread_parents: dict[str, dict] = {}
        self.auth_error: Exception | None = None
        self.open_error: Exception | None = None
        self.thread_error: Exception | None = None
        # Awaited inside auth_test, lets a test run code mid-connect
        self.auth_hook = None
        self.user_info_calls: list[str] = []
        self.thread_calls: list[tuple[str, str]] = []
        self.session = FakeSession()
        self.closed = False

    async def auth_test(self, token):
        if self.auth_hook is not None:
            await self.auth_hook()
        if self.auth_error is not None:
            raise self.auth_error
        return {"ok": True, "user": "waigaya-bot", "team": "Test"}

    async def open_connection(self, app_token):
        if self.open_error is not None:
            raise self.open_error
        return "wss://wss.slack.test/link/?ticket=1"

    async def list_channels(self, token):
        return list(self.channels.values())

    async def channel_info(self, token, channel_id):
        if channel_id not in self.channels:
            raise ApiError("conversations.info", "channel_not_found")
        return self.channels[channel_id]

    async def list_users(self, token):
        return list(self.users.values())

    async def user_info(self, token, user_id):
        self.user_info_calls.append(user_id)
        return self.users.get(user_id)

    async def list_emojis(self, token):
        return dict(self.emojis)

    async def thread_replies(self, token, channel_id, thread_ts, limit=1, inclusive=True):
        self.thread_calls.append((channel_id, thread_ts))
        if self.thread_error is not None:
            raise self.thread_error
        return self.thread_parents.get(thread_ts)

    async def close(self):
        self.closed = True


class StubImages:
    """ImageResolver stand-in returning a fixed list for messages with files."""

    def __init__(self, images=None):
        self.images = images or []
        self.calls: list[list] = []

    async def resolve_files(self, bot_token, files):
        self.calls.append(files)
        return list(self.images) if files else []


def make_user(user_id, name, real_name="", display_name="", image_72=""):
    profile = {"display_name": display_name}
    if image_72:
        profile["image_72"] = image_72
    return {"id": user_id, "name": name, "real_name": real_name, "profile": profile}


# --- Fixtures ---


@pytest.fixture
def general_channel():
    return SlackChannel(id="C1", name="general", is_private=False, is_member=True)


@pytest.fixture
def random_channel():
    return SlackChannel(id="C2", name="random", is_private=False, is_member=True)


@pytest.fixture
def fake_api(general_channel, random_channel):
    api = FakeSlackApi()
    api.channels = {"C1": general_channel, "C2": random_channel}
    api.users = {
        "U1": make_user("U1", "alice", real_name="Alice Liddell", display_name="alice",
                        image_72="https://avatars.test/alice_72.png"),
        "U2": make_user("U2", "bob", real_name="Bob"),
    }
    return api


@pytest.fixture
def watched_state(general_channel):
    """State with both tokens set and #general watched."""
    state = SharedState()
    state.config = SlackConfig(
        bot_token="xoxb-test",
        app_token="xapp-test",
        channels=["C1"],
        watched_channel_data={"C1": general_channel},
    )
    state.current_channel_name = "general"
    return state


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
