"""Shared mutable state for the Slack client, guarded by one reader/writer lock."""

import asyncio
import logging

import aiorwlock

from .settings import DEFAULT_CHANNEL_NAME, SlackConfig

logger = logging.getLogger(__name__)


class SharedState:
    """Config, watch list, caches and connection flag for one SlackManager.

    Every access goes through ``read()`` or ``write()``. Critical sections must
    not await network or disk I/O: copy what is needed out under the lock, do
    the I/O, then write results back under a fresh lock.
    """

    def __init__(self) -> None:
        self.config = SlackConfig()
        self.user_cache: dict[str, dict] = {}
        self.emoji_cache: dict[str, str] = {}
        self.current_channel_name: str = DEFAULT_CHANNEL_NAME
        self.is_connected: bool = False
        # Set by whoever supersedes or stops the running transport
        self.socket_cancel: asyncio.Event | None = None
        self._lock: aiorwlock.RWLock | None = None

    @property
    def lock(self) -> aiorwlock.RWLock:
        # Created lazily so the lock binds to the loop that first uses it
        if self._lock is None:
            self._lock = aiorwlock.RWLock()
        return self._lock

    def read(self):
        """Shared (reader) lock context manager."""
        return self.lock.reader_lock

    def write(self):
        """Exclusive (writer) lock context manager."""
        return self.lock.writer_lock

    async def tokens(self) -> tuple[str, str]:
        """Copy out (bot_token, app_token)."""
        async with self.read():
            return self.config.bot_token, self.config.app_token

    async def bot_token(self) -> str:
        async with self.read():
            return self.config.bot_token

    async def is_watched(self, channel_id: str) -> bool:
        async with self.read():
            return self.config.is_watched(channel_id)

    async def config_snapshot(self) -> SlackConfig:
        async with self.read():
            return self.config.copy()
