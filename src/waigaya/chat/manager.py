"""Slack manager - owns the shared state, the Socket Mode task and the host commands."""

import asyncio
import logging

import aiohttp
from PySide6.QtCore import QObject, Signal

from ..api.base import ApiClientError, ApiError
from ..api.slack import SlackApiClient
from ..core.models import (
    CacheStatus,
    ChannelActionResult,
    ChannelListResult,
    ConfigLoadResult,
    ConnectionResult,
    CustomEmoji,
    EmojiListResult,
    LocalDataResult,
    SaveResult,
    SlackChannel,
    UsersReloadResult,
    WatchedChannelsResult,
)
from ..core.settings import APP_TOKEN_PREFIX, DEFAULT_CHANNEL_NAME, SlackConfig
from ..core.state import SharedState
from ..core.storage import JsonStorage, StorageError
from .connections.socket_mode import SocketModeConnection
from .pipeline import EventPipeline
from .users import UserDirectory

logger = logging.getLogger(__name__)

MISSING_TOKENS_ERROR = "Both a bot token and an app token are required"
MISSING_BOT_TOKEN_ERROR = "Bot token is not configured"
NO_STORAGE_ERROR = "Storage is not configured"


class SlackManager(QObject):
    """Connection supervisor for one Slack workspace.

    All mutable state lives in a SharedState behind one reader/writer lock.
    Network and storage calls are made outside the lock. Results reach the
    display through the signals below; emitting is fire-and-forget.
    """

    # Enriched SlackMessage for the display queue
    message_ready = Signal(object)
    # SlackReaction
    reaction_ready = Signal(object)
    # Current channel name after the watch list changed
    channel_watch_changed = Signal(str)
    # {emoji name: url}
    emoji_snapshot_ready = Signal(dict)
    connection_changed = Signal(bool)

    def __init__(
        self,
        storage: JsonStorage | None = None,
        api: SlackApiClient | None = None,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._state = SharedState()
        self._api = api or SlackApiClient()
        self._storage = storage
        self._users = UserDirectory(self._state, self._api)
        self._pipeline = EventPipeline(
            self._state,
            self._api,
            on_message=self.message_ready.emit,
            on_reaction=self.reaction_ready.emit,
            users=self._users,
        )
        self._socket_task: asyncio.Task | None = None
        # Superseded transports that are still unwinding
        self._retired_tasks: set[asyncio.Task] = set()

    @property
    def state(self) -> SharedState:
        return self._state

    # --- Config ---

    async def update_config(self, config: SlackConfig) -> None:
        """Merge a partial config into the current one (empty fields are ignored)."""
        async with self._state.write():
            was_empty = not self._state.config.channels
            self._state.config = self._state.config.merged(config)
            if was_empty and self._state.config.channels:
                logger.info(f"Restored watched channels: {self._state.config.channels}")
                self._state.current_channel_name = self._state.config.first_channel_name()

    async def get_config(self) -> SlackConfig:
        return await self._state.config_snapshot()

    async def save_settings(self, config: SlackConfig) -> SaveResult:
        await self.update_config(config)
        if self._storage is None:
            return SaveResult(success=False, error=NO_STORAGE_ERROR)
        try:
            self._storage.save_config(await self.get_config())
        except StorageError as e:
            return SaveResult(success=False, error=str(e))
        return SaveResult(success=True)

    async def load_settings(self) -> ConfigLoadResult:
        """Load the stored config and merge it into the running one."""
        if self._storage is None:
            return ConfigLoadResult(success=False, error=NO_STORAGE_ERROR)
        try:
            config = self._storage.load_config()
        except StorageError as e:
            return ConfigLoadResult(success=False, error=str(e))
        if config is None:
            return ConfigLoadResult(success=True)
        await self.update_config(config)
        return ConfigLoadResult(success=True, config=config.to_dict())

    def _persist_config(self, config: SlackConfig) -> None:
        if self._storage is None:
            logger.debug("No storage configured, config not persisted")
            return
        try:
            self._storage.save_config(config)
        except StorageError as e:
            logger.error(f"Failed to save channel settings: {e}")

    # --- Connection ---

    async def is_connected(self) -> bool:
        async with self._state.read():
            return self._state.is_connected

    async def test_connection(self, config: SlackConfig | None = None) -> ConnectionResult:
        """Check both tokens and the Socket Mode handshake without connecting."""
        current = await self._state.config_snapshot()
        if config is not None:
            current = current.merged(config)
        bot_token, app_token = current.bot_token, current.app_token

        if not bot_token or not app_token:
            return ConnectionResult(success=False, error=MISSING_TOKENS_ERROR)

        try:
            identity = await self._api.auth_test(bot_token)
        except ApiError as e:
            return ConnectionResult(
                success=False, error=f"Bot token authentication failed: {e.error}"
            )
        except ApiClientError as e:
            return ConnectionResult(success=False, error=f"Bot token check failed: {e}")
        logger.info(f"Bot token OK: {identity.get('user')}")

        if not app_token.startswith(APP_TOKEN_PREFIX):
            return ConnectionResult(
                success=False, error=f"App token must start with '{APP_TOKEN_PREFIX}'"
            )

        try:
            await self._api.open_connection(app_token)
        except ApiClientError as e:
            return ConnectionResult(success=False, error=f"Socket Mode connection test failed: {e}")

        logger.info("Socket Mode connection test succeeded")
        return ConnectionResult(success=True)

    async def connect(self, config: SlackConfig | None = None) -> ConnectionResult:
        """Authenticate and start the Socket Mode transport in the background.

        Succeeds once the bot token is accepted. Socket Mode failures are only
        logged since the REST-backed commands keep working without it.
        """
        if config is not None:
            await self.update_config(config)
        bot_token, app_token = await self._state.tokens()

        if not bot_token or not app_token:
            return ConnectionResult(success=False, error=MISSING_TOKENS_ERROR)

        try:
            await self._api.auth_test(bot_token)
        except ApiError as e:
            return ConnectionResult(
                success=False, error=f"Bot token authentication failed: {e.error}"
            )
        except ApiClientError as e:
            return ConnectionResult(success=False, error=f"Connection error: {e}")

        logger.info("Bot token authenticated")
        cancel = asyncio.Event()
        async with self._state.write():
            previous = self._state.socket_cancel
            self._state.socket_cancel = cancel
            was_connected = self._state.is_connected
            self._state.is_connected = True
        if previous is not None:
            previous.set()
        if not was_connected:
            self.connection_changed.emit(True)
        self._persist_config(await self.get_config())

        if self._socket_task is not None and not self._socket_task.done():
            self._retired_tasks.add(self._socket_task)
            self._socket_task.add_done_callback(self._retired_tasks.discard)
        self._socket_task = asyncio.create_task(self._run_socket_mode(app_token, cancel))
        return ConnectionResult(success=True)

    async def disconnect(self) -> ConnectionResult:
        """Signal the transport to stop and mark the client disconnected right away."""
        async with self._state.write():
            cancel = self._state.socket_cancel
            self._state.socket_cancel = None
            was_connected = self._state.is_connected
            self._state.is_connected = False
        if cancel is not None:
            cancel.set()
        if was_connected:
            self.connection_changed.emit(False)
        logger.info("Slack disconnected")
        return ConnectionResult(success=True)

    async def _run_socket_mode(self, app_token: str, cancel: asyncio.Event) -> None:
        logger.info("Starting Socket Mode connection...")
        connection = SocketModeConnection(self._api, self._pipeline.handle_event)
        try:
            await connection.run(app_token, cancel)
        except (ApiClientError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Socket Mode connection failed (REST features still available): {e}")
            return

        async with self._state.write():
            is_current = self._state.socket_cancel is cancel
            if is_current:
                self._state.socket_cancel = None
                self._state.is_connected = False
        if is_current:
            logger.info("Socket Mode connection ended")
            self.connection_changed.emit(False)

    async def close(self) -> None:
        await self.disconnect()
        await self._api.close()

    # --- Channels ---

    async def get_channel_list(self) -> ChannelListResult:
        bot_token = await self._state.bot_token()
        if not bot_token:
            return ChannelListResult(success=False, error=MISSING_BOT_TOKEN_ERROR)
        try:
            channels = await self._api.list_channels(bot_token)
        except ApiClientError as e:
            return ChannelListResult(success=False, error=f"Failed to list channels: {e}")
        return ChannelListResult(success=True, channels=channels)

    async def get_channel_info(self, channel_id: str) -> SlackChannel:
        """Channel snapshot, or the "unknown" placeholder if it can't be fetched."""
        bot_token = await self._state.bot_token()
        if not bot_token:
            return SlackChannel.unknown(channel_id)
        try:
            channel = await self._api.channel_info(bot_token, channel_id)
        except ApiClientError as e:
            logger.error(f"Failed to fetch channel info for {channel_id}: {e}")
            return SlackChannel.unknown(channel_id)
        return channel or SlackChannel.unknown(channel_id)

    async def add_watch_channel(self, channel_id: str) -> ChannelActionResult:
        if await self._state.is_watched(channel_id):
            logger.warning(f"Channel already watched: {channel_id}")
            return ChannelActionResult(success=False, error="Channel is already being watched")

        channel = await self.get_channel_info(channel_id)
        if channel.is_member is False:
            logger.warning(f"Bot is not a member of #{channel.name}")
            return ChannelActionResult(
                success=False, error=f"The bot is not a member of #{channel.name}"
            )

        async with self._state.write():
            # Re-check: another command may have added it while we were fetching
            if self._state.config.is_watched(channel_id):
                return ChannelActionResult(success=False, error="Channel is already being watched")
            self._state.config.add_channel(channel)
            if len(self._state.config.channels) == 1:
                self._state.current_channel_name = channel.name
            config = self._state.config.copy()
            current_name = self._state.current_channel_name

        logger.info(f"Watching #{channel.name} ({channel_id})")
        self._persist_config(config)
        self.channel_watch_changed.emit(current_name)
        return ChannelActionResult(success=True, message=f"Now watching #{channel.name}")

    async def remove_watch_channel(self, channel_id: str) -> ChannelActionResult:
        async with self._state.write():
            if not self._state.config.remove_channel(channel_id):
                removed = False
            else:
                removed = True
                if not self._state.config.channels:
                    self._state.current_channel_name = DEFAULT_CHANNEL_NAME
            config = self._state.config.copy()
            current_name = self._state.current_channel_name

        if not removed:
            logger.warning(f"Channel not watched: {channel_id}")
            return ChannelActionResult(success=False, error="Channel is not being watched")

        logger.info(f"Stopped watching {channel_id}")
        self._persist_config(config)
        self.channel_watch_changed.emit(current_name)
        return ChannelActionResult(success=True, message="Stopped watching the channel")

    async def get_watched_channels(self) -> WatchedChannelsResult:
        async with self._state.read():
            return WatchedChannelsResult(
                ids=list(self._state.config.channels),
                data=dict(self._state.config.watched_channel_data),
            )

    async def get_current_channel_name(self) -> str:
        async with self._state.read():
            return self._state.current_channel_name

    # --- Users ---

    async def reload_users(self) -> UsersReloadResult:
        """Bulk-fetch all users, replace the identity cache and save a snapshot."""
        bot_token = await self._state.bot_token()
        if not bot_token:
            return UsersReloadResult(success=False, error=MISSING_BOT_TOKEN_ERROR)
        try:
            members = await self._api.list_users(bot_token)
        except ApiClientError as e:
            return UsersReloadResult(success=False, error=f"Failed to fetch users: {e}")

        users = {member["id"]: member for member in members}
        async with self._state.write():
            self._state.user_cache = dict(users)
        logger.info(f"Fetched {len(users)} users")

        if self._storage is not None:
            try:
                self._storage.save_users_blob(users)
            except StorageError as e:
                logger.error(f"Failed to save user data: {e}")
        return UsersReloadResult(success=True, count=len(users))

    async def get_users_count(self) -> int:
        async with self._state.read():
            return len(self._state.user_cache)

    async def load_local_users(self) -> LocalDataResult:
        """Replace the identity cache with the persisted snapshot."""
        if self._storage is None:
            return LocalDataResult(success=False, error=NO_STORAGE_ERROR)
        try:
            data = self._storage.load_users_blob()
        except StorageError as e:
            return LocalDataResult(success=False, error=str(e))
        users = {k: v for k, v in data.items() if isinstance(v, dict)}
        if not users:
            return LocalDataResult(success=False, error="No local user data found.")

        async with self._state.write():
            self._state.user_cache = users
        logger.info(f"Loaded {len(users)} users from local data")
        return LocalDataResult(success=True, data=data)

    # --- Emoji ---

    async def get_custom_emojis(self) -> EmojiListResult:
        """Fetch custom emoji, replace the cache, save a snapshot and notify the display."""
        bot_token = await self._state.bot_token()
        if not bot_token:
            return EmojiListResult(success=False, error=MISSING_BOT_TOKEN_ERROR)
        try:
            emojis = await self._api.list_emojis(bot_token)
        except ApiClientError as e:
            return EmojiListResult(success=False, error=f"Failed to fetch emoji: {e}")

        async with self._state.write():
            self._state.emoji_cache = dict(emojis)
        logger.info(f"Fetched {len(emojis)} custom emojis")

        if self._storage is not None:
            try:
                self._storage.save_emojis_blob(emojis)
            except StorageError as e:
                logger.error(f"Failed to save emoji data: {e}")
        self.emoji_snapshot_ready.emit(dict(emojis))

        return EmojiListResult(
            success=True,
            emojis=[CustomEmoji(name=name, url=url) for name, url in emojis.items()],
        )

    async def save_emojis_data(self, data: dict) -> SaveResult:
        if self._storage is None:
            return SaveResult(success=False, error=NO_STORAGE_ERROR)
        try:
            self._storage.save_emojis_blob(data)
        except StorageError as e:
            return SaveResult(success=False, error=str(e))
        return SaveResult(success=True)

    def get_emojis_last_updated(self) -> int | None:
        if self._storage is None:
            return None
        return self._storage.emojis_last_modified()

    async def load_local_emojis(self) -> LocalDataResult:
        """Replace the emoji cache with the persisted snapshot and notify the display."""
        if self._storage is None:
            return LocalDataResult(success=False, error=NO_STORAGE_ERROR)
        try:
            data = self._storage.load_emojis_blob()
        except StorageError as e:
            return LocalDataResult(success=False, error=str(e))
        emojis = {
            name: url
            for name, url in data.items()
            if isinstance(url, str) and url.startswith(("http://", "https://"))
        }
        if not emojis:
            return LocalDataResult(success=False, error="No local emoji data found.")

        async with self._state.write():
            self._state.emoji_cache = emojis
        logger.info(f"Loaded {len(emojis)} custom emojis from local data")
        self.emoji_snapshot_ready.emit(dict(emojis))
        return LocalDataResult(success=True, data=data)

    async def get_emoji_url(self, name: str) -> str | None:
        async with self._state.read():
            return self._state.emoji_cache.get(name)

    async def get_cache_status(self) -> CacheStatus:
        async with self._state.read():
            return CacheStatus(
                users=len(self._state.user_cache),
                emojis=len(self._state.emoji_cache),
            )
