"""Settings management for Waigaya."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from appdirs import user_data_dir

from .models import SlackChannel

logger = logging.getLogger(__name__)

APP_NAME = "waigaya"
APP_AUTHOR = "waigaya"

# Shown on the display while no channel is watched
DEFAULT_CHANNEL_NAME = "waigaya"

# Socket Mode requires an app-level token
APP_TOKEN_PREFIX = "xapp-"


def get_data_dir() -> Path:
    """Get the data directory."""
    path = Path(user_data_dir(APP_NAME, APP_AUTHOR))
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class SlackConfig:
    """Slack credentials plus the watched channel list.

    ``channels`` is the ordered watch list and ``watched_channel_data`` holds a
    snapshot for every watched id. Both are kept in step by ``add_channel``,
    ``remove_channel`` and ``merged``.
    """

    bot_token: str = ""
    app_token: str = ""
    channels: list[str] = field(default_factory=list)
    watched_channel_data: dict[str, SlackChannel] = field(default_factory=dict)

    def copy(self) -> "SlackConfig":
        """Return an independent snapshot (channel snapshots are immutable)."""
        return SlackConfig(
            bot_token=self.bot_token,
            app_token=self.app_token,
            channels=list(self.channels),
            watched_channel_data=dict(self.watched_channel_data),
        )

    def merged(self, update: "SlackConfig") -> "SlackConfig":
        """Merge a partially filled config over this one.

        Empty fields in ``update`` mean "unset" and keep the current value.
        A non-empty ``channels`` list replaces the watch list.
        """
        merged = SlackConfig(
            bot_token=update.bot_token or self.bot_token,
            app_token=update.app_token or self.app_token,
            channels=_unique(update.channels) if update.channels else list(self.channels),
            watched_channel_data=dict(
                update.watched_channel_data or self.watched_channel_data
            ),
        )
        merged._sync_channel_data()
        return merged

    def is_watched(self, channel_id: str) -> bool:
        return channel_id in self.watched_channel_data

    def add_channel(self, channel: SlackChannel) -> None:
        if channel.id not in self.channels:
            self.channels.append(channel.id)
        self.watched_channel_data[channel.id] = channel

    def remove_channel(self, channel_id: str) -> bool:
        """Remove a channel from the watch list. Returns False if it wasn't watched."""
        if channel_id not in self.channels:
            return False
        self.channels.remove(channel_id)
        self.watched_channel_data.pop(channel_id, None)
        return True

    def first_channel_name(self) -> str | None:
        """Name of the first watched channel, if any."""
        if not self.channels:
            return None
        return self.watched_channel_data[self.channels[0]].name

    def _sync_channel_data(self) -> None:
        """Make the snapshot map's keys match the watch list exactly."""
        data = {}
        for channel_id in self.channels:
            data[channel_id] = self.watched_channel_data.get(channel_id) or SlackChannel.unknown(
                channel_id
            )
        dropped = set(self.watched_channel_data) - set(data)
        if dropped:
            logger.debug(f"Dropping snapshots for unwatched channels: {sorted(dropped)}")
        self.watched_channel_data = data

    def to_dict(self) -> dict:
        return {
            "bot_token": self.bot_token,
            "app_token": self.app_token,
            "channels": list(self.channels),
            "watched_channel_data": {
                cid: ch.to_dict() for cid, ch in self.watched_channel_data.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SlackConfig":
        """Create a config from a dictionary, skipping malformed entries."""
        config = cls()
        config.bot_token = str(data.get("bot_token") or "")
        config.app_token = str(data.get("app_token") or "")

        channels = data.get("channels") or []
        if isinstance(channels, list):
            config.channels = _unique(str(c) for c in channels if c)

        raw_data = data.get("watched_channel_data") or {}
        if isinstance(raw_data, dict):
            for channel_id, raw in raw_data.items():
                try:
                    config.watched_channel_data[channel_id] = SlackChannel.from_dict(raw)
                except (KeyError, TypeError, AttributeError) as e:
                    logger.warning(f"Ignoring malformed channel snapshot {channel_id}: {e}")

        config._sync_channel_data()
        return config


def _unique(ids) -> list[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(ids))
