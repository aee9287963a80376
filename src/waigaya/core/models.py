"""Core data models for Waigaya."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

UNKNOWN_CHANNEL_NAME = "unknown"


@dataclass(frozen=True)
class SlackChannel:
    """Snapshot of a Slack conversation as returned by conversations.info/list."""

    id: str
    name: str
    is_private: Optional[bool] = None
    is_member: Optional[bool] = None

    @classmethod
    def unknown(cls, channel_id: str) -> "SlackChannel":
        """Placeholder for a channel whose info could not be fetched."""
        return cls(id=channel_id, name=UNKNOWN_CHANNEL_NAME)

    @classmethod
    def from_api(cls, data: dict) -> "SlackChannel":
        """Build a snapshot from a Slack conversation object."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", UNKNOWN_CHANNEL_NAME),
            is_private=bool(data.get("is_private", False)),
            is_member=bool(data.get("is_member", False)),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SlackChannel":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", UNKNOWN_CHANNEL_NAME)),
            is_private=data.get("is_private"),
            is_member=data.get("is_member"),
        )


def _compact(value: Any) -> Any:
    """Drop None values recursively so results serialize like the host expects."""
    if isinstance(value, dict):
        return {k: _compact(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_compact(v) for v in value]
    return value


class _Result:
    """Mixin giving command results a host-facing dict form."""

    def to_dict(self) -> dict:
        return _compact(asdict(self))  # type: ignore[call-overload]


@dataclass
class ConnectionResult(_Result):
    """Outcome of connect / disconnect / test_connection."""

    success: bool
    error: Optional[str] = None


@dataclass
class ChannelListResult(_Result):
    success: bool
    channels: Optional[list[SlackChannel]] = None
    error: Optional[str] = None


@dataclass
class ChannelActionResult(_Result):
    """Outcome of adding or removing a watched channel."""

    success: bool
    error: Optional[str] = None
    message: Optional[str] = None


@dataclass
class CustomEmoji:
    name: str
    url: str


@dataclass
class EmojiListResult(_Result):
    success: bool
    emojis: Optional[list[CustomEmoji]] = None
    error: Optional[str] = None


@dataclass
class WatchedChannelsResult(_Result):
    ids: list[str] = field(default_factory=list)
    data: dict[str, SlackChannel] = field(default_factory=dict)


@dataclass
class CacheStatus(_Result):
    users: int = 0
    emojis: int = 0


@dataclass
class UsersReloadResult(_Result):
    success: bool
    count: Optional[int] = None
    error: Optional[str] = None


@dataclass
class LocalDataResult(_Result):
    """Outcome of pushing a persisted snapshot into an in-memory cache."""

    success: bool
    data: Optional[dict] = None
    error: Optional[str] = None


@dataclass
class SaveResult(_Result):
    success: bool
    error: Optional[str] = None


@dataclass
class ConfigLoadResult(_Result):
    success: bool
    config: Optional[dict] = None
    error: Optional[str] = None
