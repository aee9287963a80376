"""Core models, settings and persistence for Waigaya."""

from .models import SlackChannel
from .settings import DEFAULT_CHANNEL_NAME, SlackConfig
from .state import SharedState
from .storage import JsonStorage, StorageError

__all__ = [
    "DEFAULT_CHANNEL_NAME",
    "JsonStorage",
    "SharedState",
    "SlackChannel",
    "SlackConfig",
    "StorageError",
]
