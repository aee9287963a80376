"""API clients for the messaging platform."""

from .base import ApiClientError, ApiError, DecodeError, NetworkError
from .slack import SlackApiClient

__all__ = [
    "ApiClientError",
    "ApiError",
    "DecodeError",
    "NetworkError",
    "SlackApiClient",
]
