"""Identity cache lookups shared by the enrichment pipeline and mention resolver."""

import logging

from ..api.base import ApiClientError
from ..api.slack import SlackApiClient
from ..core.state import SharedState

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "unknown"


def unknown_user() -> dict:
    """Profile returned when a user can't be resolved."""
    return {"name": UNKNOWN_NAME, "profile": {}}


def author_name(user: dict) -> str:
    """Name shown next to messages and reactions."""
    return user.get("real_name") or user.get("name") or UNKNOWN_NAME


def author_icon(user: dict) -> str:
    profile = user.get("profile") or {}
    return profile.get("image_72") or profile.get("image_48") or ""


def mention_name(user: dict) -> str:
    """Name used for inline @mentions (prefers the Slack display name)."""
    profile = user.get("profile") or {}
    return (
        profile.get("display_name")
        or user.get("real_name")
        or profile.get("real_name")
        or user.get("name")
        or UNKNOWN_NAME
    )


class UserDirectory:
    """Cache-first user lookup backed by users.info."""

    def __init__(self, state: SharedState, api: SlackApiClient) -> None:
        self._state = state
        self._api = api

    async def lookup(self, user_id: str) -> dict:
        """Return the cached user, fetching and caching it on a miss.

        Never raises: lookup failures yield ``unknown_user()``.
        """
        async with self._state.read():
            cached = self._state.user_cache.get(user_id)
            bot_token = self._state.config.bot_token
        if cached is not None:
            return cached

        if not bot_token or not user_id:
            return unknown_user()

        try:
            user = await self._api.user_info(bot_token, user_id)
        except ApiClientError as e:
            logger.error(f"Failed to fetch user {user_id}: {e}")
            return unknown_user()
        if user is None:
            return unknown_user()

        async with self._state.write():
            self._state.user_cache[user_id] = user
        return user
