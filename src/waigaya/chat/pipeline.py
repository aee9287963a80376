"""Turn raw Slack events into display-ready messages and reactions."""

import logging
from collections.abc import Callable

from ..api.base import ApiClientError
from ..api.slack import SlackApiClient
from ..core.state import SharedState
from .images import ImageResolver
from .mentions import resolve_mentions
from .models import SlackMessage, SlackReaction
from .users import UserDirectory, author_icon, author_name

logger = logging.getLogger(__name__)

REACTION_ACTIONS = {
    "reaction_added": "added",
    "reaction_removed": "removed",
}

# Thread parents are shown as a short quote above the reply
REPLY_PREVIEW_CHARS = 50


class EventPipeline:
    """Filters events by the watch list and enriches the ones that pass.

    Results go out through ``on_message`` / ``on_reaction``. Those callbacks are
    fire-and-forget: failures are logged, never raised back into the transport.
    """

    def __init__(
        self,
        state: SharedState,
        api: SlackApiClient,
        on_message: Callable[[SlackMessage], None],
        on_reaction: Callable[[SlackReaction], None],
        users: UserDirectory | None = None,
        images: ImageResolver | None = None,
    ) -> None:
        self._state = state
        self._api = api
        self._on_message = on_message
        self._on_reaction = on_reaction
        self._users = users or UserDirectory(state, api)
        self._images = images or ImageResolver(lambda: api.session)

    async def handle_event(self, event: dict) -> None:
        """Process one ``payload.event`` from an events_api envelope."""
        event_type = event.get("type")
        if event_type in REACTION_ACTIONS:
            await self._handle_reaction(event)
        elif event_type == "message":
            await self._handle_message(event)

    async def _handle_reaction(self, event: dict) -> None:
        item = event.get("item") or {}
        channel = item.get("channel")
        if not channel or not await self._state.is_watched(channel):
            return

        user = await self._users.lookup(event.get("user") or "")
        reaction = SlackReaction(
            action=REACTION_ACTIONS[event["type"]],
            reaction=event.get("reaction") or "",
            user=author_name(user),
            channel=channel,
            message_ts=item.get("ts") or "",
        )
        self._emit(self._on_reaction, reaction)

    async def _handle_message(self, event: dict) -> None:
        channel = event.get("channel")
        if not channel or not await self._state.is_watched(channel):
            return

        bot_token = await self._state.bot_token()
        text = await resolve_mentions(event.get("text") or "", self._users.lookup)
        user = await self._users.lookup(event.get("user") or "")

        ts = event.get("ts")
        thread_ts = event.get("thread_ts")
        reply_to_user = reply_to_text = None
        if thread_ts and thread_ts != ts:
            parent = await self._fetch_thread_parent(bot_token, channel, thread_ts)
            if parent is not None:
                reply_to_user, reply_to_text = parent

        images = await self._images.resolve_files(bot_token, event.get("files") or [])

        if not text and not images:
            logger.debug(f"Skipping empty message in {channel} (ts={ts})")
            return

        message = SlackMessage(
            text=text,
            user=author_name(user),
            user_icon=author_icon(user),
            channel=channel,
            timestamp=ts,
            thread_ts=thread_ts,
            reply_to_user=reply_to_user,
            reply_to_text=reply_to_text,
            images=images or None,
        )
        self._emit(self._on_message, message)
        logger.info(f"Forwarded message from {message.user}: {text[:50]}")

    async def _fetch_thread_parent(
        self, bot_token: str, channel: str, thread_ts: str
    ) -> tuple[str, str] | None:
        """(author name, preview text) of a thread's parent, or None if unavailable."""
        if not bot_token:
            return None
        try:
            parent = await self._api.thread_replies(bot_token, channel, thread_ts)
        except ApiClientError as e:
            logger.warning(f"Failed to fetch thread parent {thread_ts}: {e}")
            return None
        if parent is None:
            return None

        preview = (parent.get("text") or "")[:REPLY_PREVIEW_CHARS]
        parent_user = await self._users.lookup(parent.get("user") or "")
        preview = await resolve_mentions(preview, self._users.lookup)
        return author_name(parent_user), preview

    @staticmethod
    def _emit(callback: Callable, event) -> None:
        try:
            callback(event)
        except Exception as e:
            logger.error(f"Failed to deliver {type(event).__name__} to the display: {e}")
