"""Rewrite Slack user mentions (<@U123> / <@U123|label>) into display spans."""

import html
import re
from collections.abc import Awaitable, Callable

from .users import mention_name

# Matches <@U12345> and <@U12345|label>
MENTION_RE = re.compile(r"<@([UW][A-Z0-9]+)(?:\|[^>]*)?>")

MENTION_SPAN = '<span class="slack-mention">@{name}</span>'

UserLookup = Callable[[str], Awaitable[dict]]


def find_mentioned_ids(text: str) -> list[str]:
    """Distinct mentioned user ids in first-seen order."""
    return list(dict.fromkeys(m.group(1) for m in MENTION_RE.finditer(text)))


def render_mention(name: str) -> str:
    return MENTION_SPAN.format(name=html.escape(name, quote=True))


def replace_user_mentions(text: str, user_id: str, name: str) -> str:
    """Replace every mention of ``user_id`` (labelled or not) with its span."""
    pattern = re.compile(rf"<@{re.escape(user_id)}(?:\|[^>]*)?>")
    span = render_mention(name)
    return pattern.sub(lambda _m: span, text)


async def resolve_mentions(text: str, lookup: UserLookup) -> str:
    """Resolve every mention in ``text`` through ``lookup``.

    Each distinct user is looked up once; all of that user's mentions are
    replaced before moving to the next one.
    """
    for user_id in find_mentioned_ids(text):
        user = await lookup(user_id)
        text = replace_user_mentions(text, user_id, mention_name(user))
    return text
