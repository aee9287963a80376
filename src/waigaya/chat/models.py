"""Presentation events handed to the display."""

from dataclasses import asdict, dataclass
from typing import Optional

# Tells the display queue to append the message
QUEUE_ACTION_ADD = "addToQueue"


@dataclass
class ImageData:
    """An inline image, already encoded as a data: URL."""

    data_url: str
    name: Optional[str] = None


@dataclass
class SlackMessage:
    """A fully enriched message, ready for the display."""

    text: str
    user: str  # Author display name
    user_icon: str
    channel: Optional[str] = None
    timestamp: Optional[str] = None
    thread_ts: Optional[str] = None
    reply_to_user: Optional[str] = None
    reply_to_text: Optional[str] = None
    images: Optional[list[ImageData]] = None
    queue_action: str = QUEUE_ACTION_ADD

    def to_dict(self) -> dict:
        d = asdict(self)
        if self.images is None:
            del d["images"]
        return d


@dataclass
class SlackReaction:
    """A reaction added to or removed from a message in a watched channel."""

    action: str  # "added" or "removed"
    reaction: str  # Emoji name without colons
    user: str
    channel: str
    message_ts: str

    def to_dict(self) -> dict:
        return asdict(self)
