"""Slack event ingestion: transport, enrichment and the connection manager."""

from .manager import SlackManager
from .models import ImageData, SlackMessage, SlackReaction
from .worker import SlackWorker

__all__ = [
    "ImageData",
    "SlackManager",
    "SlackMessage",
    "SlackReaction",
    "SlackWorker",
]
