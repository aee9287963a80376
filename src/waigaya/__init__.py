"""Waigaya - Slack live-activity ingestion for the desktop display."""

from .__version__ import __version__

__all__ = ["__version__"]
