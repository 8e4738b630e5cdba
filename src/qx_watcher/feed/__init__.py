"""Realtime event feed: insertion fan-out and client-side merge."""

from .broadcast import InsertionBroadcaster
from .live import EventFeed, LiveFeed

__all__ = ["InsertionBroadcaster", "EventFeed", "LiveFeed"]
