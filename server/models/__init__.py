"""Models package for the UNO server."""

from .events import EventType, GameEvent, TARGETED_EVENTS

__all__ = [
    "EventType",
    "GameEvent",
    "TARGETED_EVENTS",
]
