"""Stores package for UNO room persistence."""

from .state_cache import StateCache, get_state_cache, close_state_cache

__all__ = [
    "StateCache",
    "get_state_cache",
    "close_state_cache",
]
