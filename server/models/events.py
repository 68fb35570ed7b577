"""
Outbound event definitions for UNO rooms.

The game engine never talks to sockets. Each state transition records one
or more GameEvents through the emitter installed by its Room; the Room then
delivers them either to a single player (targeted) or to every seated
player (broadcast).

Events are plain data so they can be logged, asserted on in tests, and
converted to client messages with to_message().
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Any


class EventType(str, Enum):
    """All event types the engine emits."""

    # Lifecycle events
    GAME_STARTED = "game_started"
    CARDS_DEALT = "cards_dealt"
    GAME_OVER = "game_over"

    # Gameplay events
    CARDS_DRAWN = "cards_drawn"
    CARD_PLAYED = "card_played"
    PLAY_REJECTED = "play_rejected"

    # UNO call events
    UNO_CALLED = "uno_called"
    UNO_CAUGHT = "uno_caught"
    UNO_FORGOTTEN = "uno_forgotten"


# Events only ever delivered to the player they concern
TARGETED_EVENTS = frozenset({EventType.CARDS_DRAWN, EventType.PLAY_REJECTED})


@dataclass
class GameEvent:
    """
    A single outbound event.

    Attributes:
        event_type: The type of event (from EventType enum).
        player_id: ID of the player the event is about (actor or target).
        data: Event-specific payload.
        timestamp: When the event occurred (UTC).
    """

    event_type: EventType
    player_id: Optional[str] = None
    data: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_targeted(self) -> bool:
        """True if only player_id should receive this event."""
        return self.event_type in TARGETED_EVENTS

    def to_message(self) -> dict:
        """Convert to a JSON-serializable client message."""
        return {"type": self.event_type.value, **self.data}

    def to_dict(self) -> dict:
        """Serialize event for logging."""
        return {
            "event_type": self.event_type.value,
            "player_id": self.player_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


# =============================================================================
# Event Factory Functions
# =============================================================================


def game_started(player_order: list[str], first_card: dict, current_color: str) -> GameEvent:
    """Emitted once the opening discard is placed, before dealing."""
    return GameEvent(
        event_type=EventType.GAME_STARTED,
        data={
            "player_order": player_order,
            "first_card": first_card,
            "current_color": current_color,
        },
    )


def cards_dealt(round_num: int, total_rounds: int) -> GameEvent:
    """Emitted after each one-card-per-player dealing round."""
    return GameEvent(
        event_type=EventType.CARDS_DEALT,
        data={"round": round_num, "total_rounds": total_rounds},
    )


def cards_drawn(player_id: str, cards: list[dict], reason: str) -> GameEvent:
    """
    Emitted to the player who received cards.

    Args:
        player_id: Recipient.
        cards: Card dicts that were added to the hand.
        reason: deal, draw, uno_forgotten or uno_caught.
    """
    return GameEvent(
        event_type=EventType.CARDS_DRAWN,
        player_id=player_id,
        data={"cards": cards, "reason": reason},
    )


def card_played(
    player_id: str,
    player_name: str,
    card: dict,
    count: int,
    chosen_color: str,
) -> GameEvent:
    """Emitted when a play lands; card is the last card of the play."""
    return GameEvent(
        event_type=EventType.CARD_PLAYED,
        player_id=player_id,
        data={
            "player_id": player_id,
            "player_name": player_name,
            "card": card,
            "count": count,
            "chosen_color": chosen_color,
        },
    )


def play_rejected(player_id: str, reason: str) -> GameEvent:
    """Emitted to a player whose play broke a rule they can be told about."""
    return GameEvent(
        event_type=EventType.PLAY_REJECTED,
        player_id=player_id,
        data={"reason": reason},
    )


def uno_called(player_id: str, player_name: str) -> GameEvent:
    return GameEvent(
        event_type=EventType.UNO_CALLED,
        player_id=player_id,
        data={"player_id": player_id, "player_name": player_name},
    )


def uno_caught(
    catcher_id: str,
    catcher_name: str,
    target_id: str,
    target_name: str,
) -> GameEvent:
    return GameEvent(
        event_type=EventType.UNO_CAUGHT,
        player_id=target_id,
        data={
            "catcher_id": catcher_id,
            "catcher_name": catcher_name,
            "target_id": target_id,
            "target_name": target_name,
        },
    )


def uno_forgotten(player_id: str, player_name: str) -> GameEvent:
    return GameEvent(
        event_type=EventType.UNO_FORGOTTEN,
        player_id=player_id,
        data={"player_id": player_id, "player_name": player_name},
    )


def game_over(winner_id: str, winner_name: str, scores: list[dict[str, Any]]) -> GameEvent:
    """Emitted when a player empties their hand."""
    return GameEvent(
        event_type=EventType.GAME_OVER,
        player_id=winner_id,
        data={
            "winner": {"id": winner_id, "name": winner_name},
            "scores": scores,
        },
    )
