"""
Card constants for UNO.

This module is the single source of truth for colors, card types, the
symbolic values carried by action cards, and point values used in the
end-of-game ranking.

Deck composition (108 cards):
    - Per color (red, yellow, green, blue):
        one 0, two each of 1-9, two each of skip / reverse / draw_two
    - 4 wild, 4 wild_draw_four

Scoring:
    - Number cards: face value
    - Skip, Reverse, Draw Two: 20 points
    - Wild, Wild Draw Four: 50 points
"""

from config import config


# =============================================================================
# Colors and Types
# =============================================================================

COLORS: tuple[str, ...] = ("red", "yellow", "green", "blue")
WILD_COLOR = "wild"

# Fallback when a wild is played without a usable color choice
DEFAULT_COLOR = COLORS[0]

NUMBER = "number"
SKIP = "skip"
REVERSE = "reverse"
DRAW_TWO = "draw_two"
WILD = "wild"
WILD_DRAW_FOUR = "wild_draw_four"

CARD_TYPES: tuple[str, ...] = (NUMBER, SKIP, REVERSE, DRAW_TWO, WILD, WILD_DRAW_FOUR)
ACTION_TYPES: frozenset[str] = frozenset({SKIP, REVERSE, DRAW_TWO})
WILD_TYPES: frozenset[str] = frozenset({WILD, WILD_DRAW_FOUR})

# Symbolic value carried by every non-number card; chain identity is (type, value)
SYMBOLIC_VALUES: dict[str, str] = {
    SKIP: "skip",
    REVERSE: "reverse",
    DRAW_TWO: "+2",
    WILD: "wild",
    WILD_DRAW_FOUR: "+4",
}

# Forced-draw amount each penalty card adds to the draw stack
DRAW_PENALTIES: dict[str, int] = {
    DRAW_TWO: 2,
    WILD_DRAW_FOUR: 4,
}


# =============================================================================
# Deck Composition
# =============================================================================

DECK_SIZE = 108
NUMBER_COPIES = 2          # copies of each of 1-9 per color (0 appears once)
ACTION_COPIES = 2          # copies of each action card per color
WILD_COPIES = 4            # copies of each wild type


# =============================================================================
# Point Values
# =============================================================================

ACTION_CARD_POINTS = 20
WILD_CARD_POINTS = 50

# Penalty for a forgotten or caught UNO call
UNO_PENALTY_CARDS = 2


# =============================================================================
# Game Constants
# =============================================================================

MAX_PLAYERS = config.MAX_PLAYERS_PER_ROOM
MIN_PLAYERS = 2
ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH
DEFAULT_STARTING_CARDS = config.game_defaults.starting_card_count
MIN_STARTING_CARDS = config.game_defaults.min_starting_cards
MAX_STARTING_CARDS = config.game_defaults.max_starting_cards
