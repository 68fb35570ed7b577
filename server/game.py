"""
Game logic for UNO.

This module implements the authoritative rules engine: card and deck
primitives, single-card and multi-card legality, the draw stack, turn order
with direction reversal, UNO call/catch penalties, and end-of-game ranking.

UNO Rules Summary (as enforced here):
    - Match the top discard by color, by number, or by action type; wilds
      always match and name the next color
    - Several cards sharing type and value may be laid down in one play
    - Draw Two / Wild Draw Four stack like-for-like; the first player who
      cannot (or will not) stack draws the whole stack
    - Going down to one card (or out) requires calling UNO first, otherwise
      the play is cancelled and the player draws 2
    - You cannot go out on an action or wild card

The Game never touches sockets. Every state change records GameEvents via
the emitter installed by its Room; public operations return True when state
changed and False when the request was ignored.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Callable, Sequence, Union

from constants import (
    COLORS,
    WILD_COLOR,
    DEFAULT_COLOR,
    NUMBER,
    SKIP,
    REVERSE,
    DRAW_TWO,
    WILD,
    WILD_DRAW_FOUR,
    SYMBOLIC_VALUES,
    DRAW_PENALTIES,
    NUMBER_COPIES,
    ACTION_COPIES,
    WILD_COPIES,
    ACTION_CARD_POINTS,
    WILD_CARD_POINTS,
    UNO_PENALTY_CARDS,
    MAX_PLAYERS,
    MIN_PLAYERS,
    DEFAULT_STARTING_CARDS,
    MIN_STARTING_CARDS,
    MAX_STARTING_CARDS,
)
from models import events
from models.events import GameEvent

logger = logging.getLogger(__name__)

CHIP_OUT_REASON = (
    "Cannot win with special cards (+2, +4, Wild, Reverse, Skip). "
    "You must finish with a number card!"
)


# =============================================================================
# Card Primitives
# =============================================================================


@dataclass(frozen=True)
class Card:
    """
    An immutable UNO card.

    Attributes:
        id: Identity assigned at deck construction (0-107), never regenerated.
        color: red, yellow, green, blue, or wild.
        type: number, skip, reverse, draw_two, wild, or wild_draw_four.
        value: Face value 0-9 for number cards, symbolic tag otherwise.
    """

    id: int
    color: str
    type: str
    value: Union[int, str]

    @property
    def is_number(self) -> bool:
        return self.type == NUMBER

    @property
    def is_wild(self) -> bool:
        return self.color == WILD_COLOR

    @property
    def chain_key(self) -> tuple[str, Union[int, str]]:
        """Cards with equal chain keys may be played together."""
        return (self.type, self.value)

    def to_dict(self) -> dict:
        """Convert card to a literal record for clients and snapshots."""
        return {
            "id": self.id,
            "color": self.color,
            "type": self.type,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        return cls(id=d["id"], color=d["color"], type=d["type"], value=d["value"])


def build_deck() -> list[Card]:
    """
    Build a fresh, unshuffled 108-card deck.

    Per color: one 0, two each of 1-9, then two rounds of skip / reverse /
    draw_two. Then four rounds of wild / wild_draw_four. Ids run 0..107 in
    that order.
    """
    cards: list[Card] = []
    next_id = 0

    def add(color: str, card_type: str, value: Union[int, str]) -> None:
        nonlocal next_id
        cards.append(Card(next_id, color, card_type, value))
        next_id += 1

    for color in COLORS:
        add(color, NUMBER, 0)
        for num in range(1, 10):
            for _ in range(NUMBER_COPIES):
                add(color, NUMBER, num)
        for _ in range(ACTION_COPIES):
            for card_type in (SKIP, REVERSE, DRAW_TWO):
                add(color, card_type, SYMBOLIC_VALUES[card_type])

    for _ in range(WILD_COPIES):
        add(WILD_COLOR, WILD, SYMBOLIC_VALUES[WILD])
        add(WILD_COLOR, WILD_DRAW_FOUR, SYMBOLIC_VALUES[WILD_DRAW_FOUR])

    return cards


def shuffle_deck(cards: Sequence[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Return a shuffled copy of cards (Fisher-Yates).

    For i from the last index down to 1, swap element i with a uniformly
    random element in [0, i]. The input sequence is not modified.
    """
    rng = rng or random
    shuffled = list(cards)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def can_play(card: Card, top_card: Card, current_color: Optional[str]) -> bool:
    """
    Check whether a single card may be played on the pile.

    Ignores the draw stack; stack-forced legality is can_stack().
    """
    if card.type in (WILD, WILD_DRAW_FOUR):
        return True

    if card.color == current_color:
        return True

    # Same action type (skip on skip, reverse on reverse, +2 on +2)
    if card.type != NUMBER and card.type == top_card.type:
        return True

    if card.type == NUMBER and top_card.type == NUMBER and card.value == top_card.value:
        return True

    return False


def can_stack(card: Card, top_card: Card) -> bool:
    """Check whether card may answer an active draw stack (like-for-like only)."""
    return (
        (top_card.type == DRAW_TWO and card.type == DRAW_TWO) or
        (top_card.type == WILD_DRAW_FOUR and card.type == WILD_DRAW_FOUR)
    )


def chain_compatible(cards: Sequence[Card]) -> bool:
    """Check that every card matches the first by (type, value)."""
    if len(cards) <= 1:
        return True
    first = cards[0]
    return all(card.chain_key == first.chain_key for card in cards[1:])


def card_points(card: Card) -> int:
    """Point value used for end-of-game tallies."""
    if card.type == NUMBER:
        return int(card.value)
    if card.type in (WILD, WILD_DRAW_FOUR):
        return WILD_CARD_POINTS
    return ACTION_CARD_POINTS


def hand_points(hand: Sequence[Card]) -> int:
    return sum(card_points(card) for card in hand)


_DISPLAY = {
    SKIP: "⊘",
    REVERSE: "↺",
    DRAW_TWO: "+2",
    WILD: "W",
    WILD_DRAW_FOUR: "+4",
}


def card_display(card: Card) -> str:
    """Short face label for a card (e.g. "7", "+2", "W")."""
    if card.type == NUMBER:
        return str(card.value)
    return _DISPLAY.get(card.type, "?")


def describe_card(card: Card) -> str:
    """Human-readable card name for logs (e.g. "red 7", "wild +4")."""
    return f"{card.color} {card.value if card.type == NUMBER else card.type}"


# =============================================================================
# Player & Phase
# =============================================================================


@dataclass
class Player:
    """
    A player seated in an UNO game.

    Hand order is insertion order; clients address cards by index.
    """

    id: str
    name: str
    hand: list[Card] = field(default_factory=list)

    def card_count(self) -> int:
        return len(self.hand)

    def hand_to_dict(self) -> list[dict]:
        return [card.to_dict() for card in self.hand]


class GamePhase(Enum):
    """
    Phases of an UNO game, derived from the game flags.

    Flow: WAITING -> DEALING -> PLAYING -> GAME_OVER (-> DEALING on rematch)
    """

    WAITING = "waiting"
    DEALING = "dealing"
    PLAYING = "playing"
    GAME_OVER = "game_over"


def normalize_card_count(value) -> int:
    """Parse a client-supplied starting hand size, clamped to the allowed range."""
    try:
        count = int(value)
    except (TypeError, ValueError):
        return DEFAULT_STARTING_CARDS
    if count <= 0:
        return DEFAULT_STARTING_CARDS
    return max(MIN_STARTING_CARDS, min(MAX_STARTING_CARDS, count))


# =============================================================================
# Game State Machine
# =============================================================================


@dataclass
class Game:
    """
    Main game state and rules controller for one UNO room.

    Attributes:
        players: Seated players; list order is turn order.
        deck: Draw pile (top of pile = end of list).
        discard_pile: Played cards (top = end of list).
        current_player_index: Index of the player whose turn it is.
        direction: +1 clockwise, -1 counter-clockwise.
        current_color: Color to match; always a base color once started.
        draw_stack: Pending forced draws from stacked +2 / +4 cards.
        uno_called_by: Players who have declared UNO.
        winner_id: ID of the player who went out, if any.
        game_started: Whether a game has been started in this room.
        has_drawn_this_turn: Whether the current player already drew.
        is_dealing: True while the initial deal is in progress.
        starting_card_count: Cards dealt to each player.
        deal_rounds_done: Completed one-card-per-player dealing rounds.
        room_code: Owning room, for log messages.
    """

    players: list[Player] = field(default_factory=list)
    deck: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    current_player_index: int = 0
    direction: int = 1
    current_color: Optional[str] = None
    draw_stack: int = 0
    uno_called_by: set = field(default_factory=set)
    winner_id: Optional[str] = None
    game_started: bool = False
    has_drawn_this_turn: bool = False
    is_dealing: bool = False
    starting_card_count: int = DEFAULT_STARTING_CARDS
    deal_rounds_done: int = 0
    room_code: str = ""

    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)
    _event_emitter: Optional[Callable[[GameEvent], None]] = field(
        default=None, repr=False, compare=False
    )

    def set_event_emitter(self, emitter: Callable[[GameEvent], None]) -> None:
        """
        Set callback for event emission.

        Args:
            emitter: Callback that receives each GameEvent as it occurs.
        """
        self._event_emitter = emitter

    def _emit(self, event: GameEvent) -> None:
        if self._event_emitter is not None:
            self._event_emitter(event)

    @property
    def phase(self) -> GamePhase:
        if not self.game_started:
            return GamePhase.WAITING
        if self.winner_id is not None:
            return GamePhase.GAME_OVER
        if self.is_dealing:
            return GamePhase.DEALING
        return GamePhase.PLAYING

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player: Player) -> bool:
        """
        Seat a player at the end of the turn order.

        Returns:
            True if added, False if the table is full or the ID is already seated.
        """
        if len(self.players) >= MAX_PLAYERS or self.get_player(player.id):
            return False
        self.players.append(player)
        return True

    def remove_player(self, player_id: str) -> Optional[Player]:
        """
        Remove a player from the table.

        During an active game the player's hand goes back under the deck so
        the 108-card total is preserved, and the turn pointer keeps pointing
        at whoever would have played next. If fewer than two players remain
        the game is abandoned and the table returns to the lobby.

        Args:
            player_id: The unique ID of the player to remove.

        Returns:
            The removed Player, or None if not found.
        """
        for i, player in enumerate(self.players):
            if player.id != player_id:
                continue

            removed = self.players.pop(i)
            self.uno_called_by.discard(player_id)

            if not self.game_started:
                return removed

            self.deck[0:0] = removed.hand
            removed.hand = []

            if len(self.players) < MIN_PLAYERS:
                logger.info(f"[Room {self.room_code}] Game abandoned, not enough players")
                self.reset()
                return removed

            if i < self.current_player_index:
                self.current_player_index -= 1
            elif i == self.current_player_index:
                self.has_drawn_this_turn = False
                if self.direction < 0:
                    self.current_player_index -= 1
            self.current_player_index %= len(self.players)
            return removed
        return None

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def rename_player(self, old_id: str, new_id: str) -> bool:
        """
        Re-key a seated player after they reconnect under a new connection ID.

        Returns:
            True if the player was found.
        """
        player = self.get_player(old_id)
        if not player:
            return False
        player.id = new_id
        if old_id in self.uno_called_by:
            self.uno_called_by.discard(old_id)
            self.uno_called_by.add(new_id)
        if self.winner_id == old_id:
            self.winner_id = new_id
        return True

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        if self.players:
            return self.players[self.current_player_index]
        return None

    def next_player(self) -> Optional[Player]:
        """Get the player who plays after the current one, ignoring skips."""
        if len(self.players) <= 1:
            return None
        n = len(self.players)
        return self.players[(self.current_player_index + self.direction + n) % n]

    @property
    def winner(self) -> Optional[Player]:
        if self.winner_id is None:
            return None
        return self.get_player(self.winner_id)

    def discard_top(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    def start_game(self, starting_card_count=None) -> bool:
        """
        Start (or restart) a game with the seated players.

        Builds and shuffles a fresh deck, turns the first discard (never a
        Wild Draw Four), applies its effect, and opens the dealing phase.
        Cards are handed out by deal_round() / deal_all().

        Args:
            starting_card_count: Cards per player; invalid values fall back
                to the configured default.

        Returns:
            True if the game started, False if fewer than 2 players.
        """
        if len(self.players) < MIN_PLAYERS:
            return False

        self.game_started = True
        self.deck = shuffle_deck(build_deck(), self.rng)
        self.discard_pile = []
        self.direction = 1
        self.current_player_index = 0
        self.draw_stack = 0
        self.uno_called_by = set()
        self.winner_id = None
        self.has_drawn_this_turn = False
        self.is_dealing = True
        self.starting_card_count = normalize_card_count(
            DEFAULT_STARTING_CARDS if starting_card_count is None else starting_card_count
        )
        self.deal_rounds_done = 0

        for player in self.players:
            player.hand = []

        # Never open on a Wild Draw Four
        while True:
            first_card = self.draw_from_deck()
            if first_card.type != WILD_DRAW_FOUR:
                break
            self.deck.append(first_card)
            self.deck = shuffle_deck(self.deck, self.rng)

        self.discard_pile.append(first_card)
        if first_card.is_wild:
            self.current_color = self.rng.choice(COLORS)
        else:
            self.current_color = first_card.color

        self._apply_first_card_effect(first_card)

        logger.info(
            f"[Room {self.room_code}] Game started with {len(self.players)} players, "
            f"first card {describe_card(first_card)}, color {self.current_color}"
        )
        self._emit(events.game_started(
            player_order=[p.id for p in self.players],
            first_card=first_card.to_dict(),
            current_color=self.current_color,
        ))
        return True

    def _apply_first_card_effect(self, card: Card) -> None:
        if card.type == SKIP:
            self.next_turn()
        elif card.type == REVERSE:
            self.direction *= -1
        elif card.type == DRAW_TWO:
            self.draw_stack = DRAW_PENALTIES[DRAW_TWO]
        # Plain wild: color was already randomized

    def deal_round(self) -> bool:
        """
        Deal one card to each player in seat order.

        Returns:
            True if a round was dealt, False if not dealing.
        """
        if not self.is_dealing:
            return False

        for player in self.players:
            card = self.draw_from_deck()
            if card is None:
                break
            player.hand.append(card)
            self._emit(events.cards_drawn(player.id, [card.to_dict()], "deal"))

        self.deal_rounds_done += 1
        self._emit(events.cards_dealt(self.deal_rounds_done, self.starting_card_count))

        if self.deal_rounds_done >= self.starting_card_count:
            self.is_dealing = False
        return True

    def deal_all(self) -> None:
        """Deal every remaining round at once (no pacing)."""
        while self.is_dealing:
            self.deal_round()

    def reset(self) -> None:
        """Return the table to pre-game defaults, keeping the seated players."""
        self.game_started = False
        self.deck = []
        self.discard_pile = []
        self.current_player_index = 0
        self.direction = 1
        self.current_color = None
        self.draw_stack = 0
        self.uno_called_by = set()
        self.winner_id = None
        self.has_drawn_this_turn = False
        self.is_dealing = False
        self.deal_rounds_done = 0
        for player in self.players:
            player.hand = []

    # -------------------------------------------------------------------------
    # Deck
    # -------------------------------------------------------------------------

    def draw_from_deck(self) -> Optional[Card]:
        """
        Take the top card of the draw pile.

        When the pile is empty, every discard except the top one is shuffled
        into a new draw pile first.

        Returns:
            The drawn Card, or None if no cards are left anywhere.
        """
        if not self.deck:
            self._reshuffle_discard_pile()
        if not self.deck:
            return None
        return self.deck.pop()

    def _reshuffle_discard_pile(self) -> None:
        if len(self.discard_pile) <= 1:
            return
        top_card = self.discard_pile.pop()
        self.deck = shuffle_deck(self.discard_pile, self.rng)
        self.discard_pile = [top_card]
        logger.debug(f"[Room {self.room_code}] Reshuffled {len(self.deck)} discards into deck")

    def _draw_cards(self, player: Player, count: int) -> list[Card]:
        """Move up to count cards into the player's hand; may come up short."""
        drawn = []
        for _ in range(count):
            card = self.draw_from_deck()
            if card is None:
                break
            player.hand.append(card)
            drawn.append(card)
        return drawn

    # -------------------------------------------------------------------------
    # Turn Actions
    # -------------------------------------------------------------------------

    def _can_act(self, player_id: str) -> bool:
        """Common turn preconditions: game running, not dealing, caller's turn."""
        if not self.game_started or self.is_dealing or self.winner_id is not None:
            return False
        current = self.current_player()
        return current is not None and current.id == player_id

    @staticmethod
    def _normalize_indices(card_indices, hand_size: int) -> Optional[list[int]]:
        if isinstance(card_indices, int) and not isinstance(card_indices, bool):
            card_indices = [card_indices]
        if not isinstance(card_indices, (list, tuple)) or not card_indices:
            return None
        indices = []
        for idx in card_indices:
            if not isinstance(idx, int) or isinstance(idx, bool):
                return None
            if not 0 <= idx < hand_size:
                return None
            indices.append(idx)
        if len(set(indices)) != len(indices):
            return None
        return indices

    def is_playable(self, card: Card) -> bool:
        """Check a card as the lead card of a play, honoring the draw stack."""
        top_card = self.discard_top()
        if top_card is None:
            return False
        if self.draw_stack > 0:
            return can_stack(card, top_card)
        return can_play(card, top_card, self.current_color)

    def has_legal_play(self, player: Player) -> bool:
        """
        Check whether a player could make any legal play right now.

        With an active draw stack only a stackable card counts. Otherwise a
        lone remaining action or wild card does not count, since it could
        never be played out.
        """
        top_card = self.discard_top()
        if player is None or top_card is None:
            return False

        if self.draw_stack > 0:
            return any(can_stack(card, top_card) for card in player.hand)

        for card in player.hand:
            if not can_play(card, top_card, self.current_color):
                continue
            if len(player.hand) == 1 and card.type != NUMBER:
                continue
            return True
        return False

    def play_card(
        self,
        player_id: str,
        card_indices: Union[int, Sequence[int]],
        chosen_color: Optional[str] = None,
    ) -> bool:
        """
        Play one card, or several identical cards, from the current player's hand.

        Cards land on the discard pile in the order given. The first card
        must be legal on the pile; the rest must match it by type and value.
        Effects of every card in the play are combined before the turn moves.

        Args:
            player_id: ID of the acting player.
            card_indices: Hand position(s) in the player's chosen order.
            chosen_color: Color named for a wild play.

        Returns:
            True if state changed (the play landed, or a forgotten-UNO
            penalty was applied), False if the play was ignored or rejected.
        """
        if not self._can_act(player_id):
            return False

        player = self.current_player()
        indices = self._normalize_indices(card_indices, len(player.hand))
        if indices is None:
            return False

        cards_to_play = [player.hand[idx] for idx in indices]

        if not chain_compatible(cards_to_play):
            logger.debug(f"[Room {self.room_code}] Play rejected: cards not compatible")
            return False

        first_card = cards_to_play[0]
        if not self.is_playable(first_card):
            logger.debug(
                f"[Room {self.room_code}] Play rejected: {describe_card(first_card)} not playable "
                f"on {describe_card(self.discard_top())} (color {self.current_color}, "
                f"stack {self.draw_stack})"
            )
            return False

        cards_remaining = len(player.hand) - len(cards_to_play)

        # Cannot chip out on an action or wild card
        if cards_remaining == 0 and any(card.type != NUMBER for card in cards_to_play):
            logger.debug(f"[Room {self.room_code}] {player.name} tried to chip out with special cards")
            self._emit(events.play_rejected(player.id, CHIP_OUT_REASON))
            return False

        if cards_remaining <= 1 and player.id not in self.uno_called_by:
            penalty = self._draw_cards(player, UNO_PENALTY_CARDS)
            logger.info(f"[Room {self.room_code}] {player.name} forgot to call UNO, +{len(penalty)} cards")
            self._emit(events.cards_drawn(player.id, [c.to_dict() for c in penalty], "uno_forgotten"))
            self._emit(events.uno_forgotten(player.id, player.name))
            return True

        for idx in sorted(indices, reverse=True):
            del player.hand[idx]
        self.discard_pile.extend(cards_to_play)

        if any(card.is_wild for card in cards_to_play):
            self.current_color = chosen_color if chosen_color in COLORS else DEFAULT_COLOR
        else:
            self.current_color = cards_to_play[-1].color

        if len(player.hand) != 1:
            self.uno_called_by.discard(player.id)

        if not player.hand:
            self.winner_id = player.id
            logger.info(f"[Room {self.room_code}] {player.name} won the game")
            self._emit(events.game_over(player.id, player.name, self.calculate_scores()))
            return True

        self._apply_play_effects(cards_to_play)

        logger.debug(
            f"[Room {self.room_code}] {player.name} played {len(cards_to_play)} card(s): "
            f"{', '.join(describe_card(c) for c in cards_to_play)}; "
            f"next {self.current_player().name}, direction {self.direction}"
        )
        self._emit(events.card_played(
            player_id=player.id,
            player_name=player.name,
            card=cards_to_play[-1].to_dict(),
            count=len(cards_to_play),
            chosen_color=self.current_color,
        ))
        return True

    def _apply_play_effects(self, cards: Sequence[Card]) -> None:
        """
        Combine the effects of every card in a play and advance the turn.

        Each skip adds a step, each +2/+4 feeds the draw stack, and each
        reverse flips direction (or acts as a skip with two players). With two
        players any skip makes the step count even, so the turn comes back.
        """
        two_players = len(self.players) == 2
        skip_steps = 0
        total_draw = 0
        reverse_flipped = False

        for card in cards:
            if card.type == SKIP:
                skip_steps += 1
            elif card.type in DRAW_PENALTIES:
                total_draw += DRAW_PENALTIES[card.type]
            elif card.type == REVERSE:
                if two_players:
                    skip_steps += 1
                else:
                    reverse_flipped = not reverse_flipped

        self.draw_stack += total_draw
        if reverse_flipped:
            self.direction *= -1

        steps = 1 + skip_steps
        if two_players and skip_steps > 0 and steps % 2 != 0:
            steps += 1

        for _ in range(steps):
            self.next_turn()

    def draw_card(self, player_id: str) -> bool:
        """
        Draw for the current player: the whole draw stack, or one card.

        Not allowed twice in a turn, nor while the player holds a legal play
        and no stack is pending. Drawing does not end the turn; the player
        then plays or passes.

        Returns:
            True if cards were drawn.
        """
        if not self._can_act(player_id) or self.has_drawn_this_turn:
            return False

        player = self.current_player()

        if self.draw_stack == 0 and self.has_legal_play(player):
            logger.debug(f"[Room {self.room_code}] {player.name} tried to draw with a playable card")
            return False

        count = self.draw_stack if self.draw_stack > 0 else 1
        self.draw_stack = 0

        drawn = self._draw_cards(player, count)
        self._emit(events.cards_drawn(player.id, [c.to_dict() for c in drawn], "draw"))

        self.uno_called_by.discard(player.id)
        self.has_drawn_this_turn = True
        return True

    def pass_turn(self, player_id: str) -> bool:
        """End the current player's turn; only allowed after drawing."""
        if not self._can_act(player_id):
            return False
        if not self.has_drawn_this_turn:
            logger.debug(f"[Room {self.room_code}] {player_id} tried to pass without drawing")
            return False
        self.next_turn()
        return True

    def call_uno(self, player_id: str) -> bool:
        """Declare UNO; any player holding at least one card may call."""
        player = self.get_player(player_id)
        if not player or not player.hand:
            return False
        self.uno_called_by.add(player_id)
        self._emit(events.uno_called(player.id, player.name))
        return True

    def catch_uno(self, catcher_id: str, target_id: str) -> bool:
        """
        Penalize a player sitting on one card without having called UNO.

        Returns:
            True if the target was caught and drew the penalty.
        """
        if not self.game_started or self.winner_id is not None:
            return False

        target = self.get_player(target_id)
        catcher = self.get_player(catcher_id)
        if not target or not catcher:
            return False
        if len(target.hand) != 1 or target_id in self.uno_called_by:
            return False

        penalty = self._draw_cards(target, UNO_PENALTY_CARDS)
        logger.info(f"[Room {self.room_code}] {catcher.name} caught {target.name} without UNO")
        self._emit(events.cards_drawn(target.id, [c.to_dict() for c in penalty], "uno_caught"))
        self._emit(events.uno_caught(catcher.id, catcher.name, target.id, target.name))
        return True

    def next_turn(self) -> None:
        """Advance the turn pointer one seat in the current direction."""
        n = len(self.players)
        if n == 0:
            return
        self.current_player_index = (self.current_player_index + self.direction + n) % n
        self.has_drawn_this_turn = False

    # -------------------------------------------------------------------------
    # Scoring & Projection
    # -------------------------------------------------------------------------

    def calculate_scores(self) -> list[dict]:
        """
        Rank every player: winner first, then fewest cards, then fewest points.

        Returns:
            List of dicts with id, name, hand_size and points.
        """
        scores = [
            {
                "id": p.id,
                "name": p.name,
                "hand_size": len(p.hand),
                "points": hand_points(p.hand),
            }
            for p in self.players
        ]
        return sorted(
            scores,
            key=lambda s: (s["id"] != self.winner_id, s["hand_size"], s["points"]),
        )

    def catchable_players(self, exclude: Optional[str] = None) -> list[Player]:
        """Players on one card who have not called UNO."""
        return [
            p for p in self.players
            if len(p.hand) == 1 and p.id not in self.uno_called_by and p.id != exclude
        ]

    def get_state(self, for_player_id: str) -> dict:
        """
        Get the game state as seen by one player.

        Their own hand is sent in full; opponents are reduced to card counts.

        Args:
            for_player_id: The player who will receive this state.

        Returns:
            Dict suitable for JSON serialization.
        """
        current = self.current_player()
        me = self.get_player(for_player_id)
        top_card = self.discard_top()

        players_data = [
            {
                "id": p.id,
                "name": p.name,
                "card_count": len(p.hand),
                "is_current_turn": current is not None and p.id == current.id,
                "uno_called": p.id in self.uno_called_by,
            }
            for p in self.players
        ]

        return {
            "room_code": self.room_code,
            "phase": self.phase.value,
            "current_player_id": current.id if current else None,
            "current_player_name": current.name if current else None,
            "direction": self.direction,
            "current_color": self.current_color,
            "top_card": top_card.to_dict() if top_card else None,
            "draw_stack": self.draw_stack,
            "deck_count": len(self.deck),
            "discard_count": len(self.discard_pile),
            "hand": me.hand_to_dict() if me else [],
            "has_drawn_this_turn": self.has_drawn_this_turn,
            "is_dealing": self.is_dealing,
            "players": players_data,
            "can_call_uno": bool(me) and len(me.hand) == 2 and me.id not in self.uno_called_by,
            "players_with_one_card": [
                {"id": p.id, "name": p.name}
                for p in self.catchable_players(exclude=for_player_id)
            ],
            "winner_id": self.winner_id,
        }

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Serialize every field, cards as literal records, order preserved."""
        return {
            "players": [
                {"id": p.id, "name": p.name, "hand": p.hand_to_dict()}
                for p in self.players
            ],
            "deck": [c.to_dict() for c in self.deck],
            "discard_pile": [c.to_dict() for c in self.discard_pile],
            "current_player_index": self.current_player_index,
            "direction": self.direction,
            "current_color": self.current_color,
            "draw_stack": self.draw_stack,
            "uno_called_by": sorted(self.uno_called_by),
            "winner_id": self.winner_id,
            "game_started": self.game_started,
            "has_drawn_this_turn": self.has_drawn_this_turn,
            "is_dealing": self.is_dealing,
            "starting_card_count": self.starting_card_count,
            "deal_rounds_done": self.deal_rounds_done,
        }

    @classmethod
    def from_dict(cls, d: dict, room_code: str = "") -> "Game":
        """Rebuild a Game from to_dict() output."""
        return cls(
            players=[
                Player(
                    id=p["id"],
                    name=p["name"],
                    hand=[Card.from_dict(c) for c in p.get("hand", [])],
                )
                for p in d.get("players", [])
            ],
            deck=[Card.from_dict(c) for c in d.get("deck", [])],
            discard_pile=[Card.from_dict(c) for c in d.get("discard_pile", [])],
            current_player_index=d.get("current_player_index", 0),
            direction=d.get("direction", 1),
            current_color=d.get("current_color"),
            draw_stack=d.get("draw_stack", 0),
            uno_called_by=set(d.get("uno_called_by", [])),
            winner_id=d.get("winner_id"),
            game_started=d.get("game_started", False),
            has_drawn_this_turn=d.get("has_drawn_this_turn", False),
            is_dealing=d.get("is_dealing", False),
            starting_card_count=d.get("starting_card_count", DEFAULT_STARTING_CARDS),
            deal_rounds_done=d.get("deal_rounds_done", 0),
            room_code=room_code,
        )
