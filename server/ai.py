"""Bot decision policy for UNO."""

import logging
import os
import random
from typing import Optional

from config import config
from constants import (
    COLORS,
    DEFAULT_COLOR,
    NUMBER,
    SKIP,
    REVERSE,
    DRAW_TWO,
    WILD,
    WILD_DRAW_FOUR,
)
from game import Card, Player, Game, GamePhase, describe_card


# Debug logging configuration
# Set AI_DEBUG=1 environment variable to enable detailed bot decision logging
AI_DEBUG = os.environ.get("AI_DEBUG", "0") == "1"

# Create a dedicated logger for bot decisions
ai_logger = logging.getLogger("uno.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log bot decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# Bot Turn Timing
# =============================================================================


def get_bot_delay(rng: Optional[random.Random] = None) -> float:
    """Seconds a bot waits before acting, uniform in the configured range."""
    rng = rng or random
    timing = config.bot_timing
    low = timing.bot_delay_min_ms / 1000
    high = max(timing.bot_delay_max_ms, timing.bot_delay_min_ms) / 1000
    return rng.uniform(low, high)


# =============================================================================
# Bot Decision Constants
# =============================================================================

# A next player at or below this many cards is about to go out
DANGEROUS_HAND_SIZE = 2

# Own hand size at or below which the bot plays for the finish
ENDGAME_HAND_SIZE = 3

# Assumed hand size when there is no next player to look at
UNKNOWN_HAND_SIZE = 7

WIN_SCORE = 10000
UNO_SCORE = 500
PER_CARD_SCORE = 15
COLOR_MATCH_SCORE = 3
MULTI_CARD_BONUS = 10
WASTED_WILD_PENALTY = 20

# Bonus for attack cards when the next player is dangerous
ATTACK_SCORES = {
    DRAW_TWO: 200,
    WILD_DRAW_FOUR: 250,
    SKIP: 150,
    REVERSE: 100,
}

# Card type preferences: endgame disrupts, early game conserves specials
ENDGAME_TYPE_SCORES = {
    NUMBER: 5,
    DRAW_TWO: 20,
    SKIP: 15,
    REVERSE: 10,
    WILD: 8,
    WILD_DRAW_FOUR: 25,
}
EARLY_TYPE_SCORES = {
    NUMBER: 20,
    SKIP: -5,
    REVERSE: -5,
    DRAW_TWO: -3,
    WILD: -10,
    WILD_DRAW_FOUR: -15,
}

# Wild color choice weights
COLOR_COUNT_WEIGHT = 10
COLOR_PLAYABILITY_WEIGHT = 3
NUMBER_PLAYABILITY = 2
ACTION_PLAYABILITY = 1
COLOR_ATTACK_SCORES = {
    DRAW_TWO: 15,
    SKIP: 10,
    REVERSE: 5,
}
HAS_NUMBER_BONUS = 8


def count_colors(hand: list[Card]) -> dict[str, int]:
    """Count held cards per base color (wilds are not counted)."""
    counts = {color: 0 for color in COLORS}
    for card in hand:
        if card.color in counts:
            counts[card.color] += 1
    return counts


def next_player_is_dangerous(game: Game) -> bool:
    nxt = game.next_player()
    hand_size = len(nxt.hand) if nxt else UNKNOWN_HAND_SIZE
    return hand_size <= DANGEROUS_HAND_SIZE


def is_endgame(game: Game, player: Player) -> bool:
    """Endgame once our own hand is small or anyone is close to going out."""
    if len(player.hand) <= ENDGAME_HAND_SIZE:
        return True
    return any(len(p.hand) <= DANGEROUS_HAND_SIZE for p in game.players)


class UnoAI:
    """Heuristics for bot players."""

    @staticmethod
    def playable_groups(game: Game, player: Player) -> list[list[int]]:
        """
        Group hand indices by (type, value) and keep the groups that can lead.

        A group is playable when any member is legal on the pile; that member
        is moved to the front. Groups keep first-appearance order.

        With no draw stack, a hand with no legal play (e.g. a lone action
        card) yields no groups.
        """
        if game.draw_stack == 0 and not game.has_legal_play(player):
            return []

        groups: dict[tuple, list[int]] = {}
        for idx, card in enumerate(player.hand):
            groups.setdefault(card.chain_key, []).append(idx)

        playable = []
        for indices in groups.values():
            legal = [i for i in indices if game.is_playable(player.hand[i])]
            if not legal:
                continue
            leader = legal[0]
            playable.append([leader] + [i for i in indices if i != leader])
        return playable

    @staticmethod
    def score_group(
        game: Game,
        player: Player,
        card: Card,
        play_count: int,
        color_counts: dict[str, int],
        dangerous: bool,
        endgame: bool,
    ) -> int:
        """Score playing play_count cards shaped like card."""
        cards_after = len(player.hand) - play_count
        score = 0

        if cards_after == 0:
            score += WIN_SCORE
        elif cards_after == 1:
            score += UNO_SCORE

        if dangerous:
            score += ATTACK_SCORES.get(card.type, 0)

        score += play_count * PER_CARD_SCORE

        effective_color = game.current_color if card.is_wild else card.color
        if effective_color in color_counts:
            score += color_counts[effective_color] * COLOR_MATCH_SCORE

        if endgame:
            score += ENDGAME_TYPE_SCORES.get(card.type, 0)
        else:
            score += EARLY_TYPE_SCORES.get(card.type, 0)

        if play_count >= 2:
            score += MULTI_CARD_BONUS

        # Don't waste wilds on small advantages
        if card.is_wild and not endgame and not dangerous:
            score -= WASTED_WILD_PENALTY

        return score

    @staticmethod
    def choose_play(game: Game, player: Player) -> Optional[list[int]]:
        """
        Pick which hand indices to play, or None to draw instead.

        Special cards can never be the last card out, so a special group that
        would empty the hand is cut by one card, or dropped when it is a
        single card.
        """
        groups = UnoAI.playable_groups(game, player)
        if not groups:
            return None

        color_counts = count_colors(player.hand)
        dangerous = next_player_is_dangerous(game)
        endgame = is_endgame(game, player)

        best_selection = None
        best_score = None

        for indices in groups:
            card = player.hand[indices[0]]
            play_count = len(indices)

            if not card.is_number and play_count == len(player.hand):
                if play_count > 1:
                    play_count -= 1
                else:
                    continue

            score = UnoAI.score_group(
                game, player, card, play_count, color_counts, dangerous, endgame
            )
            ai_log(f"  {player.name}: {play_count}x {describe_card(card)} scores {score}")

            if best_score is None or score > best_score:
                best_score = score
                best_selection = indices[:play_count]

        return best_selection

    @staticmethod
    def choose_wild_color(game: Game, player: Player, wild_index: int) -> Optional[str]:
        """
        Pick the color to name when leading with the card at wild_index.

        Returns None when that card is not a wild.
        """
        if not 0 <= wild_index < len(player.hand):
            return None
        if not player.hand[wild_index].is_wild:
            return None
        if len(player.hand) == 1:
            return DEFAULT_COLOR

        counts = {color: 0 for color in COLORS}
        playability = {color: 0 for color in COLORS}
        for idx, card in enumerate(player.hand):
            if idx == wild_index or card.color not in counts:
                continue
            counts[card.color] += 1
            playability[card.color] += NUMBER_PLAYABILITY if card.is_number else ACTION_PLAYABILITY

        dangerous = next_player_is_dangerous(game)

        best_color = DEFAULT_COLOR
        best_score = None
        for color in COLORS:
            score = counts[color] * COLOR_COUNT_WEIGHT
            score += playability[color] * COLOR_PLAYABILITY_WEIGHT

            held_types = {c.type for c in player.hand if c.color == color}
            if dangerous:
                score += sum(v for t, v in COLOR_ATTACK_SCORES.items() if t in held_types)
            if NUMBER in held_types:
                score += HAS_NUMBER_BONUS

            if best_score is None or score > best_score:
                best_score = score
                best_color = color

        return best_color

    @staticmethod
    def should_call_uno(player: Player, play_count: int) -> bool:
        return len(player.hand) - play_count <= 1

    @staticmethod
    def try_catch_uno(
        game: Game,
        bot: Player,
        rng: Optional[random.Random] = None,
        catch_chance: Optional[float] = None,
    ) -> int:
        """
        Try to catch every opponent sitting on one uncalled card.

        Returns:
            Number of players caught.
        """
        rng = rng or random
        if catch_chance is None:
            catch_chance = config.bot_timing.catch_chance

        caught = 0
        for victim in game.catchable_players(exclude=bot.id):
            if rng.random() < catch_chance and game.catch_uno(bot.id, victim.id):
                ai_log(f"{bot.name} caught {victim.name} without UNO")
                caught += 1
        return caught


def process_bot_turn(
    game: Game,
    bot_id: str,
    rng: Optional[random.Random] = None,
    catch_chance: Optional[float] = None,
) -> bool:
    """
    Perform one bot invocation: catch, then play, draw, draw+pass, or pass.

    A bot that draws without a pending stack acts again on its next
    invocation, either playing what it drew or passing.

    Returns:
        True if game state changed.
    """
    bot = game.current_player()
    if bot is None or bot.id != bot_id or game.phase != GamePhase.PLAYING:
        return False

    changed = UnoAI.try_catch_uno(game, bot, rng, catch_chance) > 0

    selection = UnoAI.choose_play(game, bot)
    if selection:
        chosen_color = UnoAI.choose_wild_color(game, bot, selection[0])
        if UnoAI.should_call_uno(bot, len(selection)):
            game.call_uno(bot.id)
        lead = bot.hand[selection[0]]
        ai_log(
            f"{bot.name} plays {len(selection)}x {describe_card(lead)}"
            + (f" naming {chosen_color}" if chosen_color else "")
        )
        return game.play_card(bot.id, selection, chosen_color) or changed

    if game.draw_stack > 0:
        ai_log(f"{bot.name} takes the stack of {game.draw_stack}")
        drew = game.draw_card(bot.id)
        passed = game.pass_turn(bot.id)
        return drew or passed or changed

    if not game.has_drawn_this_turn:
        ai_log(f"{bot.name} draws")
        if game.draw_card(bot.id):
            return True

    ai_log(f"{bot.name} passes")
    return game.pass_turn(bot.id) or changed
