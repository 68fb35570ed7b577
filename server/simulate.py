"""
UNO Bot Simulation Runner

Runs bot-vs-bot games directly against the rules engine to check bot
behavior and card conservation. No server/websocket needed.

Usage:
    python simulate.py [num_games] [num_players] [seed]
    python simulate.py detail [num_players] [seed]

Examples:
    python simulate.py 100        # Run 100 games with 4 players each
    python simulate.py 50 2       # Run 50 games with 2 players each
    python simulate.py detail 3   # Narrate one 3-player game
"""

import random
import sys
from typing import Optional

from ai import process_bot_turn
from constants import DECK_SIZE
from game import Game, GamePhase, Player, describe_card
from models import EventType, GameEvent

# Safety valve for a game that never ends
MAX_ACTIONS_PER_GAME = 5000


class SimulationStats:
    """Track simulation statistics."""

    def __init__(self):
        self.games_played = 0
        self.games_unfinished = 0
        self.total_actions = 0
        self.player_wins: dict[str, int] = {}
        self.event_counts: dict[str, int] = {}
        self.stalls = 0
        self.conservation_errors = 0

    def record_game(self, winner_name: Optional[str], actions: int):
        self.games_played += 1
        self.total_actions += actions
        if winner_name is None:
            self.games_unfinished += 1
            return
        self.player_wins[winner_name] = self.player_wins.get(winner_name, 0) + 1

    def record_event(self, event: GameEvent):
        key = event.event_type.value
        self.event_counts[key] = self.event_counts.get(key, 0) + 1

    def report(self) -> str:
        lines = [
            "=" * 50,
            "SIMULATION RESULTS",
            "=" * 50,
            f"Games played: {self.games_played}",
            f"Unfinished games: {self.games_unfinished}",
            f"Bot actions: {self.total_actions}",
            f"Avg actions/game: {self.total_actions / max(1, self.games_played):.1f}",
            "",
            "WIN RATES (by seat):",
        ]

        total_wins = sum(self.player_wins.values())
        for name, wins in sorted(self.player_wins.items()):
            pct = wins / max(1, total_wins) * 100
            lines.append(f"  {name}: {wins} wins ({pct:.1f}%)")

        lines.append("")
        lines.append("EVENTS:")
        for name, count in sorted(self.event_counts.items()):
            lines.append(f"  {name}: {count}")

        lines.append("")
        lines.append("INTEGRITY (should be 0):")
        lines.append(f"  Stalled bot turns: {self.stalls}")
        lines.append(f"  Card conservation errors: {self.conservation_errors}")

        return "\n".join(lines)


def total_cards(game: Game) -> int:
    """Cards in deck, discard pile and every hand."""
    return len(game.deck) + len(game.discard_pile) + sum(len(p.hand) for p in game.players)


def create_bot_players(num_players: int) -> list[Player]:
    return [Player(id=f"bot_{i}", name=f"Bot {i + 1}") for i in range(num_players)]


def run_game(
    num_players: int,
    stats: SimulationStats,
    rng: Optional[random.Random] = None,
    verbose: bool = False,
) -> Optional[str]:
    """
    Play one bot-only game to completion.

    Returns:
        The winner's name, or None if the game stalled or hit the action cap.
    """
    rng = rng or random.Random()
    game = Game(players=create_bot_players(num_players), rng=rng, room_code="SIM")

    def on_event(event: GameEvent):
        stats.record_event(event)
        if verbose and event.event_type != EventType.CARDS_DRAWN:
            print(f"  {event.event_type.value}: {event.data}")

    game.set_event_emitter(on_event)

    game.start_game()
    game.deal_all()

    actions = 0
    while game.phase == GamePhase.PLAYING and actions < MAX_ACTIONS_PER_GAME:
        current = game.current_player()
        if verbose:
            top = game.discard_top()
            print(
                f"{current.name} ({len(current.hand)} cards) on {describe_card(top)}, "
                f"color {game.current_color}, stack {game.draw_stack}"
            )

        if not process_bot_turn(game, current.id, rng=rng):
            stats.stalls += 1
            break
        actions += 1

        if total_cards(game) != DECK_SIZE:
            stats.conservation_errors += 1
            break

    winner = game.winner
    winner_name = winner.name if winner else None
    stats.record_game(winner_name, actions)
    return winner_name


def run_simulation(num_games: int = 10, num_players: int = 4, seed: Optional[int] = None):
    """Run multiple games and report statistics."""
    print(f"\nRunning {num_games} games with {num_players} players each...")

    rng = random.Random(seed)
    stats = SimulationStats()
    for _ in range(num_games):
        run_game(num_players, stats, rng=rng)

    print(stats.report())
    return stats


def run_detailed_game(num_players: int = 4, seed: Optional[int] = None):
    """Run a single game with detailed output."""
    print(f"\nRunning detailed game with {num_players} players...")
    stats = SimulationStats()
    winner = run_game(num_players, stats, rng=random.Random(seed), verbose=True)
    print(f"\nWinner: {winner or 'none'}")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "detail":
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        seed = int(sys.argv[3]) if len(sys.argv) > 3 else None
        run_detailed_game(num_players, seed)
    else:
        num_games = int(sys.argv[1]) if len(sys.argv) > 1 else 10
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        seed = int(sys.argv[3]) if len(sys.argv) > 3 else None
        run_simulation(num_games, num_players, seed)
