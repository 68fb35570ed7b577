"""
Test suite for UNO game rules.

Verifies the rules engine:
- Deck composition and shuffling
- Card legality, stacking and multi-card chains
- Turn order, skips and reverses (including the 1v1 rules)
- UNO call / forgotten / caught penalties
- Chip-out rule (no going out on special cards)
- Draw pile reshuffle and card conservation
- Scoring, projection and snapshots

Run with: pytest test_game.py -v
"""

import itertools
import random

import pytest

import game as game_module
from constants import COLORS, DECK_SIZE
from game import (
    Card, Player, Game, GamePhase,
    build_deck, shuffle_deck, can_play, can_stack, chain_compatible,
    card_points, hand_points, normalize_card_count, CHIP_OUT_REASON,
)
from models import EventType


# =============================================================================
# Helpers
# =============================================================================

_ids = itertools.count(1000)


def num(color, value):
    return Card(next(_ids), color, "number", value)


def act(color, card_type):
    value = {"skip": "skip", "reverse": "reverse", "draw_two": "+2"}[card_type]
    return Card(next(_ids), color, card_type, value)


def wild(card_type="wild"):
    return Card(next(_ids), "wild", card_type, "wild" if card_type == "wild" else "+4")


def make_game(hands, top, color=None, deck=None, draw_stack=0):
    """Build a game mid-play: player 0 to move, hands and pile as given."""
    g = Game(
        players=[Player(id=f"p{i}", name=f"P{i}", hand=list(h)) for i, h in enumerate(hands)],
        discard_pile=[top],
        deck=list(deck) if deck is not None else [num("green", 1) for _ in range(20)],
        current_color=color or top.color,
        draw_stack=draw_stack,
        game_started=True,
    )
    g.events = []
    g.set_event_emitter(g.events.append)
    return g


def event_types(g):
    return [e.event_type for e in g.events]


def total_cards(g):
    return len(g.deck) + len(g.discard_pile) + sum(len(p.hand) for p in g.players)


# =============================================================================
# Deck Tests
# =============================================================================

class TestDeck:

    def test_deck_has_108_cards(self):
        assert len(build_deck()) == DECK_SIZE

    def test_ids_are_sequential(self):
        assert [c.id for c in build_deck()] == list(range(108))

    def test_per_color_composition(self):
        deck = build_deck()
        for color in COLORS:
            cards = [c for c in deck if c.color == color]
            numbers = [c.value for c in cards if c.type == "number"]
            assert len(cards) == 25
            assert len(numbers) == 19
            assert numbers.count(0) == 1
            for n in range(1, 10):
                assert numbers.count(n) == 2
            for card_type in ("skip", "reverse", "draw_two"):
                assert sum(1 for c in cards if c.type == card_type) == 2

    def test_wild_composition(self):
        deck = build_deck()
        wilds = [c for c in deck if c.color == "wild"]
        assert sum(1 for c in wilds if c.type == "wild") == 4
        assert sum(1 for c in wilds if c.type == "wild_draw_four") == 4

    def test_construction_order(self):
        deck = build_deck()
        assert (deck[0].color, deck[0].value) == ("red", 0)
        assert deck[1].value == 1 and deck[2].value == 1
        assert [c.type for c in deck[19:25]] == [
            "skip", "reverse", "draw_two", "skip", "reverse", "draw_two",
        ]
        assert deck[25].color == "yellow"
        assert [c.type for c in deck[100:102]] == ["wild", "wild_draw_four"]

    def test_symbolic_values(self):
        by_type = {c.type: c.value for c in build_deck() if c.type != "number"}
        assert by_type == {
            "skip": "skip",
            "reverse": "reverse",
            "draw_two": "+2",
            "wild": "wild",
            "wild_draw_four": "+4",
        }

    def test_shuffle_is_permutation(self):
        deck = build_deck()
        shuffled = shuffle_deck(deck, random.Random(7))
        assert sorted(c.id for c in shuffled) == list(range(108))
        assert [c.id for c in deck] == list(range(108))

    def test_shuffle_is_seedable(self):
        deck = build_deck()
        a = shuffle_deck(deck, random.Random(3))
        b = shuffle_deck(deck, random.Random(3))
        assert a == b

    def test_card_round_trip(self):
        card = Card(5, "blue", "number", 4)
        assert Card.from_dict(card.to_dict()) == card


# =============================================================================
# Legality Tests
# =============================================================================

class TestCanPlay:

    def test_color_match(self):
        assert can_play(num("red", 3), num("red", 9), "red")

    def test_number_match(self):
        assert can_play(num("blue", 9), num("red", 9), "red")

    def test_action_type_match(self):
        assert can_play(act("blue", "skip"), act("red", "skip"), "red")

    def test_wilds_always_playable(self):
        assert can_play(wild(), num("red", 1), "red")
        assert can_play(wild("wild_draw_four"), num("red", 1), "red")

    def test_named_color_after_wild(self):
        top = wild()
        assert can_play(num("green", 2), top, "green")
        assert not can_play(num("red", 2), top, "green")

    def test_no_match(self):
        assert not can_play(num("blue", 3), num("red", 9), "red")

    def test_number_does_not_match_action(self):
        assert not can_play(num("blue", 3), act("red", "skip"), "red")


class TestCanStack:

    def test_draw_two_on_draw_two(self):
        assert can_stack(act("blue", "draw_two"), act("red", "draw_two"))

    def test_wild_four_on_wild_four(self):
        assert can_stack(wild("wild_draw_four"), wild("wild_draw_four"))

    def test_wild_four_not_on_draw_two(self):
        assert not can_stack(wild("wild_draw_four"), act("red", "draw_two"))

    def test_draw_two_not_on_wild_four(self):
        assert not can_stack(act("red", "draw_two"), wild("wild_draw_four"))


class TestChainCompatible:

    def test_singleton(self):
        assert chain_compatible([num("red", 5)])

    def test_same_number(self):
        assert chain_compatible([num("red", 5), num("blue", 5)])

    def test_different_number(self):
        assert not chain_compatible([num("red", 5), num("red", 6)])

    def test_same_action(self):
        assert chain_compatible([act("red", "skip"), act("green", "skip")])

    def test_mixed_actions(self):
        assert not chain_compatible([act("red", "skip"), act("red", "reverse")])


class TestPoints:

    def test_card_points(self):
        assert card_points(num("red", 7)) == 7
        assert card_points(act("red", "skip")) == 20
        assert card_points(act("red", "draw_two")) == 20
        assert card_points(wild()) == 50
        assert card_points(wild("wild_draw_four")) == 50

    def test_hand_points(self):
        assert hand_points([num("red", 3), act("blue", "reverse"), wild()]) == 73

    def test_normalize_card_count(self):
        assert normalize_card_count("abc") == 7
        assert normalize_card_count(None) == 7
        assert normalize_card_count(0) == 7
        assert normalize_card_count("3") == 3
        assert normalize_card_count(99) == 20


# =============================================================================
# Start & Deal Tests
# =============================================================================

class TestStartGame:

    def _game(self, n=3, seed=1):
        return Game(
            players=[Player(id=f"p{i}", name=f"P{i}") for i in range(n)],
            rng=random.Random(seed),
        )

    def test_duplicate_player_id_refused(self):
        g = Game(players=[Player(id="p0", name="P0")])
        assert g.add_player(Player(id="p0", name="Again")) is False
        assert len(g.players) == 1

    def test_needs_two_players(self):
        g = Game(players=[Player(id="p0", name="P0")])
        assert g.start_game() is False
        assert g.phase == GamePhase.WAITING

    def test_start_enters_dealing(self):
        g = self._game()
        assert g.start_game()
        assert g.phase == GamePhase.DEALING
        assert len(g.discard_pile) == 1
        assert all(not p.hand for p in g.players)
        assert total_cards(g) == DECK_SIZE

    def test_turn_actions_blocked_while_dealing(self):
        g = self._game()
        g.start_game()
        current = g.current_player()
        assert g.draw_card(current.id) is False
        assert g.play_card(current.id, 0) is False

    def test_deal_all(self):
        g = self._game()
        g.start_game(5)
        g.deal_all()
        assert g.phase == GamePhase.PLAYING
        assert all(len(p.hand) == 5 for p in g.players)
        assert total_cards(g) == DECK_SIZE

    def test_deal_round_emits_events(self):
        g = self._game(n=2)
        events = []
        g.set_event_emitter(events.append)
        g.start_game(2)
        g.deal_round()
        types = [e.event_type for e in events]
        assert types[0] == EventType.GAME_STARTED
        assert types[1:] == [EventType.CARDS_DRAWN, EventType.CARDS_DRAWN, EventType.CARDS_DEALT]
        assert events[-1].data == {"round": 1, "total_rounds": 2}
        assert g.is_dealing

    def test_invalid_card_count_uses_default(self):
        g = self._game()
        g.start_game("lots")
        assert g.starting_card_count == 7

    def test_first_card_never_wild_draw_four(self):
        for seed in range(200):
            g = self._game(seed=seed)
            g.start_game()
            assert g.discard_top().type != "wild_draw_four"
            assert g.current_color in COLORS

    def test_rematch_resets_hands(self):
        g = self._game()
        g.start_game()
        g.deal_all()
        g.winner_id = "p0"
        assert g.start_game()
        assert g.winner_id is None
        assert all(not p.hand for p in g.players)
        assert total_cards(g) == DECK_SIZE


class TestFirstCardEffects:

    def _start_with_top(self, monkeypatch, pick, n=3):
        """Start a game whose first discard is the first card matching pick."""
        calls = []

        def fake_shuffle(cards, rng=None):
            calls.append(1)
            cards = list(cards)
            target = next(c for c in cards if pick(c, len(calls)))
            cards.remove(target)
            return cards + [target]

        monkeypatch.setattr(game_module, "shuffle_deck", fake_shuffle)
        g = Game(players=[Player(id=f"p{i}", name=f"P{i}") for i in range(n)])
        g.start_game()
        return g

    def test_skip_first(self, monkeypatch):
        g = self._start_with_top(monkeypatch, lambda c, _: c.type == "skip")
        assert g.current_player_index == 1

    def test_reverse_first(self, monkeypatch):
        g = self._start_with_top(monkeypatch, lambda c, _: c.type == "reverse")
        assert g.direction == -1
        assert g.current_player_index == 0

    def test_draw_two_first(self, monkeypatch):
        g = self._start_with_top(monkeypatch, lambda c, _: c.type == "draw_two")
        assert g.draw_stack == 2

    def test_wild_first_picks_color(self, monkeypatch):
        g = self._start_with_top(monkeypatch, lambda c, _: c.type == "wild")
        assert g.current_color in COLORS

    def test_wild_draw_four_is_put_back(self, monkeypatch):
        g = self._start_with_top(
            monkeypatch,
            lambda c, call: c.type == "wild_draw_four" if call == 1 else c.type == "number",
        )
        assert g.discard_top().type == "number"
        assert total_cards(g) == DECK_SIZE


# =============================================================================
# Turn Order Tests
# =============================================================================

class TestTurnOrder:

    def test_wraps_clockwise(self):
        g = make_game([[num("red", 1)]] * 4, num("red", 5))
        g.current_player_index = 3
        g.next_turn()
        assert g.current_player_index == 0

    def test_wraps_counter_clockwise(self):
        g = make_game([[num("red", 1)]] * 4, num("red", 5))
        g.direction = -1
        g.next_turn()
        assert g.current_player_index == 3

    def test_next_turn_clears_drawn_flag(self):
        g = make_game([[num("red", 1)]] * 2, num("red", 5))
        g.has_drawn_this_turn = True
        g.next_turn()
        assert g.has_drawn_this_turn is False


# =============================================================================
# Play Tests
# =============================================================================

class TestPlayCard:

    def test_simple_play(self):
        g = make_game([[num("red", 3), num("blue", 8), num("green", 9)], [num("red", 1)]], num("red", 5))
        assert g.play_card("p0", 1) is False  # blue 8 on red 5
        assert g.play_card("p0", 0)
        assert g.discard_top().value == 3
        assert g.current_player_index == 1
        assert EventType.CARD_PLAYED in event_types(g)

    def test_not_your_turn(self):
        g = make_game([[num("red", 3), num("red", 4)], [num("red", 1), num("red", 2)]], num("red", 5))
        assert g.play_card("p1", 0) is False

    def test_invalid_indices(self):
        g = make_game([[num("red", 3), num("red", 3), num("red", 4)], [num("red", 1)]], num("red", 5))
        assert g.play_card("p0", 5) is False
        assert g.play_card("p0", [-1]) is False
        assert g.play_card("p0", []) is False
        assert g.play_card("p0", [0, 0]) is False
        assert g.play_card("p0", "0") is False
        assert g.events == []

    def test_multi_card_play(self):
        g = make_game(
            [[num("red", 7), num("blue", 7), num("green", 2), num("green", 4)], [num("red", 1)]],
            num("red", 3),
        )
        assert g.play_card("p0", [0, 1])
        assert g.discard_top().color == "blue"
        assert g.current_color == "blue"
        assert [c.value for c in g.players[0].hand] == [2, 4]
        played = [e for e in g.events if e.event_type == EventType.CARD_PLAYED][0]
        assert played.data["count"] == 2

    def test_multi_card_first_must_be_legal(self):
        g = make_game(
            [[num("blue", 7), num("red", 7), num("green", 2), num("green", 3)], [num("red", 1)]],
            num("red", 3),
        )
        assert g.play_card("p0", [0, 1]) is False
        assert g.play_card("p0", [1, 0])

    def test_incompatible_chain_rejected(self):
        g = make_game(
            [[num("red", 7), num("red", 8), num("green", 2)], [num("red", 1)]],
            num("red", 3),
        )
        assert g.play_card("p0", [0, 1]) is False
        assert len(g.players[0].hand) == 3

    def test_wild_sets_chosen_color(self):
        g = make_game([[wild(), num("red", 1)], [num("red", 1)]], num("red", 5))
        g.uno_called_by.add("p0")
        assert g.play_card("p0", 0, "green")
        assert g.current_color == "green"

    def test_wild_invalid_color_falls_back(self):
        g = make_game([[wild(), num("red", 1), num("red", 2)], [num("red", 1)]], num("blue", 5))
        assert g.play_card("p0", 0, "purple")
        assert g.current_color == "red"

    def test_wild_draw_four_adds_four(self):
        g = make_game(
            [[wild("wild_draw_four"), num("red", 1), num("red", 2)], [num("red", 1)], [num("red", 1)]],
            num("blue", 5),
        )
        assert g.play_card("p0", 0, "yellow")
        assert g.draw_stack == 4
        assert g.current_player_index == 1


class TestSkipAndReverse:

    def test_skip_three_players(self):
        g = make_game(
            [[act("red", "skip"), num("red", 1), num("red", 2)], [num("red", 1)], [num("red", 1)]],
            num("red", 5),
        )
        assert g.play_card("p0", 0)
        assert g.current_player_index == 2

    def test_double_skip_three_players(self):
        g = make_game(
            [[act("red", "skip"), act("blue", "skip"), num("red", 1), num("red", 2)],
             [num("red", 1)], [num("red", 1)]],
            num("red", 5),
        )
        assert g.play_card("p0", [0, 1])
        assert g.current_player_index == 0

    def test_reverse_three_players(self):
        g = make_game(
            [[act("red", "reverse"), num("red", 1), num("red", 2)], [num("red", 1)], [num("red", 1)]],
            num("red", 5),
        )
        assert g.play_card("p0", 0)
        assert g.direction == -1
        assert g.current_player_index == 2

    def test_double_reverse_three_players_cancels(self):
        g = make_game(
            [[act("red", "reverse"), act("blue", "reverse"), num("red", 1), num("red", 2)],
             [num("red", 1)], [num("red", 1)]],
            num("red", 5),
        )
        assert g.play_card("p0", [0, 1])
        assert g.direction == 1
        assert g.current_player_index == 1

    def test_reverse_two_players_acts_as_skip(self):
        g = make_game(
            [[act("red", "reverse"), num("blue", 4), num("green", 5)], [num("red", 1)]],
            num("red", 5),
        )
        assert g.play_card("p0", 0)
        assert g.current_player_index == 0
        assert g.direction == 1

    def test_skip_two_players_returns_turn(self):
        g = make_game(
            [[act("red", "skip"), num("blue", 4), num("green", 5)], [num("red", 1)]],
            num("red", 5),
        )
        assert g.play_card("p0", 0)
        assert g.current_player_index == 0

    def test_double_skip_two_players_returns_turn(self):
        g = make_game(
            [[act("red", "skip"), act("blue", "skip"), num("blue", 4), num("green", 5)], [num("red", 1)]],
            num("red", 5),
        )
        assert g.play_card("p0", [0, 1])
        assert g.current_player_index == 0

    def test_two_player_scenario_with_uno(self):
        """A holds [skip, blue 4] on red 5, calls UNO, skips B and plays again."""
        g = make_game([[act("red", "skip"), num("blue", 4)], [num("red", 1), num("red", 2)]], num("red", 5))
        assert g.call_uno("p0")
        assert g.play_card("p0", 0)
        assert g.current_player_index == 0
        assert [c.value for c in g.players[0].hand] == [4]


# =============================================================================
# UNO Tests
# =============================================================================

class TestUnoRules:

    def test_forgotten_uno_penalty(self):
        g = make_game(
            [[num("red", 7), num("blue", 7), num("green", 2)], [num("red", 1)]],
            num("red", 3),
        )
        top_before = g.discard_top()
        assert g.play_card("p0", [0, 1]) is True
        assert len(g.players[0].hand) == 5
        assert g.discard_top() is top_before
        assert g.current_player_index == 0
        assert EventType.UNO_FORGOTTEN in event_types(g)
        drawn = [e for e in g.events if e.event_type == EventType.CARDS_DRAWN][0]
        assert drawn.data["reason"] == "uno_forgotten"
        assert len(drawn.data["cards"]) == 2

    def test_retry_after_calling_uno(self):
        g = make_game(
            [[num("red", 7), num("blue", 7), num("green", 2)], [num("red", 1)]],
            num("red", 3),
        )
        g.play_card("p0", [0, 1])
        assert g.call_uno("p0")
        assert g.play_card("p0", [0, 1])
        assert g.discard_top().value == 7

    def test_forgotten_uno_on_last_card(self):
        g = make_game([[num("red", 7)], [num("red", 1)]], num("red", 3))
        assert g.play_card("p0", 0)
        assert g.winner_id is None
        assert len(g.players[0].hand) == 3

    def test_uno_call_cleared_when_hand_grows(self):
        g = make_game([[num("red", 7), num("red", 8), num("red", 9)], [num("red", 1)]], num("red", 3))
        g.call_uno("p0")
        assert g.play_card("p0", 0)
        assert "p0" not in g.uno_called_by

    def test_uno_call_cleared_on_draw(self):
        g = make_game([[num("blue", 7), num("blue", 8)], [num("red", 1)]], num("red", 3))
        g.call_uno("p0")
        assert g.draw_card("p0")
        assert "p0" not in g.uno_called_by

    def test_call_uno_needs_cards(self):
        g = make_game([[], [num("red", 1)]], num("red", 3))
        assert g.call_uno("p0") is False
        assert g.call_uno("nobody") is False

    def test_catch_uno(self):
        g = make_game([[num("red", 7), num("red", 8)], [num("red", 1)]], num("red", 3))
        assert g.catch_uno("p0", "p1")
        assert len(g.players[1].hand) == 3
        caught = [e for e in g.events if e.event_type == EventType.UNO_CAUGHT][0]
        assert caught.data["catcher_name"] == "P0"
        assert caught.data["target_name"] == "P1"

    def test_cannot_catch_after_call(self):
        g = make_game([[num("red", 7), num("red", 8)], [num("red", 1)]], num("red", 3))
        g.call_uno("p1")
        assert g.catch_uno("p0", "p1") is False

    def test_cannot_catch_with_two_cards(self):
        g = make_game([[num("red", 7)], [num("red", 1), num("red", 2)]], num("red", 3))
        assert g.catch_uno("p0", "p1") is False


# =============================================================================
# Winning Tests
# =============================================================================

class TestWinning:

    def test_win_with_number(self):
        g = make_game([[num("red", 7)], [num("red", 1), wild()]], num("red", 3))
        g.call_uno("p0")
        assert g.play_card("p0", 0)
        assert g.winner_id == "p0"
        assert g.phase == GamePhase.GAME_OVER
        over = [e for e in g.events if e.event_type == EventType.GAME_OVER][0]
        assert over.data["winner"] == {"id": "p0", "name": "P0"}
        assert over.data["scores"][0]["id"] == "p0"
        assert over.data["scores"][1]["points"] == 51

    def test_chip_out_with_special_rejected(self):
        g = make_game([[act("red", "skip")], [num("red", 1)]], num("red", 3))
        g.call_uno("p0")
        g.events.clear()
        assert g.play_card("p0", 0) is False
        assert len(g.players[0].hand) == 1
        assert g.winner_id is None
        rejected = g.events[-1]
        assert rejected.event_type == EventType.PLAY_REJECTED
        assert rejected.player_id == "p0"
        assert rejected.data["reason"] == CHIP_OUT_REASON

    def test_chip_out_with_special_group_rejected(self):
        g = make_game([[wild(), wild()], [num("red", 1)]], num("red", 3))
        g.call_uno("p0")
        assert g.play_card("p0", [0, 1], "blue") is False
        assert len(g.players[0].hand) == 2

    def test_actions_ignored_after_game_over(self):
        g = make_game([[num("red", 7)], [num("red", 1), num("red", 2)]], num("red", 3))
        g.call_uno("p0")
        g.play_card("p0", 0)
        g.current_player_index = 1
        assert g.play_card("p1", 0) is False
        assert g.draw_card("p1") is False
        assert g.pass_turn("p1") is False

    def test_scores_ranking(self):
        g = make_game(
            [[], [num("red", 9), num("red", 9)], [wild()], [num("red", 1), num("red", 2)]],
            num("red", 3),
        )
        g.winner_id = "p0"
        ids = [s["id"] for s in g.calculate_scores()]
        assert ids == ["p0", "p2", "p3", "p1"]


# =============================================================================
# Draw Stack & Draw Tests
# =============================================================================

class TestDrawStack:

    def test_stack_draw_two(self):
        g = make_game(
            [[act("blue", "draw_two"), num("red", 1), num("red", 2)], [num("red", 1)], [num("red", 1)]],
            act("red", "draw_two"),
            draw_stack=2,
        )
        assert g.play_card("p0", 0)
        assert g.draw_stack == 4
        assert g.current_player_index == 1

    def test_wild_four_cannot_stack_on_draw_two(self):
        g = make_game(
            [[wild("wild_draw_four"), num("red", 1)], [num("red", 1)]],
            act("red", "draw_two"),
            draw_stack=2,
        )
        assert g.play_card("p0", 0, "blue") is False

    def test_matching_color_cannot_answer_stack(self):
        g = make_game(
            [[num("red", 4), num("red", 1)], [num("red", 1)]],
            act("red", "draw_two"),
            draw_stack=2,
        )
        assert g.play_card("p0", 0) is False

    def test_draw_takes_whole_stack(self):
        g = make_game(
            [[num("blue", 4)], [num("red", 1)]],
            act("red", "draw_two"),
            draw_stack=4,
        )
        assert g.draw_card("p0")
        assert len(g.players[0].hand) == 5
        assert g.draw_stack == 0
        assert g.has_drawn_this_turn
        assert g.pass_turn("p0")
        assert g.current_player_index == 1

    def test_draw_refused_with_legal_play(self):
        g = make_game([[num("red", 4), num("blue", 1)], [num("red", 1)]], num("red", 3))
        assert g.draw_card("p0") is False

    def test_draw_allowed_with_lone_special(self):
        g = make_game([[act("red", "skip")], [num("red", 1)]], num("red", 3))
        assert g.draw_card("p0")
        assert len(g.players[0].hand) == 2

    def test_draw_once_per_turn(self):
        g = make_game([[num("blue", 4)], [num("red", 1)]], num("red", 3))
        assert g.draw_card("p0")
        assert g.draw_card("p0") is False

    def test_pass_requires_draw(self):
        g = make_game([[num("blue", 4)], [num("red", 1)]], num("red", 3))
        assert g.pass_turn("p0") is False
        g.draw_card("p0")
        assert g.pass_turn("p0")

    def test_may_play_after_drawing(self):
        g = make_game([[num("blue", 4), num("blue", 5)], [num("red", 1)]], num("red", 3), deck=[num("red", 8)])
        assert g.draw_card("p0")
        assert g.play_card("p0", 2)
        assert g.current_player_index == 1

    def test_has_legal_play(self):
        g = make_game([[num("red", 4)], [act("red", "skip")]], num("red", 3))
        assert g.has_legal_play(g.players[0])
        assert not g.has_legal_play(g.players[1])


class TestDeckExhaustion:

    def test_reshuffle_keeps_top(self):
        a, b, top = num("red", 1), num("red", 2), num("red", 3)
        g = make_game([[num("blue", 9)], [num("red", 1)]], top, deck=[])
        g.discard_pile = [a, b, top]
        card = g.draw_from_deck()
        assert card in (a, b)
        assert g.discard_pile == [top]
        assert len(g.deck) == 1

    def test_short_draw_when_empty(self):
        g = make_game([[num("blue", 9)], [num("red", 1)]], act("red", "draw_two"), deck=[], draw_stack=2)
        assert g.draw_card("p0")
        assert len(g.players[0].hand) == 1
        assert g.has_drawn_this_turn

    def test_draw_from_empty_returns_none(self):
        g = make_game([[num("blue", 9)], [num("red", 1)]], num("red", 3), deck=[])
        assert g.draw_from_deck() is None


# =============================================================================
# Player Removal Tests
# =============================================================================

class TestRemovePlayer:

    def _started(self, n=4, seed=5):
        g = Game(players=[Player(id=f"p{i}", name=f"P{i}") for i in range(n)], rng=random.Random(seed))
        g.start_game()
        g.deal_all()
        return g

    def test_hand_returns_to_deck(self):
        g = self._started()
        hand = list(g.players[2].hand)
        g.remove_player("p2")
        assert g.deck[:len(hand)] == hand
        assert total_cards(g) == DECK_SIZE

    def test_index_shifts_when_earlier_seat_leaves(self):
        g = self._started()
        g.current_player_index = 2
        g.remove_player("p0")
        assert g.current_player().id == "p2"

    def test_current_player_leaving_passes_turn(self):
        g = self._started()
        g.direction = 1
        g.current_player_index = 1
        g.remove_player("p1")
        assert g.current_player().id == "p2"

    def test_current_player_leaving_counter_clockwise(self):
        g = self._started()
        g.direction = -1
        g.current_player_index = 1
        g.remove_player("p1")
        assert g.current_player().id == "p0"

    def test_last_seat_leaving_wraps(self):
        g = self._started()
        g.direction = 1
        g.current_player_index = 3
        g.remove_player("p3")
        assert g.current_player().id == "p0"

    def test_abandoned_below_two_players(self):
        g = self._started(n=2)
        g.remove_player("p1")
        assert g.phase == GamePhase.WAITING
        assert g.deck == []
        assert g.players[0].hand == []

    def test_remove_in_lobby(self):
        g = Game(players=[Player(id="a", name="A"), Player(id="b", name="B")])
        removed = g.remove_player("a")
        assert removed.name == "A"
        assert g.remove_player("zzz") is None

    def test_rename_player(self):
        g = self._started(n=2)
        g.uno_called_by.add("p0")
        assert g.rename_player("p0", "new")
        assert g.get_player("new") is not None
        assert "new" in g.uno_called_by


# =============================================================================
# Projection & Snapshot Tests
# =============================================================================

class TestGetState:

    def test_hides_other_hands(self):
        g = make_game([[num("red", 7), num("red", 8)], [num("red", 1)]], num("red", 3))
        state = g.get_state("p0")
        assert len(state["hand"]) == 2
        assert state["players"][1]["card_count"] == 1
        assert "hand" not in state["players"][1]
        assert state["current_player_id"] == "p0"
        assert state["players"][0]["is_current_turn"]
        assert state["top_card"]["value"] == 3

    def test_can_call_uno(self):
        g = make_game([[num("red", 7), num("red", 8)], [num("red", 1)]], num("red", 3))
        assert g.get_state("p0")["can_call_uno"]
        assert not g.get_state("p1")["can_call_uno"]

    def test_can_call_uno_off_once_called(self):
        g = make_game([[num("red", 7), num("red", 8)], [num("red", 1)]], num("red", 3))
        assert g.call_uno("p0")
        assert not g.get_state("p0")["can_call_uno"]

    def test_players_with_one_card(self):
        g = make_game([[num("red", 7)], [num("red", 1)], [num("red", 1), num("red", 2)]], num("red", 3))
        state = g.get_state("p0")
        assert state["players_with_one_card"] == [{"id": "p1", "name": "P1"}]
        g.call_uno("p1")
        assert g.get_state("p0")["players_with_one_card"] == []


class TestSnapshot:

    def test_round_trip(self):
        g = Game(players=[Player(id=f"p{i}", name=f"P{i}") for i in range(3)], rng=random.Random(9))
        g.start_game()
        g.deal_all()
        g.uno_called_by.add("p1")
        data = g.to_dict()
        restored = Game.from_dict(data, room_code="ABCD")
        assert restored.to_dict() == data
        assert restored.room_code == "ABCD"
        assert restored.phase == g.phase

    def test_cards_are_literal_records(self):
        g = make_game([[num("red", 7)], [num("red", 1)]], num("red", 3))
        data = g.to_dict()
        assert set(data["players"][0]["hand"][0]) == {"id", "color", "type", "value"}
