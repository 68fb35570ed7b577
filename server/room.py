"""
Room management for multiplayer UNO games.

This module handles room creation, seating, reconnection, bot scheduling
and WebSocket delivery for multiplayer game sessions.

A Room contains:
    - A unique 4-letter code for joining
    - A collection of RoomPlayers (human or bot)
    - A Game instance with the actual game state
    - An outbox of GameEvents waiting to be delivered
    - At most one pending bot turn and one dealing task
"""

import asyncio
import logging
import random
import string
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Callable, Awaitable

from fastapi import WebSocket

from ai import get_bot_delay
from constants import MAX_PLAYERS, ROOM_CODE_LENGTH
from game import Game, GamePhase, Player
from models import GameEvent

logger = logging.getLogger(__name__)

BotTurnRunner = Callable[["Room", str], Awaitable[None]]


# =============================================================================
# Player Actors
# =============================================================================


class PlayerActor:
    """
    What sits behind a seat: a live connection or a bot.

    deliver() returns True if the message reached someone.
    """

    is_bot = False

    async def deliver(self, message: dict) -> bool:
        raise NotImplementedError

    def detach(self) -> None:
        pass


class HumanActor(PlayerActor):
    """A human seat, delivering to its WebSocket while one is attached."""

    def __init__(self, websocket: Optional[WebSocket] = None):
        self.websocket = websocket

    @property
    def attached(self) -> bool:
        return self.websocket is not None

    def attach(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    def detach(self) -> None:
        self.websocket = None

    async def deliver(self, message: dict) -> bool:
        if self.websocket is None:
            return False
        try:
            await self.websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Send failed: {e}")
            return False


class BotActor(PlayerActor):
    """A bot seat. Bots read the game directly, so nothing is delivered."""

    is_bot = True

    async def deliver(self, message: dict) -> bool:
        return False


# =============================================================================
# Room
# =============================================================================


@dataclass
class RoomPlayer:
    """
    A player in a game room (lobby-level representation).

    This is separate from game.Player - RoomPlayer tracks room-level info
    like the connection and host status, while game.Player tracks the hand.

    Attributes:
        id: Unique player identifier (the connection ID for humans).
        name: Display name.
        actor: HumanActor or BotActor.
        is_host: Whether this player controls the room.
        connected: False while a human is inside the reconnection grace window.
        disconnected_at: When the connection dropped (epoch seconds).
    """

    id: str
    name: str
    actor: PlayerActor
    is_host: bool = False
    connected: bool = True
    disconnected_at: Optional[float] = None

    @property
    def is_bot(self) -> bool:
        return self.actor.is_bot


@dataclass
class BotTurn:
    """A scheduled bot invocation; cancelled when superseded."""

    player_id: str
    task: asyncio.Task


@dataclass
class Room:
    """
    A game room/lobby that can host a multiplayer UNO game.

    Attributes:
        code: 4-letter room code for joining (e.g., "ABCD").
        players: Dict mapping player IDs to RoomPlayer objects, in seat order.
        game: The Game instance containing actual game state.
        game_lock: asyncio.Lock serializing every mutation of this room.
        outbox: Events emitted by the game, not yet delivered.
        bot_turn: The pending bot invocation, if any.
        deal_task: The task pacing the initial deal, if running.
        purge_tasks: Reconnection grace timers by player ID.
    """

    code: str
    players: dict[str, RoomPlayer] = field(default_factory=dict)
    game: Game = field(default_factory=Game)
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    outbox: list[GameEvent] = field(default_factory=list)
    bot_turn: Optional[BotTurn] = None
    deal_task: Optional[asyncio.Task] = None
    purge_tasks: dict[str, asyncio.Task] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.game.room_code = self.code
        self.game.set_event_emitter(self.outbox.append)

    # -------------------------------------------------------------------------
    # Seating
    # -------------------------------------------------------------------------

    def is_full(self) -> bool:
        return len(self.players) >= MAX_PLAYERS

    def add_player(
        self,
        player_id: str,
        name: str,
        websocket: Optional[WebSocket] = None,
    ) -> Optional[RoomPlayer]:
        """
        Add a human player to the room.

        The first player to join becomes the host.

        Returns:
            The created RoomPlayer, or None if the room is full or the
            ID is already seated.
        """
        if self.is_full() or player_id in self.players:
            return None

        room_player = RoomPlayer(
            id=player_id,
            name=name,
            actor=HumanActor(websocket),
            is_host=len(self.players) == 0,
        )
        self.players[player_id] = room_player
        self.game.add_player(Player(id=player_id, name=name))
        return room_player

    def add_bot(self) -> Optional[RoomPlayer]:
        """
        Add a bot named "Bot N" with the lowest free N.

        Returns:
            The created RoomPlayer, or None if the room is full.
        """
        if self.is_full():
            return None

        taken = {p.name for p in self.players.values()}
        n = 1
        while f"Bot {n}" in taken:
            n += 1
        name = f"Bot {n}"

        bot_id = f"bot_{uuid.uuid4().hex[:8]}"
        room_player = RoomPlayer(id=bot_id, name=name, actor=BotActor())
        self.players[bot_id] = room_player
        self.game.add_player(Player(id=bot_id, name=name))
        return room_player

    def remove_player(self, player_id: str) -> Optional[RoomPlayer]:
        """
        Remove a player from the room.

        Handles host reassignment if the host leaves. If the game is
        abandoned as a result, pending bot and dealing timers are cancelled.

        Returns:
            The removed RoomPlayer, or None if not found.
        """
        if player_id not in self.players:
            return None

        room_player = self.players.pop(player_id)
        room_player.actor.detach()
        self._cancel_task(self.purge_tasks.pop(player_id, None))

        was_started = self.game.game_started
        self.game.remove_player(player_id)
        if was_started and not self.game.game_started:
            self.cancel_dealing()
            self.clear_pending_bot_turn()

        if room_player.is_host and self.players:
            next_host = next(iter(self.players.values()))
            next_host.is_host = True

        return room_player

    def get_player(self, player_id: str) -> Optional[RoomPlayer]:
        """Get a player by ID, or None if not found."""
        return self.players.get(player_id)

    def find_player_by_name(self, name: str) -> Optional[RoomPlayer]:
        for player in self.players.values():
            if player.name == name and not player.is_bot:
                return player
        return None

    def is_empty(self) -> bool:
        """Check if the room has no players."""
        return len(self.players) == 0

    def human_player_count(self) -> int:
        """Count the number of human (non-bot) players."""
        return sum(1 for p in self.players.values() if not p.is_bot)

    def host(self) -> Optional[RoomPlayer]:
        for player in self.players.values():
            if player.is_host:
                return player
        return None

    def player_list(self) -> list[dict]:
        """Get list of players for client display."""
        return [
            {
                "id": p.id,
                "name": p.name,
                "is_host": p.is_host,
                "is_bot": p.is_bot,
                "connected": p.connected,
            }
            for p in self.players.values()
        ]

    def lobby_state(self) -> dict:
        return {
            "type": "lobby_state",
            "room_code": self.code,
            "players": self.player_list(),
            "game_started": self.game.game_started,
        }

    # -------------------------------------------------------------------------
    # Reconnection
    # -------------------------------------------------------------------------

    def mark_disconnected(self, player_id: str) -> Optional[RoomPlayer]:
        """Keep the seat but drop the connection, starting the grace window."""
        player = self.players.get(player_id)
        if not player or player.is_bot:
            return None
        player.connected = False
        player.disconnected_at = time.time()
        player.actor.detach()
        return player

    def reassociate_player(
        self,
        old_id: str,
        new_id: str,
        websocket: WebSocket,
    ) -> Optional[RoomPlayer]:
        """
        Move a seat to a new connection ID, keeping seat order and hand.

        Returns:
            The updated RoomPlayer, or None if old_id is not seated.
        """
        player = self.players.get(old_id)
        if not player or player.is_bot:
            return None

        self._cancel_task(self.purge_tasks.pop(old_id, None))

        if old_id != new_id:
            self.players = {
                (new_id if pid == old_id else pid): p
                for pid, p in self.players.items()
            }
            player.id = new_id
            self.game.rename_player(old_id, new_id)

        player.actor.attach(websocket)
        player.connected = True
        player.disconnected_at = None
        return player

    def schedule_purge(self, player_id: str, delay: float, purge: Callable[[], Awaitable[None]]) -> None:
        """Arm the reconnection grace timer for a disconnected player."""
        self._cancel_task(self.purge_tasks.pop(player_id, None))

        async def _purge_later():
            await asyncio.sleep(delay)
            self.purge_tasks.pop(player_id, None)
            await purge()

        self.purge_tasks[player_id] = asyncio.create_task(_purge_later())

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def broadcast(self, message: dict, exclude: Optional[str] = None) -> None:
        """
        Send a message to all human players in the room.

        Args:
            message: JSON-serializable message dict.
            exclude: Optional player ID to skip.
        """
        for player_id, player in list(self.players.items()):
            if player_id != exclude:
                await player.actor.deliver(message)

    async def send_to(self, player_id: str, message: dict) -> None:
        """Send a message to a specific player."""
        player = self.players.get(player_id)
        if player:
            await player.actor.deliver(message)

    async def flush_events(self) -> None:
        """Deliver queued game events in emission order."""
        while self.outbox:
            event = self.outbox.pop(0)
            message = event.to_message()
            if event.is_targeted:
                await self.send_to(event.player_id, message)
            else:
                await self.broadcast(message)

    async def broadcast_game_state(self) -> None:
        """Send each human their own view of the game."""
        for player_id, player in list(self.players.items()):
            if player.is_bot:
                continue
            await player.actor.deliver({
                "type": "game_state",
                "game_state": self.game.get_state(player_id),
            })

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    @staticmethod
    def _cancel_task(task: Optional[asyncio.Task]) -> None:
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()

    def clear_pending_bot_turn(self) -> None:
        if self.bot_turn is not None:
            self._cancel_task(self.bot_turn.task)
            self.bot_turn = None

    def maybe_schedule_bot_turn(
        self,
        run_turn: BotTurnRunner,
        rng: Optional[random.Random] = None,
    ) -> bool:
        """
        Schedule one bot invocation if a bot is on turn.

        The pending token is cancelled when the game is not in play or a
        human is on turn, and left alone when it already targets the current
        bot.

        Returns:
            True if a new invocation was scheduled.
        """
        current = self.game.current_player()
        room_player = self.players.get(current.id) if current else None

        if self.game.phase != GamePhase.PLAYING or not room_player or not room_player.is_bot:
            self.clear_pending_bot_turn()
            return False

        if (
            self.bot_turn is not None
            and self.bot_turn.player_id == room_player.id
            and not self.bot_turn.task.done()
        ):
            return False

        self.clear_pending_bot_turn()
        delay = get_bot_delay(rng)
        bot_id = room_player.id

        async def _run_later():
            await asyncio.sleep(delay)
            await run_turn(self, bot_id)

        self.bot_turn = BotTurn(player_id=bot_id, task=asyncio.create_task(_run_later()))
        return True

    def cancel_dealing(self) -> None:
        self._cancel_task(self.deal_task)
        self.deal_task = None

    def close(self) -> None:
        """Cancel every timer owned by this room."""
        self.clear_pending_bot_turn()
        self.cancel_dealing()
        for task in self.purge_tasks.values():
            self._cancel_task(task)
        self.purge_tasks.clear()

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Full room snapshot; restored humans always start disconnected."""
        return {
            "code": self.code,
            "players": [
                {
                    "id": p.id,
                    "name": p.name,
                    "is_host": p.is_host,
                    "is_bot": p.is_bot,
                    "connected": False,
                }
                for p in self.players.values()
            ],
            "game": self.game.to_dict(),
        }

    @classmethod
    def restore(cls, data: dict) -> "Room":
        """
        Rebuild a Room from to_dict() output.

        Humans come back disconnected with no socket, waiting to rejoin.
        Bots get an inert BotActor.
        """
        code = data["code"]
        now = time.time()
        players = {}
        for p in data.get("players", []):
            is_bot = p.get("is_bot", False)
            players[p["id"]] = RoomPlayer(
                id=p["id"],
                name=p["name"],
                actor=BotActor() if is_bot else HumanActor(),
                is_host=p.get("is_host", False),
                connected=is_bot,
                disconnected_at=None if is_bot else now,
            )
        game = Game.from_dict(data.get("game", {}), room_code=code)
        return cls(code=code, players=players, game=game)


class RoomManager:
    """
    Manages all active game rooms.

    Provides room creation with unique codes, lookup, listing and cleanup.
    A single RoomManager instance is owned by the server.
    """

    def __init__(self) -> None:
        self.rooms: dict[str, Room] = {}

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique uppercase room code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(string.ascii_uppercase, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(self) -> Room:
        """
        Create a new room with a unique code.

        Returns:
            The newly created Room.
        """
        code = self._generate_code()
        room = Room(code=code)
        self.rooms[code] = room
        logger.info(f"Room {code} created")
        return room

    def get_room(self, code) -> Optional[Room]:
        """
        Get a room by its code (case-insensitive).

        Returns:
            The Room if found, None otherwise.
        """
        if not code or not isinstance(code, str):
            return None
        return self.rooms.get(code.strip().upper())

    def remove_room(self, code: str) -> None:
        """Delete a room and cancel its timers."""
        room = self.rooms.pop(code, None)
        if room:
            room.close()
            logger.info(f"Room {code} removed")

    def find_player_room(self, player_id: str) -> Optional[Room]:
        """
        Find which room a player is in.

        Returns:
            The Room containing the player, or None.
        """
        for room in self.rooms.values():
            if player_id in room.players:
                return room
        return None

    def list_open_rooms(self) -> list[dict]:
        """Rooms that can still be joined: not started and not full."""
        result = []
        for code, room in self.rooms.items():
            if room.game.game_started or room.is_full():
                continue
            host = room.host()
            result.append({
                "code": code,
                "player_count": len(room.players),
                "max_players": MAX_PLAYERS,
                "host_name": host.name if host else "Unknown",
            })
        return result

    def restore_rooms(self, snapshots: list[dict]) -> list[Room]:
        """Load snapshot records, skipping any that fail to rebuild."""
        restored = []
        for data in snapshots:
            try:
                room = Room.restore(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Could not restore room {data.get('code')}: {e}")
                continue
            self.rooms[room.code] = room
            restored.append(room)
        logger.info(f"Restored {len(restored)} room(s)")
        return restored
