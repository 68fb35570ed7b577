"""WebSocket message handlers for the UNO card game.

Each handler corresponds to a single message type from the client.
Handlers are dispatched via the HANDLERS dict in main.py.

Game mutations run under the room's game_lock and end with
finish_mutation(room), which delivers queued events, sends every player
their view of the game, persists the room and schedules a bot turn if a bot
is up next.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket

from game import GamePhase
from room import Room

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 20


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    websocket: WebSocket
    connection_id: str
    player_id: str
    current_room: Optional[Room] = None


def clean_player_name(value) -> str:
    if not isinstance(value, str):
        return "Player"
    name = value.strip()[:MAX_NAME_LENGTH]
    return name or "Player"


async def send_error(ctx: ConnectionContext, message: str) -> None:
    await ctx.websocket.send_json({"type": "error", "message": message})


async def _require_host(ctx: ConnectionContext, action: str) -> bool:
    room_player = ctx.current_room.get_player(ctx.player_id)
    if not room_player or not room_player.is_host:
        await send_error(ctx, f"Only the host can {action}")
        return False
    return True


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_get_rooms(data: dict, ctx: ConnectionContext, *, room_manager, **kw) -> None:
    await ctx.websocket.send_json({
        "type": "rooms",
        "rooms": room_manager.list_open_rooms(),
    })


async def handle_create_room(data: dict, ctx: ConnectionContext, *, room_manager, handle_player_leave, persist_room, **kw) -> None:
    if ctx.current_room:
        await handle_player_leave(ctx.current_room, ctx.player_id)
        ctx.current_room = None

    player_name = clean_player_name(data.get("player_name"))
    room = room_manager.create_room()
    room.add_player(ctx.player_id, player_name, ctx.websocket)
    ctx.current_room = room

    await ctx.websocket.send_json({
        "type": "room_created",
        "room_code": room.code,
        "player_id": ctx.player_id,
    })
    await room.broadcast(room.lobby_state())
    persist_room(room)


async def _leave_previous_room(ctx: ConnectionContext, room, handle_player_leave) -> None:
    """Drop the connection's seat in any other room before it settles in `room`."""
    if ctx.current_room and ctx.current_room is not room:
        await handle_player_leave(ctx.current_room, ctx.player_id)
    ctx.current_room = room


async def handle_join_room(data: dict, ctx: ConnectionContext, *, room_manager, handle_player_leave, persist_room, **kw) -> None:
    player_name = clean_player_name(data.get("player_name"))

    room = room_manager.get_room(data.get("room_code"))
    if not room:
        await send_error(ctx, "Room not found")
        return

    async with room.game_lock:
        already_seated = ctx.player_id in room.players
        if not already_seated:
            if room.game.game_started:
                await send_error(ctx, "Game already in progress")
                return
            if room.add_player(ctx.player_id, player_name, ctx.websocket) is None:
                await send_error(ctx, "Room is full")
                return

    await _leave_previous_room(ctx, room, handle_player_leave)

    await ctx.websocket.send_json({
        "type": "room_joined",
        "room_code": room.code,
        "player_id": ctx.player_id,
    })
    if already_seated:
        return
    await room.broadcast(room.lobby_state())
    persist_room(room)


async def handle_rejoin_room(data: dict, ctx: ConnectionContext, *, room_manager, handle_player_leave, persist_room, broadcast_game_state, **kw) -> None:
    """
    Reclaim a seat after reconnecting.

    The seat is found by the previous connection ID, else by name. An
    unknown player is seated fresh only while the room is still a lobby.
    """
    player_name = clean_player_name(data.get("player_name"))
    old_player_id = data.get("old_player_id")

    room = room_manager.get_room(data.get("room_code"))
    if not room:
        await send_error(ctx, "Room not found")
        return

    async with room.game_lock:
        seat = None
        if isinstance(old_player_id, str):
            seat = room.get_player(old_player_id)
            if seat and seat.is_bot:
                seat = None
        if seat is None:
            seat = room.find_player_by_name(player_name)

        if seat is not None:
            old_id = seat.id
            room.reassociate_player(old_id, ctx.player_id, ctx.websocket)
            logger.info(f"Room {room.code}: {seat.name} rejoined ({old_id} -> {ctx.player_id})")
        elif room.game.game_started:
            await send_error(ctx, "Game already in progress")
            return
        elif room.add_player(ctx.player_id, player_name, ctx.websocket) is None:
            await send_error(ctx, "Room is full")
            return

    await _leave_previous_room(ctx, room, handle_player_leave)

    await ctx.websocket.send_json({
        "type": "room_rejoined",
        "room_code": room.code,
        "player_id": ctx.player_id,
        "game_started": room.game.game_started,
    })
    await room.broadcast(room.lobby_state())
    await broadcast_game_state(room)
    persist_room(room)


async def handle_add_bot(data: dict, ctx: ConnectionContext, *, persist_room, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    if not await _require_host(ctx, "add bots"):
        return

    if room.game.game_started:
        await send_error(ctx, "Game already in progress")
        return

    async with room.game_lock:
        bot = room.add_bot()
    if bot is None:
        await send_error(ctx, "Room is full")
        return

    await room.broadcast(room.lobby_state())
    persist_room(room)


async def handle_start_game(data: dict, ctx: ConnectionContext, *, finish_mutation, start_dealing, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    if not await _require_host(ctx, "start the game"):
        return

    if len(room.players) < 2:
        await send_error(ctx, "Need at least 2 players")
        return

    if room.game.phase not in (GamePhase.WAITING, GamePhase.GAME_OVER):
        await send_error(ctx, "Game already in progress")
        return

    async with room.game_lock:
        room.cancel_dealing()
        room.clear_pending_bot_turn()
        if not room.game.start_game(data.get("starting_card_count")):
            return
        await room.broadcast(room.lobby_state())
        await finish_mutation(room)
        start_dealing(room)


async def handle_return_to_lobby(data: dict, ctx: ConnectionContext, *, finish_mutation, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    if not await _require_host(ctx, "return to the lobby"):
        return

    async with room.game_lock:
        room.cancel_dealing()
        room.clear_pending_bot_turn()
        room.game.reset()
        await room.broadcast(room.lobby_state())
        await finish_mutation(room)


async def handle_leave_room(data: dict, ctx: ConnectionContext, *, handle_player_leave, **kw) -> None:
    if not ctx.current_room:
        return
    await handle_player_leave(ctx.current_room, ctx.player_id)
    ctx.current_room = None


# ---------------------------------------------------------------------------
# Turn action handlers
# ---------------------------------------------------------------------------

async def _apply(room: Room, changed: bool, finish_mutation) -> None:
    """Finish a turn action; rejected actions may still have queued feedback."""
    if changed:
        await finish_mutation(room)
    else:
        await room.flush_events()


async def handle_play_card(data: dict, ctx: ConnectionContext, *, finish_mutation, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    card_indices = data.get("card_indices")
    if card_indices is None:
        card_indices = data.get("card_index")
    chosen_color = data.get("chosen_color")

    async with room.game_lock:
        changed = room.game.play_card(ctx.player_id, card_indices, chosen_color)
        await _apply(room, changed, finish_mutation)


async def handle_draw_card(data: dict, ctx: ConnectionContext, *, finish_mutation, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    async with room.game_lock:
        changed = room.game.draw_card(ctx.player_id)
        await _apply(room, changed, finish_mutation)


async def handle_pass_turn(data: dict, ctx: ConnectionContext, *, finish_mutation, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    async with room.game_lock:
        changed = room.game.pass_turn(ctx.player_id)
        await _apply(room, changed, finish_mutation)


async def handle_call_uno(data: dict, ctx: ConnectionContext, *, finish_mutation, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    async with room.game_lock:
        changed = room.game.call_uno(ctx.player_id)
        await _apply(room, changed, finish_mutation)


async def handle_catch_uno(data: dict, ctx: ConnectionContext, *, finish_mutation, **kw) -> None:
    if not ctx.current_room:
        return
    room = ctx.current_room

    target_id = data.get("target_player_id")
    if not isinstance(target_id, str):
        return

    async with room.game_lock:
        changed = room.game.catch_uno(ctx.player_id, target_id)
        await _apply(room, changed, finish_mutation)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "get_rooms": handle_get_rooms,
    "create_room": handle_create_room,
    "join_room": handle_join_room,
    "rejoin_room": handle_rejoin_room,
    "add_bot": handle_add_bot,
    "start_game": handle_start_game,
    "return_to_lobby": handle_return_to_lobby,
    "leave_room": handle_leave_room,
    "play_card": handle_play_card,
    "draw_card": handle_draw_card,
    "pass_turn": handle_pass_turn,
    "call_uno": handle_call_uno,
    "catch_uno": handle_catch_uno,
}
