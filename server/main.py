"""FastAPI WebSocket server for the UNO card game."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from room import RoomManager, Room
from ai import process_bot_turn
from handlers import HANDLERS, ConnectionContext
from stores.state_cache import StateCache, get_state_cache, close_state_cache
from logging_config import setup_logging, get_logger, bind_context

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)

logger = logging.getLogger(__name__)
ctx_logger = get_logger(__name__)

room_manager = RoomManager()

# Snapshot persistence (initialized in lifespan when REDIS_URL is set)
_state_cache: Optional[StateCache] = None

# Fire-and-forget tasks are held here until they finish
_background_tasks: set[asyncio.Task] = set()


def _spawn(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


# =============================================================================
# Persistence
# =============================================================================


async def _persist_room_safe(room_code: str, snapshot: dict) -> None:
    """Write a snapshot, logging and swallowing failures."""
    try:
        await _state_cache.save_room(room_code, snapshot)
    except Exception as e:
        ctx_logger.with_context(room_code=room_code).warning(f"Failed to persist room: {e}")


async def _delete_room_safe(room_code: str) -> None:
    try:
        await _state_cache.delete_room(room_code)
    except Exception as e:
        ctx_logger.with_context(room_code=room_code).warning(f"Failed to delete room snapshot: {e}")


def persist_room(room: Room) -> None:
    """Snapshot the room now and write it in the background."""
    if _state_cache is None:
        return
    _spawn(_persist_room_safe(room.code, room.to_dict()))


def forget_room(room_code: str) -> None:
    if _state_cache is None:
        return
    _spawn(_delete_room_safe(room_code))


# =============================================================================
# Post-mutation hook
# =============================================================================


async def broadcast_game_state(room: Room) -> None:
    """Deliver queued events, then each human's view of the game."""
    await room.flush_events()
    if room.game.game_started:
        await room.broadcast_game_state()


def check_and_run_bot_turn(room: Room) -> bool:
    """Schedule one bot invocation if a bot is on turn."""
    return room.maybe_schedule_bot_turn(run_bot_turn)


async def finish_mutation(room: Room) -> None:
    """Every state change ends here: broadcast, persist, then look for a bot turn."""
    await broadcast_game_state(room)
    persist_room(room)
    check_and_run_bot_turn(room)


async def run_bot_turn(room: Room, bot_id: str) -> None:
    """Run one scheduled bot invocation under the room lock."""
    async with room.game_lock:
        if room.bot_turn is not None and room.bot_turn.player_id == bot_id:
            room.bot_turn = None

        if room_manager.get_room(room.code) is not room:
            return

        try:
            changed = process_bot_turn(room.game, bot_id)
        except Exception:
            ctx_logger.with_context(room_code=room.code, player_id=bot_id).exception("Bot turn failed")
            return

        if changed:
            await finish_mutation(room)
        else:
            await room.flush_events()


async def _deal_cards(room: Room) -> None:
    """Hand out the opening cards one round at a time."""
    timing = config.bot_timing
    await asyncio.sleep(timing.deal_start_delay_ms / 1000)
    while True:
        async with room.game_lock:
            if not room.game.deal_round():
                break
            await finish_mutation(room)
            if not room.game.is_dealing:
                break
        await asyncio.sleep(timing.deal_round_delay_ms / 1000)
    room.deal_task = None


def start_dealing(room: Room) -> None:
    room.cancel_dealing()
    room.deal_task = asyncio.create_task(_deal_cards(room))


# =============================================================================
# Leaving & Reconnection
# =============================================================================


async def handle_player_leave(room: Room, player_id: str) -> None:
    """Handle a player leaving a room for good."""
    room_code = room.code
    async with room.game_lock:
        room_player = room.remove_player(player_id)

        # If no human players left, clean up the room entirely
        if room.is_empty() or room.human_player_count() == 0:
            room_manager.remove_room(room_code)
            forget_room(room_code)
            return

        if room_player is None:
            return

        ctx_logger.with_context(room_code=room_code, player_id=player_id).info(
            f"{room_player.name} left"
        )
        await room.broadcast({
            "type": "player_left",
            "player_id": player_id,
            "player_name": room_player.name,
            "players": room.player_list(),
        })
        await room.broadcast(room.lobby_state())
        await finish_mutation(room)


async def _purge_if_disconnected(room: Room, player_id: str) -> None:
    room_player = room.get_player(player_id)
    if room_player and not room_player.connected:
        ctx_logger.with_context(room_code=room.code, player_id=player_id).info(
            f"Reconnection window expired for {room_player.name}"
        )
        await handle_player_leave(room, player_id)


def arm_purge_timer(room: Room, player_id: str) -> None:
    room.schedule_purge(
        player_id,
        config.RECONNECT_GRACE_SECONDS,
        lambda: _purge_if_disconnected(room, player_id),
    )


async def handle_player_disconnect(room: Room, player_id: str) -> None:
    """Keep the seat for the grace window; remove the player if they don't return."""
    async with room.game_lock:
        room_player = room.mark_disconnected(player_id)
        if room_player is None:
            return
        await room.broadcast(room.lobby_state())
        persist_room(room)
        arm_purge_timer(room, player_id)


# =============================================================================
# Application
# =============================================================================


async def _restore_rooms() -> None:
    """Bring persisted rooms back; humans must rejoin within the grace window."""
    snapshots = await _state_cache.load_all_rooms()
    for room in room_manager.restore_rooms(snapshots):
        if room.human_player_count() == 0:
            room_manager.remove_room(room.code)
            forget_room(room.code)
            continue
        for player in room.players.values():
            if not player.is_bot and not player.connected:
                arm_purge_timer(room, player.id)
        if room.game.is_dealing:
            start_dealing(room)
        check_and_run_bot_turn(room)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    global _state_cache

    if config.REDIS_URL:
        try:
            _state_cache = await get_state_cache(config.REDIS_URL)
            await _restore_rooms()
        except Exception as e:
            logger.warning(f"Redis unavailable: {e} - room persistence disabled")
            _state_cache = None
    else:
        logger.info("REDIS_URL not configured - room persistence disabled")

    from routers.health import set_health_dependencies
    set_health_dependencies(
        state_cache=_state_cache,
        room_manager=room_manager,
    )

    logger.info(f"UNO server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    for room in list(room_manager.rooms.values()):
        room.close()
    if _background_tasks:
        await asyncio.gather(*_background_tasks, return_exceptions=True)
    if _state_cache is not None:
        await close_state_cache()
        _state_cache = None
    logger.info("Shutdown complete")


app = FastAPI(
    title="UNO Card Game",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

from routers.health import router as health_router

app.include_router(health_router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player_id=connection_id,
    )

    # Shared dependencies passed to every handler
    handler_deps = dict(
        room_manager=room_manager,
        broadcast_game_state=broadcast_game_state,
        finish_mutation=finish_mutation,
        start_dealing=start_dealing,
        persist_room=persist_room,
        handle_player_leave=handle_player_leave,
    )

    bind_context(player_id=connection_id)

    try:
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                continue
            msg_type = data.get("type")
            handler = HANDLERS.get(msg_type)
            if not handler:
                continue
            bind_context(room_code=ctx.current_room.code if ctx.current_room else None)
            try:
                await handler(data, ctx, **handler_deps)
            except WebSocketDisconnect:
                raise
            except Exception:
                room_code = ctx.current_room.code if ctx.current_room else None
                ctx_logger.with_context(room_code=room_code, player_id=ctx.player_id).exception(
                    f"Error handling {msg_type}"
                )
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
    except RuntimeError as e:
        # Socket closed while sending
        logger.debug(f"WebSocket {connection_id} closed: {e}")

    if ctx.current_room and room_manager.get_room(ctx.current_room.code) is ctx.current_room:
        await handle_player_disconnect(ctx.current_room, ctx.player_id)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting UNO server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
