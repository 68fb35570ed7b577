"""
Operational HTTP endpoints.

- /health   liveness: the process answers
- /ready    readiness: Redis reachable when persistence is configured
- /metrics  room, seat and game counts
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from game import GamePhase

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Wired up by main.lifespan
_state_cache = None
_room_manager = None


def set_health_dependencies(
    state_cache=None,
    room_manager=None,
):
    global _state_cache, _room_manager
    _state_cache = state_cache
    _room_manager = room_manager


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check():
    return {"status": "ok", "timestamp": _now()}


@router.get("/ready")
async def readiness_check():
    """
    Report whether snapshot persistence is usable.

    Games keep running without Redis, so an unreachable Redis only marks the
    server degraded (503) for the load balancer.
    """
    if _state_cache is None:
        redis_check = {"status": "not_configured"}
    else:
        try:
            await _state_cache.redis.ping()
            redis_check = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            redis_check = {"status": "error", "message": str(e)}

    degraded = redis_check["status"] == "error"
    return JSONResponse(
        status_code=503 if degraded else 200,
        content={
            "status": "degraded" if degraded else "ok",
            "checks": {"redis": redis_check},
            "timestamp": _now(),
        },
    )


@router.get("/metrics")
async def metrics():
    """Counts for dashboards; persisted_rooms only when Redis is configured."""
    result = {"timestamp": _now()}

    if _room_manager is not None:
        rooms = list(_room_manager.rooms.values())
        seats = [p for room in rooms for p in room.players.values()]
        result["active_rooms"] = len(rooms)
        result["total_players"] = len(seats)
        result["bot_players"] = sum(p.is_bot for p in seats)
        result["disconnected_players"] = sum(not p.connected for p in seats)
        result["games_in_progress"] = sum(
            room.game.phase in (GamePhase.DEALING, GamePhase.PLAYING) for room in rooms
        )

    if _state_cache is not None:
        try:
            result["persisted_rooms"] = len(await _state_cache.get_active_rooms())
        except Exception as e:
            logger.warning(f"Could not count persisted rooms: {e}")

    return result
