"""
Redis-backed room snapshot cache.

After every mutation the server writes a full snapshot of the room (seats,
hands, deck, discard pile, turn pointer, UNO calls) so a restarted process
can bring rooms back. Snapshots are whole records, never deltas.

Redis provides:
- Fast whole-record writes after each action
- TTL expiration for abandoned rooms
- Atomic multi-key updates via pipelines

Key patterns:
- uno:room:{room_code}   -> JSON (full room snapshot)
- uno:rooms:active       -> Set (room codes with a snapshot)
"""

import json
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class StateCache:
    """Redis-backed room snapshot cache."""

    # Key patterns
    ROOM_KEY = "uno:room:{room_code}"
    ACTIVE_ROOMS_KEY = "uno:rooms:active"

    # Rooms untouched for a day are dropped
    ROOM_TTL = timedelta(hours=24)

    def __init__(self, redis_client: redis.Redis):
        """
        Initialize state cache with Redis client.

        Args:
            redis_client: Async Redis client.
        """
        self.redis = redis_client

    @classmethod
    async def create(cls, redis_url: str) -> "StateCache":
        """
        Create a StateCache with a new Redis connection.

        Args:
            redis_url: Redis connection URL.

        Returns:
            Configured StateCache instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        # Test connection
        await client.ping()
        logger.info("StateCache connected to Redis")
        return cls(client)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.close()

    # -------------------------------------------------------------------------
    # Room Snapshots
    # -------------------------------------------------------------------------

    async def save_room(self, room_code: str, snapshot: dict) -> None:
        """
        Write a full room snapshot and mark the room active.

        Args:
            room_code: 4-letter room code.
            snapshot: Room.to_dict() output (will be JSON serialized).
        """
        pipe = self.redis.pipeline()
        pipe.set(
            self.ROOM_KEY.format(room_code=room_code),
            json.dumps(snapshot),
            ex=int(self.ROOM_TTL.total_seconds()),
        )
        pipe.sadd(self.ACTIVE_ROOMS_KEY, room_code)
        await pipe.execute()

    async def get_room(self, room_code: str) -> Optional[dict]:
        """
        Get a room snapshot.

        Returns:
            Snapshot dict, or None if not found.
        """
        data = await self.redis.get(self.ROOM_KEY.format(room_code=room_code))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode()
        return json.loads(data)

    async def room_exists(self, room_code: str) -> bool:
        return await self.redis.exists(self.ROOM_KEY.format(room_code=room_code)) > 0

    async def delete_room(self, room_code: str) -> None:
        """Delete a room snapshot and drop it from the active set."""
        pipe = self.redis.pipeline()
        pipe.delete(self.ROOM_KEY.format(room_code=room_code))
        pipe.srem(self.ACTIVE_ROOMS_KEY, room_code)
        await pipe.execute()
        logger.debug(f"Deleted room {room_code}")

    async def get_active_rooms(self) -> set[str]:
        """
        Get all active room codes.

        Returns:
            Set of active room codes.
        """
        rooms = await self.redis.smembers(self.ACTIVE_ROOMS_KEY)
        return {r.decode() if isinstance(r, bytes) else r for r in rooms}

    async def load_all_rooms(self) -> list[dict]:
        """
        Load every active room snapshot.

        Codes whose snapshot expired or cannot be parsed are removed from
        the active set.
        """
        snapshots = []
        for room_code in sorted(await self.get_active_rooms()):
            try:
                snapshot = await self.get_room(room_code)
            except json.JSONDecodeError as e:
                logger.warning(f"Discarding unreadable snapshot for room {room_code}: {e}")
                snapshot = None
            if snapshot is None:
                await self.redis.srem(self.ACTIVE_ROOMS_KEY, room_code)
                continue
            snapshots.append(snapshot)
        return snapshots

    async def refresh_room_ttl(self, room_code: str) -> None:
        """Refresh room TTL on activity."""
        await self.redis.expire(
            self.ROOM_KEY.format(room_code=room_code),
            int(self.ROOM_TTL.total_seconds()),
        )


# Global state cache instance (initialized on first use)
_state_cache: Optional[StateCache] = None


async def get_state_cache(redis_url: str) -> StateCache:
    """
    Get or create the global state cache instance.

    Args:
        redis_url: Redis connection URL.

    Returns:
        StateCache instance.
    """
    global _state_cache
    if _state_cache is None:
        _state_cache = await StateCache.create(redis_url)
    return _state_cache


async def close_state_cache() -> None:
    """Close the global state cache connection."""
    global _state_cache
    if _state_cache is not None:
        await _state_cache.close()
        _state_cache = None
