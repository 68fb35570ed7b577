"""
Centralized configuration for the UNO game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.game_defaults.starting_card_count)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class GameDefaults:
    """Default rule settings for new games."""
    starting_card_count: int = 7
    min_starting_cards: int = 1
    max_starting_cards: int = 20


@dataclass
class BotTiming:
    """
    Pacing for bot turns and the initial deal (milliseconds).

    Bots wait a random delay in [bot_delay_min_ms, bot_delay_max_ms) before
    acting. Dealing waits deal_start_delay_ms once, then deal_round_delay_ms
    before each one-card-per-player round.
    """
    bot_delay_min_ms: int = 600
    bot_delay_max_ms: int = 1100
    deal_start_delay_ms: int = 1000
    deal_round_delay_ms: int = 200
    catch_chance: float = 0.85


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Snapshot persistence (empty disables it)
    REDIS_URL: str = ""

    # Room settings
    MAX_PLAYERS_PER_ROOM: int = 10
    ROOM_CODE_LENGTH: int = 4
    RECONNECT_GRACE_SECONDS: int = 30

    game_defaults: GameDefaults = field(default_factory=GameDefaults)
    bot_timing: BotTiming = field(default_factory=BotTiming)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 3000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", ""),
            MAX_PLAYERS_PER_ROOM=get_env_int("MAX_PLAYERS_PER_ROOM", 10),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 4),
            RECONNECT_GRACE_SECONDS=get_env_int("RECONNECT_GRACE_SECONDS", 30),
            game_defaults=GameDefaults(
                starting_card_count=get_env_int("STARTING_CARD_COUNT", 7),
            ),
            bot_timing=BotTiming(
                bot_delay_min_ms=get_env_int("BOT_DELAY_MIN_MS", 600),
                bot_delay_max_ms=get_env_int("BOT_DELAY_MAX_MS", 1100),
                deal_start_delay_ms=get_env_int("DEAL_START_DELAY_MS", 1000),
                deal_round_delay_ms=get_env_int("DEAL_ROUND_DELAY_MS", 200),
                catch_chance=get_env_float("BOT_CATCH_CHANCE", 0.85),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
