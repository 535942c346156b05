"""Runtime settings for the quiz service, overridable through the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from live_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from live_quiz.constants.quiz_constants import (
    AUTO_ADVANCE_TICK_SECONDS,
    CORRECT_ANSWER_POINTS,
    DEFAULT_TIME_LIMIT_SECONDS,
    LEADERBOARD_TOP_N,
    PIN_ALLOCATION_ATTEMPTS,
    REVEAL_DURATION_SECONDS,
)

_ENV_PREFIX = "LIVE_QUIZ_"


@dataclass(slots=True)
class GameSettings:
    """Tunables shared by the core services and the API server."""

    pin_attempts: int = PIN_ALLOCATION_ATTEMPTS
    correct_answer_points: int = CORRECT_ANSWER_POINTS
    reveal_seconds: int = REVEAL_DURATION_SECONDS
    default_time_limit: int = DEFAULT_TIME_LIMIT_SECONDS
    leaderboard_size: int = LEADERBOARD_TOP_N
    tick_interval: float = AUTO_ADVANCE_TICK_SECONDS
    auto_advance: bool = True
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.pin_attempts <= 0:
            raise ValueError("PIN attempts must be a positive integer.")
        if self.reveal_seconds <= 0:
            raise ValueError("Reveal duration must be a positive integer.")
        if self.default_time_limit <= 0:
            raise ValueError("Default time limit must be a positive integer.")
        if self.tick_interval <= 0:
            raise ValueError("Tick interval must be positive.")


def load_settings() -> GameSettings:
    """Build settings from ``LIVE_QUIZ_*`` variables, reading a .env file first."""
    load_dotenv()
    defaults = GameSettings()
    return GameSettings(
        pin_attempts=_env_int("PIN_ATTEMPTS", defaults.pin_attempts),
        correct_answer_points=_env_int("CORRECT_POINTS", defaults.correct_answer_points),
        reveal_seconds=_env_int("REVEAL_SECONDS", defaults.reveal_seconds),
        default_time_limit=_env_int("DEFAULT_TIME_LIMIT", defaults.default_time_limit),
        leaderboard_size=_env_int("LEADERBOARD_SIZE", defaults.leaderboard_size),
        tick_interval=float(os.getenv(_ENV_PREFIX + "TICK_INTERVAL", defaults.tick_interval)),
        auto_advance=os.getenv(_ENV_PREFIX + "AUTO_ADVANCE", "1").lower() not in {"0", "false", "no"},
        host=os.getenv(_ENV_PREFIX + "HOST", defaults.host),
        port=_env_int("PORT", defaults.port),
        log_level=os.getenv(_ENV_PREFIX + "LOG_LEVEL", defaults.log_level).upper(),
    )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}.") from exc
