"""Quiz-related constants shared across the core and the API layer."""

OPTION_COUNT: int = 4
DEFAULT_TIME_LIMIT_SECONDS: int = 30
REVEAL_DURATION_SECONDS: int = 20
CORRECT_ANSWER_POINTS: int = 10

PIN_LENGTH: int = 6
PIN_MIN: int = 10 ** (PIN_LENGTH - 1)
PIN_MAX: int = 10 ** PIN_LENGTH - 1
PIN_ALLOCATION_ATTEMPTS: int = 5

LEADERBOARD_TOP_N: int = 5
AUTO_ADVANCE_TICK_SECONDS: float = 1.0
