"""
Configuration constants for the chess rules and time controls.
"""

# Time control limits (base in minutes, increment in seconds)
MIN_TIME_CONTROL = 1
MAX_TIME_CONTROL = 180
DEFAULT_TIME_CONTROL = 10
MAX_TIME_INCREMENT = 60

# Draw rules
FIFTY_MOVE_HALFMOVES = 100
REPETITION_DRAW_COUNT = 3

# Tournaments
MIN_TOURNAMENT_PARTICIPANTS = 2


def base_time_seconds(time_control: int) -> float:
    """Starting clock for each side, in seconds."""
    return float(time_control * 60)


def is_valid_time_control(time_control: int, increment: int) -> bool:
    """Check if a time control / increment pair is playable."""
    return MIN_TIME_CONTROL <= time_control <= MAX_TIME_CONTROL and 0 <= increment <= MAX_TIME_INCREMENT
