"""
Authoritative chess clock accounting with Fischer increment.

Pure functions over an immutable ClockState; the game service copies the
result back onto the stored game.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from app.chess.types import Color

logger = logging.getLogger(__name__)


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (as returned by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ClockState:
    white_remaining: float
    black_remaining: float
    increment: float = 0.0
    last_move_at: Optional[datetime] = None
    last_mover: Optional[Color] = None

    def remaining(self, color: Color) -> float:
        return self.white_remaining if color == Color.WHITE else self.black_remaining

    def with_remaining(self, color: Color, seconds: float) -> "ClockState":
        if color == Color.WHITE:
            return replace(self, white_remaining=seconds)
        return replace(self, black_remaining=seconds)


@dataclass(frozen=True)
class ClockResult:
    """Outcome of charging one move to the mover's clock."""
    state: ClockState
    mover: Color
    elapsed: float
    remaining: float
    timed_out: bool


def elapsed_since(last: Optional[datetime], now: datetime) -> float:
    last = to_utc(last)
    if last is None:
        return 0.0
    return max(0.0, (to_utc(now) - last).total_seconds())


def account_time(state: ClockState, mover: Color, now: datetime) -> ClockResult:
    """
    Charge the time since the last move to *mover* and add the increment.

    A mover whose clock runs out is flagged before the increment is
    considered. Charging the same mover twice at the same instant is a retry
    and leaves the state untouched.
    """
    now = to_utc(now)
    if state.last_mover == mover and to_utc(state.last_move_at) == now:
        return ClockResult(state, mover, 0.0, state.remaining(mover), False)

    elapsed = elapsed_since(state.last_move_at, now)
    left = state.remaining(mover) - elapsed

    if left <= 0:
        logger.info(f"Clock flagged for {mover.label} after {elapsed:.1f}s")
        return ClockResult(state.with_remaining(mover, 0.0), mover, elapsed, 0.0, True)

    remaining = left + state.increment
    new_state = replace(
        state.with_remaining(mover, remaining),
        last_move_at=now,
        last_mover=mover,
    )
    return ClockResult(new_state, mover, elapsed, remaining, False)


def live_remaining(state: ClockState, side_to_move: Color, now: datetime) -> float:
    """What the side to move has left right now, without charging anything."""
    return max(0.0, state.remaining(side_to_move) - elapsed_since(state.last_move_at, now))


def has_flagged(state: ClockState, side_to_move: Color, now: datetime) -> bool:
    """Polling path: has the side to move run out of time without moving?"""
    return state.remaining(side_to_move) - elapsed_since(state.last_move_at, now) <= 0
