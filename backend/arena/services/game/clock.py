"""Fixed 60 second phase clock.

The phase is recomputed from wall-clock time on every observation, never
accumulated from a counter, so a node that misses ticks lands on the right
phase the next time it looks.
"""

import math
from typing import Optional, Tuple

from arena.models import BATTLE, RESULT, VOTING

CYCLE_SEC = 60
VOTING_END_SEC = 30
BATTLE_END_SEC = 50

# Edge names, fired only on the exact second they belong to
EDGE_FINALIZE = 'finalize'
EDGE_RESOLVE = 'resolve'
EDGE_RESET = 'reset'
# Mid-battle commentary checkpoint
PROGRESS_SEC = 40


def _split(now: float) -> Tuple[int, int]:
    whole = int(math.floor(now))
    minute_start = whole - (whole % CYCLE_SEC)
    return minute_start, whole - minute_start


def compute_phase(now: float) -> Tuple[str, int]:
    """Return ``(phase, phase_end_time)`` for epoch-seconds ``now``.

    ``phase_end_time`` is the epoch millisecond at which the phase ends.
    """
    minute_start, seconds = _split(now)
    if seconds < VOTING_END_SEC:
        return VOTING, (minute_start + VOTING_END_SEC) * 1000
    if seconds < BATTLE_END_SEC:
        return BATTLE, (minute_start + BATTLE_END_SEC) * 1000
    return RESULT, (minute_start + CYCLE_SEC) * 1000


def edge_for(now: float) -> Optional[str]:
    _, seconds = _split(now)
    if seconds == VOTING_END_SEC:
        return EDGE_FINALIZE
    if seconds == BATTLE_END_SEC:
        return EDGE_RESOLVE
    if seconds == 0:
        return EDGE_RESET
    return None


def is_progress_checkpoint(now: float) -> bool:
    return _split(now)[1] == PROGRESS_SEC


def voting_window(now: float) -> int:
    """Identify the voting window (the minute) ``now`` falls in."""
    return _split(now)[0]
