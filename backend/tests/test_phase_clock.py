from arena.models import BATTLE, RESULT, VOTING
from arena.services.game.clock import (
    EDGE_FINALIZE,
    EDGE_RESET,
    EDGE_RESOLVE,
    compute_phase,
    edge_for,
    voting_window,
)

from conftest import MINUTE


def test_phase_windows():
    assert compute_phase(MINUTE + 0) == (VOTING, (MINUTE + 30) * 1000)
    assert compute_phase(MINUTE + 29.999) == (VOTING, (MINUTE + 30) * 1000)
    assert compute_phase(MINUTE + 30) == (BATTLE, (MINUTE + 50) * 1000)
    assert compute_phase(MINUTE + 49.5) == (BATTLE, (MINUTE + 50) * 1000)
    assert compute_phase(MINUTE + 50) == (RESULT, (MINUTE + 60) * 1000)
    assert compute_phase(MINUTE + 59.9) == (RESULT, (MINUTE + 60) * 1000)


def test_compute_phase_is_pure():
    for offset in (0, 12.25, 30, 44.4, 50, 59):
        assert compute_phase(MINUTE + offset) == compute_phase(MINUTE + offset)


def test_phase_end_time_only_moves_forward_over_a_cycle():
    ends = [compute_phase(MINUTE + tenth / 10)[1] for tenth in range(0, 1200)]
    assert all(b >= a for a, b in zip(ends, ends[1:]))
    # One distinct deadline per phase, three phases per minute
    assert len(set(ends)) == 6


def test_late_observer_lands_on_current_phase():
    # A node that was asleep for minutes still computes the right phase
    assert compute_phase(MINUTE + 7 * 60 + 41) == (BATTLE, (MINUTE + 7 * 60 + 50) * 1000)


def test_edges_fire_on_exact_seconds_only():
    assert edge_for(MINUTE + 30) == EDGE_FINALIZE
    assert edge_for(MINUTE + 30.9) == EDGE_FINALIZE
    assert edge_for(MINUTE + 50) == EDGE_RESOLVE
    assert edge_for(MINUTE + 60) == EDGE_RESET
    assert edge_for(MINUTE) == EDGE_RESET
    # A tick that skips a boundary skips its edge
    assert edge_for(MINUTE + 31) is None
    assert edge_for(MINUTE + 51) is None
    assert edge_for(MINUTE + 1) is None


def test_voting_window_is_the_minute():
    assert voting_window(MINUTE + 3) == MINUTE
    assert voting_window(MINUTE + 59.9) == MINUTE
    assert voting_window(MINUTE + 60) == MINUTE + 60
