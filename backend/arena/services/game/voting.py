import math

from arena.models import BEAR, BULL, DOWN, UP, TeamStats


def record_vote(stats: TeamStats, vote: str) -> None:
    """Count one vote for a team.

    This is a plain counter: it has no notion of who voted, so callers are
    responsible for letting each participant vote once per window.
    """
    if vote == UP:
        stats.votes_up += 1
    elif vote == DOWN:
        stats.votes_down += 1
    else:
        raise ValueError(f'unknown vote {vote!r}')
    stats.total_votes += 1


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def finalize(stats: TeamStats) -> None:
    """Lock a team's stance and conviction at the end of voting.

    With no votes the split counts as 50/50, which favours BULL.
    """
    if stats.total_votes > 0:
        up_pct = stats.votes_up * 100 / stats.total_votes
    else:
        up_pct = 50.0
    if up_pct >= 50:
        stats.stance = BULL
        stats.conviction = _round_half_up(up_pct)
    else:
        stats.stance = BEAR
        stats.conviction = _round_half_up(100 - up_pct)
