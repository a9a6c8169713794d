from arena.models import ALPHA, BEAR, BETA, BULL, TeamStats


def _is_right(stats: TeamStats, went_up: bool) -> bool:
    return (stats.stance == BULL and went_up) or (stats.stance == BEAR and not went_up)


def resolve(start_price: float, current_price: float, alpha: TeamStats, beta: TeamStats) -> str:
    """Decide the round winner from the realized price move.

    - only one team called it: that team wins
    - both right: higher conviction wins, ties go to ALPHA
    - both wrong: lower conviction wins, ties go to BETA

    The both-wrong rule rewards the less confident loser. It is kept as is for
    compatibility with existing clients even though it reads as inverted.
    """
    went_up = current_price > start_price
    alpha_right = _is_right(alpha, went_up)
    beta_right = _is_right(beta, went_up)

    if alpha_right and not beta_right:
        return ALPHA
    if beta_right and not alpha_right:
        return BETA
    if alpha_right and beta_right:
        return ALPHA if alpha.conviction >= beta.conviction else BETA
    return ALPHA if alpha.conviction < beta.conviction else BETA
