import random
from dataclasses import dataclass
from typing import Optional

from arena.models import DRAW

START = 'START'
PROGRESS = 'PROGRESS'
RESOLVED = 'RESOLVED'

NEXT_CYCLE_LINE = 'Next cycle initialized. Commander link stable.'
NO_COMMANDER_LINE = 'No commander online. Awaiting uplink...'

START_LINES = (
    'Squads locked in. Battle grid is live.',
    'Stances sealed. Watching the tape for the first move.',
    'Directional bets armed. Stand by for impact.',
    'Tactical scan running. Volatility sensors hot.',
    'Both squads committed. The market decides now.',
)

BULL_LINES = (
    'Upper sector taken. The bulls ran it.',
    'Clean upward break confirmed. Long side prevails.',
    'Resistance cracked. Buyers held the line.',
    'Green candle verified. Momentum paid off.',
    'Price climbed and the bullish call landed.',
)

BEAR_LINES = (
    'Lower sector locked. The bears dragged it down.',
    'Downside breach confirmed. Gravity wins this one.',
    'Sellers took control. Short call verified.',
    'Red close on the grid. Bearish read was right.',
    'Liquidity drained. The slide paid the bears.',
)

STALEMATE_LINES = (
    'No clear vector. Round ends in a stalemate.',
    'Signals cancelled out. Neither side broke through.',
    'Tactical parity. The grid stays neutral.',
    'Noise beat signal. Nobody takes this sector.',
)


@dataclass(frozen=True)
class BattleContext:
    phase: str
    price_delta: float
    alpha_stance: str
    alpha_conviction: int
    beta_stance: str
    beta_conviction: int
    winner: Optional[str] = None


def pick_line(context: BattleContext, rng: Optional[random.Random] = None) -> str:
    """Pick a commentary line for the given moment of the round."""
    rng = rng or random
    if context.phase == START:
        return rng.choice(START_LINES)
    if context.phase == RESOLVED:
        if not context.winner or context.winner == DRAW:
            return rng.choice(STALEMATE_LINES)
        if context.price_delta > 0:
            return rng.choice(BULL_LINES)
        return rng.choice(BEAR_LINES)
    return f'Vector delta: {context.price_delta:.4f}%. Monitoring sector pressure...'
