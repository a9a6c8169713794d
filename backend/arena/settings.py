from dataclasses import dataclass
from typing import Any, Mapping

from arena.models import CHAT_HISTORY_LIMIT, PRICE_HISTORY_LIMIT
from arena.services.game.price_feed import DEFAULT_FALLBACK_PRICE, DEFAULT_PRICE_URL


@dataclass(frozen=True)
class GameSettings:
    """Peer-side knobs, read from the same keys as the Flask ``Config``."""

    channel: str = 'arena_presence'
    tick_interval: float = 1.0
    price_url: str = DEFAULT_PRICE_URL
    price_timeout: float = 0.8
    fallback_price: float = DEFAULT_FALLBACK_PRICE
    simulated_step: float = 25.0
    price_history_limit: int = PRICE_HISTORY_LIMIT
    chat_history_limit: int = CHAT_HISTORY_LIMIT
    chat_max_length: int = 280

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'GameSettings':
        defaults = cls()
        settings = cls(
            channel=str(config.get('ARENA_CHANNEL', defaults.channel)),
            tick_interval=float(config.get('TICK_INTERVAL_SEC', defaults.tick_interval)),
            price_url=str(config.get('PRICE_URL', defaults.price_url)),
            price_timeout=float(config.get('PRICE_TIMEOUT_SEC', defaults.price_timeout)),
            fallback_price=float(config.get('FALLBACK_PRICE', defaults.fallback_price)),
            simulated_step=float(config.get('SIMULATED_STEP', defaults.simulated_step)),
            price_history_limit=int(config.get('PRICE_HISTORY_LIMIT', defaults.price_history_limit)),
            chat_history_limit=int(config.get('CHAT_HISTORY_LIMIT', defaults.chat_history_limit)),
            chat_max_length=int(config.get('CHAT_MAX_LENGTH', defaults.chat_max_length)),
        )
        if settings.price_timeout >= settings.tick_interval:
            raise ValueError('PRICE_TIMEOUT_SEC must be shorter than TICK_INTERVAL_SEC')
        return settings
