import logging
import math
import random
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as DeadlineExceeded
from typing import Optional, Tuple

import requests

from arena.models import LIVE, SIMULATED

DEFAULT_PRICE_URL = 'https://api.coinbase.com/v2/prices/BTC-USD/spot'
DEFAULT_FALLBACK_PRICE = 96000.0


class PriceFeed:
    """Spot price source that never fails.

    A successful GET yields ``(price, 'LIVE')``. Any failure (timeout, network
    error, bad status, malformed body) degrades to a random walk around the
    last known price and yields ``(price, 'SIMULATED')``.

    ``timeout`` bounds the whole call, DNS and body included: the GET runs on
    a worker thread and a fetch that has not finished by then is abandoned.
    """

    def __init__(
        self,
        url: str = DEFAULT_PRICE_URL,
        timeout: float = 0.8,
        fallback_price: float = DEFAULT_FALLBACK_PRICE,
        step: float = 25.0,
        session=None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.step = step
        self.last_known: float = fallback_price
        self._http = session or requests
        self._rng = rng or random.Random()
        self._logger = logger or logging.getLogger(__name__)
        # An abandoned GET keeps its worker until requests gives up on it
        self._pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix='price-feed')

    def seed(self, price: float) -> None:
        """Continue the walk from a price observed elsewhere (e.g. replicated)."""
        if price and math.isfinite(price) and price > 0:
            self.last_known = float(price)

    def fetch(self) -> Tuple[float, str]:
        future = self._pool.submit(self._fetch_live)
        try:
            price = future.result(timeout=self.timeout)
        except DeadlineExceeded:
            future.cancel()
            return self._degrade(f'deadline {self.timeout}s exceeded')
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            return self._degrade(repr(exc))
        self.last_known = price
        return price, LIVE

    def _degrade(self, reason: str) -> Tuple[float, str]:
        price = self.last_known + self._rng.uniform(-self.step, self.step)
        self.last_known = price
        self._logger.warning(f"[price-degrade] source={self.url} error={reason} simulated={price:.2f}")
        return price, SIMULATED

    def _fetch_live(self) -> float:
        res = self._http.get(self.url, timeout=self.timeout)
        res.raise_for_status()
        body = res.json()
        price = float(body['data']['amount'])
        if not (math.isfinite(price) and price > 0):
            raise ValueError(f'unusable price {price!r}')
        return price
