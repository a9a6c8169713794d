import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Presence/broadcast channel every peer joins
    ARENA_CHANNEL = os.environ.get('ARENA_CHANNEL', 'arena_presence')
    # Leader tick period (seconds)
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1.0'))
    # Market data source; must stay well under the tick period
    PRICE_URL = os.environ.get('PRICE_URL', 'https://api.coinbase.com/v2/prices/BTC-USD/spot')
    PRICE_TIMEOUT_SEC = float(os.environ.get('PRICE_TIMEOUT_SEC', '0.8'))
    # Degraded mode: random walk around the last known price
    FALLBACK_PRICE = float(os.environ.get('FALLBACK_PRICE', '96000'))
    SIMULATED_STEP = float(os.environ.get('SIMULATED_STEP', '25'))
    # Sliding windows kept by every node
    PRICE_HISTORY_LIMIT = int(os.environ.get('PRICE_HISTORY_LIMIT', '60'))
    CHAT_HISTORY_LIMIT = int(os.environ.get('CHAT_HISTORY_LIMIT', '30'))
    CHAT_MAX_LENGTH = int(os.environ.get('CHAT_MAX_LENGTH', '280'))
    # Comma separated list of allowed browser origins
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
        ).split(',') if o.strip()
    ]
