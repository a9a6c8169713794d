import os
import random
import sys
import pytest

# Ensure the backend root (containing the `arena` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from arena import create_app, socketio
from arena.models import ALPHA, LIVE, Participant
from arena.settings import GameSettings
from arena.services.game.orchestrator import GameOrchestrator
from arena.transport import LocalHub, LocalTransport


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ARENA_CHANNEL = 'test_arena'
    # Nothing listens here, so peers fall back to simulated prices at once
    PRICE_URL = 'http://127.0.0.1:9/spot'
    PRICE_TIMEOUT_SEC = 0.2
    CORS_ORIGINS = ['http://localhost:5173']


# 2024-01-01T00:00:00Z, a whole minute
MINUTE = 1704067200


class FakeClock:
    def __init__(self, now: float = MINUTE + 5):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def at(self, second: float) -> float:
        """Jump to ``second`` within the current minute."""
        minute_start = int(self.now) - (int(self.now) % 60)
        self.now = minute_start + second
        return self.now


class StubFeed:
    """Price feed returning scripted prices."""

    def __init__(self, price: float = 100.0, source: str = LIVE):
        self.price = price
        self.source = source
        self.seeded = []

    def fetch(self):
        return self.price, self.source

    def seed(self, price):
        self.seeded.append(price)


@pytest.fixture()
def flask_app():
    from arena.socketio_events import reset_relay_state
    reset_relay_state()
    application = create_app(TestConfig)
    with application.app_context():
        yield application
    reset_relay_state()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def hub():
    return LocalHub()


@pytest.fixture()
def make_node(hub, clock):
    """Build orchestrators on a shared hub and clock; tracked but no ticker thread."""

    def _make(pid: str, team: str = ALPHA, feed=None, start: bool = True):
        node = GameOrchestrator(
            Participant(id=pid, name=f'name-{pid}', team=team),
            LocalTransport(hub),
            settings=GameSettings(channel='test_arena'),
            price_feed=feed or StubFeed(),
            clock=clock,
            rng=random.Random(7),
        )
        if start:
            node.transport.subscribe(node.channel, node.handle_presence_sync, node.handle_broadcast)
            node.transport.track(node.participant.to_meta())
        return node

    return _make
