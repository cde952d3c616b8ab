import os
import sys
import pytest

# Ensure the backend root (containing the `buzzer` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from buzzer import create_app, registry, socketio
from buzzer.services.rooms import RoomRegistry, RoundClock


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SOCKETIO_NAMESPACE = '/'
    LOG_LEVEL = 'DEBUG'


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture()
def fake_now():
    return FakeClock()


@pytest.fixture()
def timers():
    """Background tasks captured instead of run, so tests decide when they fire."""
    return []


@pytest.fixture()
def round_clock(timers):
    return RoundClock(spawn=lambda fn, *args: timers.append((fn, args)), sleep=lambda _s: None)


@pytest.fixture()
def rooms(fake_now, round_clock):
    return RoomRegistry(now_ms=fake_now, clock=round_clock)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application
    from buzzer.socketio_events import reset_connections
    registry.clear()
    reset_connections()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass


@pytest.fixture()
def make_client(flask_app):
    """Open extra Socket.IO connections; each one is a separate player."""
    opened = []

    def _make():
        c = socketio.test_client(flask_app)
        opened.append(c)
        return c

    yield _make
    for c in opened:
        if c.is_connected():
            c.disconnect()
