import os
import sys
import random
from datetime import datetime, timedelta, timezone
import pytest

# Ensure the backend root (containing the `memgame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from memgame import create_app, db


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PLAYER_ID_HEADER = 'X-Player-Id'
    CORS_ORIGINS = ['http://localhost:3000']
    TOTAL_ROUNDS = 3
    ROUND_NUMBER_COUNT = 6
    ROUND_DISPLAY_TIME_SEC = 10
    ROUND_OPTION_COUNT = 3
    MAX_SESSIONS_PER_COOLDOWN = 1
    COOLDOWN_MINUTES = 360
    TOKENS_PER_CORRECT = 10
    MAX_TOKENS_PER_SESSION = 30
    TOKEN_STORE_TIMEOUT_SEC = 2
    SESSION_RETENTION_SEC = 900
    SESSION_SWEEP_INTERVAL_SEC = 0
    LEADERBOARD_SIZE = 10


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def flask_app(clock):
    application = create_app(TestConfig, clock=clock, rng=random.Random(1234))
    # Contexts only around setup/teardown; an outer context would leak `g`
    # (and the logged-in player) across test-client requests
    with application.app_context():
        # Ensure models are imported so tables are created
        import memgame.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
    application.extensions['memgame'].shutdown()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def engine(flask_app):
    return flask_app.extensions['memgame']


@pytest.fixture()
def app_factory(clock):
    """Builds extra apps with config and engine overrides (e.g. a counter store)."""
    built = []

    def _make(config=None, **overrides):
        overrides.setdefault('clock', clock)
        overrides.setdefault('rng', random.Random(5))
        config_class = type('FactoryConfig', (TestConfig,), dict(config or {}))
        application = create_app(config_class, **overrides)
        built.append(application)
        return application

    yield _make
    for application in built:
        application.extensions['memgame'].shutdown()
