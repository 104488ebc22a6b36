import os
import sys
from datetime import datetime, timedelta

import pytest

# Ensure the backend root (containing the `mtgstats` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from mtgstats import create_app, db, socketio
from mtgstats.services.games import clock


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ALLOWED_ORIGINS = []
    MAX_IMAGE_SIZE = 1024 * 1024
    UPLOAD_DIR = None


class FakeClock:
    def __init__(self, start):
        self.now = start

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture()
def flask_app(tmp_path):
    config = type('Config', (TestConfig,), {'UPLOAD_DIR': str(tmp_path / 'uploads')})
    application = create_app(config)
    with application.app_context():
        # Ensure models are imported so tables are created
        import mtgstats.models  # noqa: F401
        db.create_all()
    # Requests push their own app context so flask_login state stays per request
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def fake_clock(monkeypatch):
    fake = FakeClock(datetime(2026, 3, 14, 18, 0, 0))
    monkeypatch.setattr(clock, 'utcnow', lambda: fake.now)
    return fake


@pytest.fixture()
def make_user(flask_app):
    from mtgstats.models import User

    def _make(name, password=None, is_admin=False):
        with flask_app.app_context():
            user = User(name=name, is_admin=is_admin)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture()
def make_deck(flask_app):
    from mtgstats.models import Deck

    def _make(name):
        with flask_app.app_context():
            deck = Deck(name=name)
            db.session.add(deck)
            db.session.commit()
            return deck.id
    return _make


@pytest.fixture()
def admin_client(flask_app, make_user):
    make_user('admin', password='secret', is_admin=True)
    test_client = flask_app.test_client()
    res = test_client.post('/api/auth/login', json={'name': 'admin', 'password': 'secret'})
    assert res.status_code == 200
    return test_client


@pytest.fixture()
def four_players(make_user, make_deck):
    """Four users with their own decks, in seat order (two per team)."""
    players = []
    for name, deck in [('Alice', 'Burn'), ('Bob', 'Elves'), ('Cara', 'Control'), ('Dan', 'Tron')]:
        players.append({'user_id': make_user(name), 'deck_id': make_deck(deck)})
    return players


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
