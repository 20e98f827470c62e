import os
import sys
import pytest

# Ensure the backend root (containing the `estimateflow` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from estimateflow import create_app, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CLIENT_ORIGIN = None
    SESSION_IDLE_TTL_SEC = 60
    SESSION_SWEEP_INTERVAL_SEC = 0
    HIDE_VOTES_UNTIL_REVEAL = False


class HiddenVotesConfig(TestConfig):
    HIDE_VOTES_UNTIL_REVEAL = True


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def store(flask_app):
    return flask_app.extensions['estimateflow']['store']


@pytest.fixture()
def make_client(flask_app):
    """Factory for Socket.IO test clients; all are disconnected on teardown."""
    created = []

    def _make(app=None):
        test_client = socketio.test_client(app or flask_app)
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass


@pytest.fixture()
def sio_client(make_client):
    return make_client()
