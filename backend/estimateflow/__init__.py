import re

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

# Dev default when no explicit allow-list is configured
LOCALHOST_ORIGIN = r"^https?://localhost:\d+$"

socketio = SocketIO(async_mode=None)


def parse_allowed_origins(raw):
    """Split a comma-separated CLIENT_ORIGIN value; None when unset or empty."""
    if not raw:
        return None
    origins = [o.strip() for o in raw.split(',') if o.strip()]
    return origins or None


def make_origin_check(allowed_origins):
    def is_allowed_origin(origin, *_):
        if not origin:
            return True
        if allowed_origins:
            return origin in allowed_origins
        return bool(re.match(LOCALHOST_ORIGIN, origin))
    return is_allowed_origin


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = parse_allowed_origins(flask_app.config.get('CLIENT_ORIGIN'))
    CORS(flask_app, supports_credentials=True, origins=allowed_origins or [LOCALHOST_ORIGIN])

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=make_origin_check(allowed_origins))

    from estimateflow.services.sessions.broadcast import RoomChannel
    from estimateflow.services.sessions.store import SessionStore

    # One store per app; tests get a fresh one with every app they build
    store = SessionStore(logger=flask_app.logger)
    flask_app.extensions['estimateflow'] = {
        'store': store,
        'channel': RoomChannel(
            socketio,
            hide_votes=bool(flask_app.config.get('HIDE_VOTES_UNTIL_REVEAL')),
        ),
    }

    from estimateflow.main import main
    flask_app.register_blueprint(main)

    # Register Socket.IO event handlers
    from estimateflow.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from estimateflow.services.sessions.sweeper import start_idle_sweeper
    start_idle_sweeper(flask_app, store)

    flask_app.logger.info(
        f"[startup] CORS {','.join(allowed_origins) if allowed_origins else 'localhost:*'}"
    )
    return flask_app
