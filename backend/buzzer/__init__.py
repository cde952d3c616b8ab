import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config
from buzzer.services.rooms import RoomRegistry, RoundClock

socketio = SocketIO(async_mode=None)
round_clock = RoundClock()
registry = RoomRegistry(clock=round_clock)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    level = flask_app.config.get('LOG_LEVEL', 'INFO')
    flask_app.logger.setLevel(level)
    logging.getLogger('buzzer').setLevel(level)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    round_clock.init_app(flask_app, socketio)
    registry.init_app(flask_app, clock=round_clock)

    from buzzer.main import main
    flask_app.register_blueprint(main)

    from buzzer.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Handlers bind to the module-level socketio instance
    from buzzer.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    return flask_app
