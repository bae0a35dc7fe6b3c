from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

from wheelroom.rooms import Room, RoomRegistry
from wheelroom.services.backend import BackendClient
from wheelroom.services.chat import ChatNotifier
from wheelroom.services.scheduler import spin_timer_factory, sweep_idle_rooms

socketio = SocketIO(async_mode=None)
backend = BackendClient()
chat = ChatNotifier()
registry = RoomRegistry()

_sweeper_started = False


def create_app(config_class=Config):
    global _sweeper_started
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(
        flask_app,
        cors_allowed_origins=allowed_origins,
        async_mode=flask_app.config.get('SOCKETIO_ASYNC_MODE'),
    )

    backend.init_app(flask_app)
    chat.init_app(flask_app)

    # Every room ticks its wheel on its own background task while spinning
    tick_interval = flask_app.config.get('SPIN_TICK_INTERVAL_MS', 10) / 1000.0
    timer_factory = spin_timer_factory(socketio, tick_interval)

    def _room_factory(room_id, host_id, registered_players):
        return Room(
            room_id,
            host_id,
            registered_players,
            fetch_items=backend.get_items,
            timer_factory=timer_factory,
            result_sink=chat.post_result,
        )

    registry.init_app(flask_app, room_factory=_room_factory)

    # Import and register blueprints here
    from wheelroom.main import main
    flask_app.register_blueprint(main)

    from wheelroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from wheelroom.api.interactions import interactions
    flask_app.register_blueprint(interactions)

    # Register Socket.IO event handlers on the initialized socketio instance
    from wheelroom.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    if (registry.idle_ttl > 0 or chat.channel_ttl > 0) and not flask_app.config.get('TESTING') and not _sweeper_started:
        _sweeper_started = True
        socketio.start_background_task(
            sweep_idle_rooms,
            socketio,
            registry,
            flask_app.config.get('ROOM_SWEEP_INTERVAL_SEC', 60),
            chat.prune_channels,
        )
        flask_app.logger.info(f"[sweeper] idle rooms retire after {registry.idle_ttl}s, chat channels after {chat.channel_ttl}s")

    return flask_app
