import os
import sys
from urllib.parse import urlencode

import pytest

# Ensure the backend root (containing the `wheelroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
for path in (BACKEND_ROOT, CURRENT_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

from wheelroom import backend, chat, create_app, registry, socketio
from wheelroom.socketio_events import _sid_to_ctx

from helpers import FakeBackend


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    REMOTE_ENDPOINT = 'http://backend.test'
    BACKEND_TIMEOUT_SEC = 1
    FRONTEND_URL = 'http://wheel.test'
    CORS_ORIGINS = ['http://localhost:3000']
    SOCKETIO_NAMESPACE = '/'
    SOCKETIO_ASYNC_MODE = 'threading'
    SPIN_TICK_INTERVAL_MS = 1
    ROOM_IDLE_TTL_SEC = 0
    ROOM_SWEEP_INTERVAL_SEC = 60
    DISCORD_PUBLIC_KEY = ''
    DISCORD_APP_ID = 'test-app'
    DISCORD_BOT_TOKEN = ''
    DISCORD_API_BASE = 'https://chat.test/api'


@pytest.fixture()
def fake_backend(monkeypatch):
    fake = FakeBackend()
    fake.add_room('R1', host_id='A', players=['A', 'B'])
    fake.catalogs['fruit'] = [
        {'id': 'apple', 'name': 'Apple', 'weight': 1},
        {'id': 'banana', 'name': 'Banana', 'weight': 3},
    ]
    for name in ('get_room', 'create_room', 'add_player', 'get_items'):
        monkeypatch.setattr(backend, name, getattr(fake, name))
    return fake


@pytest.fixture()
def flask_app(fake_backend):
    application = create_app(TestConfig)
    with application.app_context():
        yield application
    # Stop spin timers and forget rooms and channels between tests
    registry.clear()
    chat.clear()
    _sid_to_ctx.clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def connect(flask_app):
    """Open a Socket.IO test client carrying the connection query string."""
    clients = []

    def _connect(room_id, user_id, name=None, avatar=''):
        query = urlencode({'roomId': room_id, 'id': user_id, 'name': name or user_id, 'avatar': avatar})
        test_client = socketio.test_client(flask_app, query_string=query)
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        if test_client.is_connected():
            test_client.disconnect()
