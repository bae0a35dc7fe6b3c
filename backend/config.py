import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Remote backend that owns room membership and item catalogs
    REMOTE_ENDPOINT = os.environ.get('REMOTE_ENDPOINT', 'http://localhost:8080')
    BACKEND_TIMEOUT_SEC = float(os.environ.get('BACKEND_TIMEOUT_SEC', '5'))
    # Public page that renders the wheel; room id goes in the fragment
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000')
    CORS_ORIGINS = [o for o in os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',') if o]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # None lets Flask-SocketIO pick eventlet/gevent/threading
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE') or None
    # Wheel physics step interval while spinning (ms)
    SPIN_TICK_INTERVAL_MS = int(os.environ.get('SPIN_TICK_INTERVAL_MS', '10'))
    # Rooms with no connections are retired after this long (sec). 0 disables.
    ROOM_IDLE_TTL_SEC = int(os.environ.get('ROOM_IDLE_TTL_SEC', '3600'))
    ROOM_SWEEP_INTERVAL_SEC = int(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', '60'))
    # Chat platform (Discord) integration. Without a public key every
    # interaction is rejected outside TESTING.
    DISCORD_PUBLIC_KEY = os.environ.get('DISCORD_PUBLIC_KEY', '')
    DISCORD_APP_ID = os.environ.get('DISCORD_APP_ID', '')
    DISCORD_BOT_TOKEN = os.environ.get('DISCORD_BOT_TOKEN', '')
    DISCORD_API_BASE = os.environ.get('DISCORD_API_BASE', 'https://discord.com/api/v10')
    # Remembered result channels expire after this long without use (sec)
    CHAT_CHANNEL_TTL_SEC = int(os.environ.get('CHAT_CHANNEL_TTL_SEC', str(7 * 24 * 3600)))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '5000'))
