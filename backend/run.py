import logging

from wheelroom import create_app, socketio

app = create_app()
logging.basicConfig(
    level=app.config.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s - %(levelname)s - [%(name)s] - %(message)s',
)

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, host=app.config['HOST'], port=app.config['PORT'], allow_unsafe_werkzeug=True)
