import logging
from typing import Any, Dict, Optional, Tuple

from flask import current_app, request

from wheelroom import backend, registry, socketio
from wheelroom.exceptions import BackendError
from wheelroom.models import normalize_identity
from wheelroom.rooms import Room

logger = logging.getLogger(__name__)

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


class SocketConnection:
    """Push handle for one Socket.IO client."""

    def __init__(self, sid: str, namespace: str):
        self.sid = sid
        self.namespace = namespace

    def send(self, event: str, data) -> None:
        # socketio.emit works outside a request context, e.g. from spin timers
        socketio.emit(event, data, to=self.sid, namespace=self.namespace)

    def __repr__(self):
        return f"SocketConnection({self.sid!r})"


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _current_room() -> Tuple[Optional[Dict[str, Any]], Optional[Room]]:
    ctx = _sid_to_ctx.get(_get_sid())
    if not ctx:
        return None, None
    return ctx, registry.get(ctx['room_id'])


def handle_connect(auth=None):
    sid = _get_sid()
    room_id = request.args.get('roomId')
    user_id = normalize_identity(request.args.get('id'))
    if not room_id:
        logger.warning(f"[connect] sid={sid} rejected: roomId is required")
        return False

    logger.info(f"[connect] sid={sid} user={user_id} room={room_id}")
    try:
        record = backend.get_room(room_id)
    except BackendError as exc:
        logger.error(f"[connect] sid={sid} room={room_id} backend lookup failed: {exc}")
        return False
    if record is None:
        logger.warning(f"[connect] sid={sid} rejected: unknown room={room_id}")
        return False

    room = registry.get_or_create(record.id, record.host_id, record.players)
    connection = SocketConnection(sid, request.namespace)
    _sid_to_ctx[sid] = {'room_id': room.id, 'user_id': user_id, 'connection': connection}
    room.admit(user_id, request.args.get('name'), request.args.get('avatar'), connection)


def handle_disconnect(reason=None):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    logger.info(f"[disconnect] user={ctx['user_id']} room={ctx['room_id']}")
    room = registry.get(ctx['room_id'])
    if room is not None:
        room.remove(ctx['user_id'], ctx['connection'])


def handle_toggle_ready(data=None):
    # Readiness always belongs to the socket's own identity, whatever the payload says
    ctx, room = _current_room()
    if room is None:
        return
    room.toggle_ready(ctx['user_id'])


def handle_filter_change(data):
    ctx, room = _current_room()
    if room is None:
        return
    filter = data.get('filter') if isinstance(data, dict) else data
    if not isinstance(filter, str):
        logger.warning(f"[filter] room={room.id} ignoring non-string filter {filter!r}")
        return
    # In tests, fetch inline for determinism
    if current_app.config.get('TESTING'):
        room.change_filter(filter)
    else:
        socketio.start_background_task(room.change_filter, filter)


def handle_spin(data=None):
    ctx, room = _current_room()
    if room is None:
        return
    room.spin()


def handle_ban(data):
    ctx, room = _current_room()
    if room is None:
        return
    room.ban(data)


def handle_unban(data):
    ctx, room = _current_room()
    if room is None:
        return
    room.unban(data)


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('players/toggle', handle_toggle_ready, namespace=namespace)
    socketio.on_event('filter/change', handle_filter_change, namespace=namespace)
    socketio.on_event('wheel/spin', handle_spin, namespace=namespace)
    socketio.on_event('wheel/ban', handle_ban, namespace=namespace)
    socketio.on_event('wheel/unban', handle_unban, namespace=namespace)
