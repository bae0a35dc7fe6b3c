"""Chat platform interactions endpoint.

The chat platform POSTs slash commands and button clicks here:

- ``/wheel`` opens a room in the backend and answers with an invitation
- the "I'm in!" button registers the clicking user in that room

Requests are signed with Ed25519; the signature is checked whenever a
public key is configured.
"""
import logging

from flask import Blueprint, current_app, jsonify, request
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from wheelroom import backend, chat, registry, socketio
from wheelroom.exceptions import BackendError
from wheelroom.models import normalize_identity
from wheelroom.services.messages import format_room_message

logger = logging.getLogger(__name__)

interactions = Blueprint('interactions', __name__)

# Interaction types
PING = 1
APPLICATION_COMMAND = 2
MESSAGE_COMPONENT = 3

# Response types
PONG = 1
CHANNEL_MESSAGE_WITH_SOURCE = 4

# Message components
ACTION_ROW = 1
BUTTON = 2
BUTTON_PRIMARY = 1

WHEEL_COMMAND = 'wheel'
ACCEPT_BUTTON_PREFIX = 'accept_button_'


def verify_signature(public_key_hex: str, signature_hex: str, timestamp: str, body: bytes) -> bool:
    try:
        VerifyKey(bytes.fromhex(public_key_hex)).verify(timestamp.encode() + body, bytes.fromhex(signature_hex))
    except (BadSignatureError, ValueError):
        return False
    return True


def _user_id(payload) -> str:
    user = (payload.get('member') or {}).get('user') or payload.get('user') or {}
    return normalize_identity(user.get('id'))


def _room_message(room_id: str) -> str:
    record = backend.get_room(room_id)
    host_id = record.host_id if record else None
    players = record.players if record else []
    return format_room_message(room_id, host_id, players, current_app.config['FRONTEND_URL'])


def _message_response(content: str, room_id: str = None):
    data = {'content': content}
    if room_id is not None:
        data['components'] = [{
            'type': ACTION_ROW,
            'components': [{
                'type': BUTTON,
                'custom_id': f"{ACCEPT_BUTTON_PREFIX}{room_id}",
                'label': "I'm in!",
                'style': BUTTON_PRIMARY,
            }],
        }]
    return jsonify({'type': CHANNEL_MESSAGE_WITH_SOURCE, 'data': data})


def _unavailable():
    return _message_response("The wheel is unavailable right now, please try again later.")


def _handle_command(payload):
    name = (payload.get('data') or {}).get('name')
    room_id = payload.get('id')
    user_id = _user_id(payload)
    if name != WHEEL_COMMAND or not room_id or not user_id:
        return jsonify({'error': f"Unknown command {name!r}"}), 400

    try:
        backend.create_room(room_id, user_id)
        content = _room_message(room_id)
    except BackendError as exc:
        logger.error(f"[interactions] opening room={room_id} failed: {exc}")
        return _unavailable()

    chat.remember_channel(room_id, payload.get('channel_id'))
    return _message_response(content, room_id)


def _handle_component(payload):
    custom_id = (payload.get('data') or {}).get('custom_id') or ''
    user_id = _user_id(payload)
    if not custom_id.startswith(ACCEPT_BUTTON_PREFIX) or not user_id:
        return jsonify({'error': f"Unknown component {custom_id!r}"}), 400
    room_id = custom_id[len(ACCEPT_BUTTON_PREFIX):]

    try:
        backend.add_player(room_id, user_id)
        record = backend.get_room(room_id)
    except BackendError as exc:
        logger.error(f"[interactions] registering player={user_id} room={room_id} failed: {exc}")
        return _unavailable()

    host_id = record.host_id if record else None
    players = record.players if record else []
    # Players already looking at the wheel see the new registration immediately
    room = registry.get(room_id)
    if room is not None and record is not None:
        room.update_registered_players(players, host_id)

    chat.remember_channel(room_id, payload.get('channel_id'))
    content = format_room_message(room_id, host_id, players, current_app.config['FRONTEND_URL'])

    # Replace the previous invitation with the updated one
    message_id = (payload.get('message') or {}).get('id')
    token = payload.get('token')
    if message_id and token:
        socketio.start_background_task(chat.delete_interaction_message, token, message_id)

    return _message_response(content, room_id)


@interactions.route('/interactions', methods=['POST'])
def handle_interaction():
    public_key = current_app.config.get('DISCORD_PUBLIC_KEY')
    if not public_key:
        if not current_app.config.get('TESTING'):
            current_app.logger.error("[interactions] DISCORD_PUBLIC_KEY is not set, rejecting request")
            return jsonify({'error': 'Interactions are not configured'}), 401
    else:
        signature = request.headers.get('X-Signature-Ed25519', '')
        timestamp = request.headers.get('X-Signature-Timestamp', '')
        if not verify_signature(public_key, signature, timestamp, request.get_data()):
            return jsonify({'error': 'Invalid request signature'}), 401

    payload = request.get_json(silent=True) or {}
    kind = payload.get('type')
    if kind == PING:
        return jsonify({'type': PONG})
    if kind == APPLICATION_COMMAND:
        return _handle_command(payload)
    if kind == MESSAGE_COMPONENT:
        return _handle_component(payload)
    return jsonify({'error': 'Unsupported interaction type'}), 400
