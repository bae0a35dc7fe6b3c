from flask import Blueprint, jsonify

from wheelroom import registry

rooms = Blueprint('rooms', __name__)

@rooms.route('/<string:room_id>/state', methods=['GET'])
def get_room_state(room_id):
    """
    Returns the live state of a room: membership, readiness and wheel setup.
    Only rooms with at least one past connection exist here.
    """
    room = registry.get(room_id)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(room.snapshot()), 200
