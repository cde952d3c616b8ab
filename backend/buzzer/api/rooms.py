from flask import Blueprint, jsonify
from buzzer import registry
from buzzer.errors import RoomError

rooms = Blueprint('rooms', __name__)


@rooms.route('', methods=['GET'])
def room_count():
    return jsonify({'count': len(registry)})


@rooms.route('/<string:code>/state', methods=['GET'])
def get_room_state(code):
    """Return the same snapshot the room's sockets receive."""
    state = registry.get_state(code)
    if state is None:
        return jsonify({'error': RoomError.ROOM_NOT_FOUND.message}), 404
    return jsonify(state.to_dict())
