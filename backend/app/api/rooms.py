from flask import Blueprint, current_app, jsonify

rooms = Blueprint('rooms', __name__)


@rooms.route('/rooms/<string:room_id>', methods=['GET'])
def get_room_state(room_id):
    """
    Returns the public state of a room: no player's private question.
    """
    room = current_app.extensions['game_engine'].registry.get(room_id)
    if room is None:
        return jsonify({'error': 'Game not found'}), 404
    with room.lock:
        return jsonify(room.to_dict()), 200


@rooms.route('/questions/stats', methods=['GET'])
def get_question_stats():
    return jsonify(current_app.extensions['question_supply'].stats()), 200
