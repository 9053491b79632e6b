from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from memgame.services.game import GameError

game = Blueprint('game', __name__)


def _engine():
    return current_app.extensions['memgame']


def _bad_request(message):
    return jsonify({'error': message, 'code': 'BadRequest'}), 400


@game.errorhandler(GameError)
def handle_game_error(exc):
    current_app.logger.info(f"[rejected] path={request.path} code={exc.error_kind} player={current_user.get_id()}")
    return jsonify(exc.to_dict()), exc.status_code


@game.route('/start', methods=['POST'])
@login_required
def start_session():
    """
    Starts a session for the calling player. The fake number and the
    answer set are never part of this response.
    """
    result = _engine().machine.start_session(current_user.player_id)
    return jsonify(result.to_dict()), 201


@game.route('/options', methods=['GET'])
def fetch_options():
    """
    Returns the current round's selection options for a valid round nonce.
    """
    session_id = request.args.get('session_id')
    nonce = request.args.get('nonce')
    if not session_id or not nonce:
        return _bad_request('Missing session_id or nonce')

    options, round_number = _engine().machine.fetch_options(session_id, nonce)
    return jsonify({'selection_options': options, 'round': round_number})


@game.route('/submit', methods=['POST'])
@login_required
def submit_answer():
    data = request.get_json(silent=True) or {}
    session_id = data.get('session_id')
    nonce = data.get('nonce')
    chosen = data.get('chosen_number')
    if not session_id or not nonce or chosen is None:
        return _bad_request('Missing required fields')
    # bool is an int subclass; reject it explicitly
    if isinstance(chosen, bool):
        return _bad_request('chosen_number must be an integer')
    try:
        chosen = int(chosen)
    except (TypeError, ValueError):
        return _bad_request('chosen_number must be an integer')

    engine = _engine()
    result = engine.machine.submit_answer(str(session_id), current_user.player_id, chosen, str(nonce))
    payload = result.to_dict()
    if result.session_complete:
        payload['stats'] = engine.player_stats(current_user.player_id)
    return jsonify(payload)
