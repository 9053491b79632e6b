from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the memgame server!'})


@main.route('/api/player/stats', methods=['GET'])
def player_stats():
    player_id = (request.args.get('player_id') or '').strip()
    if not player_id and current_user.is_authenticated:
        player_id = current_user.player_id
    if not player_id:
        return jsonify({'error': 'Missing player_id parameter', 'code': 'BadRequest'}), 400

    engine = current_app.extensions['memgame']
    return jsonify(engine.player_stats(player_id))


@main.route('/api/leaderboard', methods=['GET'])
def leaderboard():
    engine = current_app.extensions['memgame']
    size = int(current_app.config.get('LEADERBOARD_SIZE', 10))
    rows = engine.ledger.leaderboard(size)
    return jsonify({
        'leaderboard': [{'player_id': pid, 'total_tokens': total} for pid, total in rows]
    })
