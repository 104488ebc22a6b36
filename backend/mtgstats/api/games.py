from flask import Blueprint, jsonify, request

from mtgstats import db
from mtgstats.auth import admin_required, viewer
from mtgstats.errors import InvalidInput, NotFound
from mtgstats.models import Game
from mtgstats.services.games import active
from mtgstats.socketio_events import broadcast_cleared, broadcast_game

games = Blueprint('games', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput('JSON body required')
    return data


def _game_response(game, status=200):
    return jsonify(game.to_dict(viewer())), status


@games.route('', methods=['GET'])
def list_games():
    rows = Game.query.order_by(Game.updated_at.desc(), Game.id.desc()).all()
    return jsonify([g.to_dict(viewer()) for g in rows])


@games.route('', methods=['POST'])
def create_game():
    """Start a new active game; 409 while another one is still running."""
    game = active.create_game(db.session, _json_body())
    broadcast_game('game_update', game)
    return _game_response(game, 201)


@games.route('', methods=['DELETE'])
@admin_required
def clear_games():
    active.clear_games(db.session)
    broadcast_cleared()
    return jsonify({'message': 'Games and turns cleared'})


@games.route('/active', methods=['GET'])
def get_active_game():
    return _game_response(active.get_active_game(db.session))


@games.route('/active', methods=['PUT'])
def update_active_game():
    """Set the current team, (re)anchor or clear the turn clock, replace turns.

    ``current_turn_start`` only signals that a turn is running; the stored
    anchor is always the server's own clock.
    """
    game = active.update_active_game(db.session, _json_body())
    broadcast_game('game_update', game)
    return _game_response(game)


@games.route('/active/pause', methods=['POST'])
def pause_game():
    game, changed = active.pause_active_game(db.session)
    if changed:
        broadcast_game('game_update', game)
    return _game_response(game)


@games.route('/active/resume', methods=['POST'])
def resume_game():
    game, changed = active.resume_active_game(db.session)
    if changed:
        broadcast_game('game_update', game)
    return _game_response(game)


@games.route('/active/start-turn', methods=['POST'])
def start_turn():
    game = active.start_turn(db.session)
    broadcast_game('game_update', game)
    return _game_response(game)


@games.route('/active/finish', methods=['POST'])
def finish_game():
    game = active.finish_active_game(db.session, _json_body())
    broadcast_game('game_finished', game)
    return _game_response(game)


@games.route('/<int:game_id>', methods=['GET'])
def get_game(game_id):
    game = db.session.get(Game, game_id)
    if game is None:
        raise NotFound('Game not found')
    return _game_response(game)
