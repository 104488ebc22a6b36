from flask import Blueprint, jsonify
from sqlalchemy.orm import selectinload

from mtgstats import db
from mtgstats.models import Game, GamePlayer
from mtgstats.services.games.stats import deck_stats, player_stats

stats = Blueprint('stats', __name__)


def load_finished_games(session):
    return (
        session.query(Game)
        .filter(Game.end_time.isnot(None))
        .options(
            selectinload(Game.players).selectinload(GamePlayer.user),
            selectinload(Game.turns),
        )
        .order_by(Game.id)
        .all()
    )


@stats.route('/players', methods=['GET'])
def get_player_stats():
    return jsonify(player_stats(load_finished_games(db.session)))


@stats.route('/decks', methods=['GET'])
def get_deck_stats():
    return jsonify(deck_stats(load_finished_games(db.session)))
