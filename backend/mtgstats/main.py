from flask import Blueprint, current_app, jsonify, send_from_directory
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mtgstats import db
from mtgstats.services.storage import upload_root

main = Blueprint('main', __name__)

ENDPOINTS = {
    'POST /api/auth/login': 'Log in (name, password)',
    'POST /api/auth/logout': 'Log out',
    'GET /api/auth/me': 'Current user',
    'GET /api/users': 'List users',
    'GET /api/users/<id>': 'User by id',
    'POST /api/users': 'Create user (admin)',
    'PUT /api/users/<id>': 'Update user (self or admin)',
    'DELETE /api/users/<id>': 'Delete user (admin)',
    'GET /api/decks': 'List decks',
    'GET /api/decks/<id>': 'Deck by id',
    'POST /api/decks': 'Create deck',
    'PUT /api/decks/<id>': 'Rename deck',
    'DELETE /api/decks/<id>': 'Delete deck',
    'POST /api/decks/<id>/image': 'Upload deck image and avatar (multipart: image, avatar)',
    'DELETE /api/decks/<id>/image': 'Remove deck image and avatar',
    'GET /api/games': 'List games',
    'POST /api/games': 'Start the active game',
    'DELETE /api/games': 'Delete all games and turns (admin)',
    'GET /api/games/active': 'Active game',
    'PUT /api/games/active': 'Update current turn and turn list',
    'POST /api/games/active/pause': 'Pause the clock',
    'POST /api/games/active/resume': 'Resume the clock',
    'POST /api/games/active/start-turn': 'Anchor the current turn at server time',
    'POST /api/games/active/finish': 'Finish the active game',
    'GET /api/games/<id>': 'Game by id',
    'GET /api/stats/players': 'Player statistics',
    'GET /api/stats/decks': 'Deck statistics',
    'GET /api/export/all': 'Export everything as a gzip JSON archive (admin)',
    'POST /api/import/all': 'Replace everything from a gzip JSON archive (admin)',
    'GET /health': 'Health check',
}


@main.route('/')
def index():
    return jsonify({
        'message': 'MTG Stats API is running',
        'status': 'OK',
        'version': '1.0.0',
        'endpoints': ENDPOINTS,
    })


@main.route('/health')
def health():
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[health] database ping failed: {exc}")
        return jsonify({'status': 'unhealthy', 'error': 'Database is not responding'}), 500
    return jsonify({'status': 'healthy', 'database': 'connected'})


@main.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(upload_root(), filename)
