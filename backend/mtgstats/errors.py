"""Error taxonomy shared by services and routes.

Services raise these; the handlers registered on the app turn them into
``{"error": <message>, "category": <category>}`` JSON responses.
"""
from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code = 500
    category = 'internal_error'

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'category': self.category}


class InvalidInput(ApiError):
    """Malformed team number, timestamp, name, or missing association."""
    status_code = 400
    category = 'invalid_input'


class Unauthorized(ApiError):
    status_code = 401
    category = 'unauthorized'


class Forbidden(ApiError):
    status_code = 403
    category = 'forbidden'


class NotFound(ApiError):
    """Referenced game, deck, user or active game does not exist."""
    status_code = 404
    category = 'not_found'


class Conflict(ApiError):
    """Second active game, duplicate user name, or a still-referenced row."""
    status_code = 409
    category = 'conflict'


class StorageFailure(ApiError):
    """A persistence operation failed; never retried."""
    status_code = 500
    category = 'storage_failure'


def register_error_handlers(flask_app):
    from mtgstats import db

    @flask_app.errorhandler(ApiError)
    def handle_api_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.error(f"[error] {request.method} {request.path} {exc.category}: {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc):
        db.session.rollback()
        flask_app.logger.exception(f"[storage] {request.method} {request.path} failed")
        return jsonify(StorageFailure('Storage operation failed').to_dict()), 500

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        if exc.code == 404 and request.url_rule is None:
            return jsonify({
                'error': 'Route not found',
                'category': 'not_found',
                'path': request.path,
                'hint': 'Use the /api prefix, e.g. POST /api/games',
            }), 404
        if exc.code == 404:
            category = 'not_found'
        elif exc.code and 400 <= exc.code < 500:
            category = 'invalid_input'
        else:
            category = 'internal_error'
        return jsonify({'error': exc.description, 'category': category}), exc.code
