from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from mtgstats.errors import InvalidInput, Unauthorized
from mtgstats.models import User

auth = Blueprint('auth', __name__)


@auth.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    password = data.get('password') or ''
    if not name or not password:
        raise InvalidInput('name and password are required')

    user = User.query.filter_by(name=name).first()
    if user is None:
        raise Unauthorized('Invalid name or password')
    if not user.password_hash:
        raise Unauthorized('This user has no password set')
    if not user.check_password(password):
        current_app.logger.info(f"[login-failed] user={user.id}")
        raise Unauthorized('Invalid name or password')

    login_user(user, remember=True)
    current_app.logger.info(f"[login] user={user.id} admin={user.is_admin}")
    return jsonify({'user': user.to_dict(user)})


@auth.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})


@auth.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'user': current_user.to_dict(current_user)})
