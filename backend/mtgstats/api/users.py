from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from mtgstats import db
from mtgstats.auth import admin_required, viewer
from mtgstats.errors import Conflict, Forbidden, InvalidInput, NotFound
from mtgstats.models import GamePlayer, User

users = Blueprint('users', __name__)


def _get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


def _parse_user_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput('JSON body required')
    name = data.get('name')
    if not isinstance(name, str) or not 2 <= len(name.strip()) <= 100:
        raise InvalidInput('Name must be 2 to 100 characters')
    password = data.get('password') or ''
    if not isinstance(password, str):
        raise InvalidInput('password must be a string')
    is_admin = data.get('is_admin')
    if is_admin is not None and not isinstance(is_admin, bool):
        raise InvalidInput('is_admin must be a boolean')
    return name.strip(), password, is_admin


@users.route('', methods=['GET'])
def list_users():
    rows = User.query.order_by(User.id.desc()).all()
    return jsonify([u.to_dict(viewer()) for u in rows])


@users.route('/<int:user_id>', methods=['GET'])
def get_user(user_id):
    return jsonify(_get_user_or_404(user_id).to_dict(viewer()))


@users.route('', methods=['POST'])
@admin_required
def create_user():
    name, password, is_admin = _parse_user_body()
    if User.query.filter_by(name=name).first():
        raise Conflict('A user with this name already exists')

    user = User(name=name, is_admin=bool(is_admin))
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"[user-create] user={user.id} by={current_user.id}")
    return jsonify(user.to_dict(current_user)), 201


@users.route('/<int:user_id>', methods=['PUT'])
@login_required
def update_user(user_id):
    name, password, is_admin = _parse_user_body()
    user = _get_user_or_404(user_id)

    is_self = current_user.id == user.id
    if not current_user.is_admin and not is_self:
        raise Forbidden('You can only edit your own profile')
    if is_admin is not None and not current_user.is_admin:
        raise Forbidden('Only an administrator can change is_admin')
    if User.query.filter(User.name == name, User.id != user.id).first():
        raise Conflict('A user with this name already exists')

    user.name = name
    if password:
        user.set_password(password)
    if is_admin is not None:
        user.is_admin = is_admin
    db.session.commit()
    return jsonify(user.to_dict(current_user))


@users.route('/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    user = _get_user_or_404(user_id)
    if GamePlayer.query.filter_by(user_id=user.id).first():
        raise Conflict('User has played games and cannot be deleted')
    db.session.delete(user)
    db.session.commit()
    current_app.logger.info(f"[user-delete] user={user_id} by={current_user.id}")
    return jsonify({'message': 'User deleted', 'id': user_id})
