from functools import wraps

from flask_login import current_user, login_required

from mtgstats.errors import Forbidden


def admin_required(view):
    """Like ``login_required``, but the user must also be an admin."""
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not current_user.is_admin:
            raise Forbidden('Administrator rights required')
        return view(*args, **kwargs)
    return wrapper


def viewer():
    """The logged-in user, or None for anonymous requests."""
    return current_user if current_user.is_authenticated else None
