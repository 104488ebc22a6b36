from flask_socketio import join_room, leave_room, emit
from mtgstats import socketio

NAMESPACE = '/ws'
ACTIVE_ROOM = 'active_game'


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_active(data=None):
    join_room(ACTIVE_ROOM)
    emit('joined', {'room': ACTIVE_ROOM})


def handle_leave_active(data=None):
    leave_room(ACTIVE_ROOM)
    emit('left', {'room': ACTIVE_ROOM})


def handle_ping(data=None):
    emit('pong', data or {})


def broadcast_game(event: str, game) -> None:
    """Push the serialized game to every scoreboard watching the active game."""
    socketio.emit(event, game.to_dict(), to=ACTIVE_ROOM, namespace=NAMESPACE)


def broadcast_cleared() -> None:
    socketio.emit('games_cleared', {}, to=ACTIVE_ROOM, namespace=NAMESPACE)


def register_socketio_handlers() -> None:
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('join_active', handle_join_active, namespace=NAMESPACE)
    socketio.on_event('leave_active', handle_leave_active, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
