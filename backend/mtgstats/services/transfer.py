"""Full-database export and import.

The archive is gzip-compressed JSON ``{"users": [...], "decks": [...],
"games": [...]}`` with deck images inlined as base64. Import replaces
everything: rows keep their original ids so a re-imported export is
identical to the source.
"""
import gzip
import json
import zlib

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mtgstats.errors import InvalidInput, StorageFailure
from mtgstats.models import Deck, Game, GamePlayer, GameTurn, User
from mtgstats.services import storage
from mtgstats.services.games import clock, ledger

EXPORT_FILENAME = 'mtg_stats_export.json.gz'
TABLES = ('user', 'deck', 'game', 'game_player', 'game_turn')


def _game_to_export(game):
    return {
        'id': game.id,
        'start_time': clock.to_iso(game.start_time),
        'end_time': clock.to_iso(game.end_time),
        'turn_limit_seconds': game.turn_limit_seconds,
        'team_time_limit_seconds': game.team_time_limit_seconds,
        'first_move_team': game.first_move_team,
        'team1_name': game.team1_name,
        'team2_name': game.team2_name,
        'current_turn_team': game.current_turn_team,
        'current_turn_start': clock.to_iso(game.current_turn_start),
        'is_paused': game.is_paused,
        'pause_started_at': clock.to_iso(game.pause_started_at),
        'total_pause_duration_seconds': game.total_pause_duration_seconds,
        'winning_team': game.winning_team,
        'is_technical_defeat': game.is_technical_defeat,
        'created_at': clock.to_iso(game.created_at),
        'updated_at': clock.to_iso(game.updated_at),
        'players': [
            {
                'id': p.id,
                'user_id': p.user_id,
                'seat': p.seat,
                'deck_id': p.deck_id,
                'deck_name': p.deck_name,
            }
            for p in game.players
        ],
        'turns': [t.to_dict() for t in game.turns],
    }


def build_export_payload(session) -> dict:
    users = session.query(User).order_by(User.id).all()
    decks = session.query(Deck).order_by(Deck.id).all()
    games = session.query(Game).order_by(Game.id).all()
    return {
        'users': [
            {
                'id': u.id,
                'name': u.name,
                'password_hash': u.password_hash,
                'is_admin': u.is_admin,
                'created_at': clock.to_iso(u.created_at),
                'updated_at': clock.to_iso(u.updated_at),
            }
            for u in users
        ],
        'decks': [
            {
                'id': d.id,
                'name': d.name,
                'image_url': d.image_url,
                'avatar_url': d.avatar_url,
                'image_base64': storage.read_base64(d.image_url),
                'avatar_base64': storage.read_base64(d.avatar_url),
                'created_at': clock.to_iso(d.created_at),
                'updated_at': clock.to_iso(d.updated_at),
            }
            for d in decks
        ],
        'games': [_game_to_export(g) for g in games],
    }


def pack(payload: dict) -> bytes:
    return gzip.compress(json.dumps(payload).encode('utf-8'))


def unpack(blob: bytes) -> dict:
    try:
        raw = gzip.decompress(blob)
    except (OSError, EOFError, zlib.error):
        raise InvalidInput('Body is not a gzip archive')
    try:
        payload = json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        raise InvalidInput('Archive does not contain valid JSON')
    if not isinstance(payload, dict):
        raise InvalidInput('Archive JSON must be an object')
    return payload


def _list(payload, key):
    value = payload.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise InvalidInput(f'{key} must be a list of objects')
    return value


def _id(entry, where):
    value = entry.get('id')
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInput(f'{where} needs a positive integer id')
    return value


def _timestamp(entry, key, where, required=False):
    value = entry.get(key)
    if value is None:
        if required:
            raise InvalidInput(f'{where}.{key} is required')
        return None
    return clock.parse_timestamp(value)


def _optional_team(value, where, required=False):
    if value is None and not required:
        return None
    if isinstance(value, bool) or value not in (1, 2):
        raise InvalidInput(f'{where}: team must be 1 or 2')
    return value


def _stamps(entry, where):
    stamps = {}
    for key in ('created_at', 'updated_at'):
        value = _timestamp(entry, key, where)
        if value is not None:
            stamps[key] = value
    return stamps


def _build_rows(payload):
    """Turn the payload into unsaved model rows plus the image files to restore."""
    users = []
    for entry in _list(payload, 'users'):
        where = f"user {entry.get('id')}"
        users.append(User(
            id=_id(entry, where),
            name=str(entry.get('name') or ''),
            password_hash=entry.get('password_hash') or None,
            is_admin=bool(entry.get('is_admin', False)),
            **_stamps(entry, where),
        ))
    user_ids = {u.id for u in users}

    decks = []
    files = {}
    for entry in _list(payload, 'decks'):
        where = f"deck {entry.get('id')}"
        deck = Deck(
            id=_id(entry, where),
            name=str(entry.get('name') or ''),
            image_url=entry.get('image_url') or '',
            avatar_url=entry.get('avatar_url') or '',
            **_stamps(entry, where),
        )
        for url_key, data_key in (('image_url', 'image_base64'), ('avatar_url', 'avatar_base64')):
            url = getattr(deck, url_key)
            data = entry.get(data_key)
            if url and data:
                files[url] = storage.decode_base64(data)
        decks.append(deck)

    games = []
    active = 0
    for entry in _list(payload, 'games'):
        where = f"game {entry.get('id')}"
        end_time = _timestamp(entry, 'end_time', where)
        if end_time is None:
            active += 1
        game = Game(
            id=_id(entry, where),
            start_time=_timestamp(entry, 'start_time', where, required=True),
            end_time=end_time,
            active_slot=True if end_time is None else None,
            turn_limit_seconds=int(entry.get('turn_limit_seconds') or 0),
            team_time_limit_seconds=int(entry.get('team_time_limit_seconds') or 0),
            first_move_team=_optional_team(entry.get('first_move_team'), where, required=True),
            team1_name=entry.get('team1_name') or '',
            team2_name=entry.get('team2_name') or '',
            current_turn_team=_optional_team(entry.get('current_turn_team'), where, required=True),
            current_turn_start=_timestamp(entry, 'current_turn_start', where),
            is_paused=bool(entry.get('is_paused', False)),
            pause_started_at=_timestamp(entry, 'pause_started_at', where),
            total_pause_duration_seconds=int(entry.get('total_pause_duration_seconds') or 0),
            winning_team=_optional_team(entry.get('winning_team'), where),
            is_technical_defeat=bool(entry.get('is_technical_defeat', False)),
            **_stamps(entry, where),
        )
        for seat, p in enumerate(_list(entry, 'players')):
            nested = p.get('user') if isinstance(p.get('user'), dict) else {}
            user_id = p.get('user_id') or nested.get('id')
            if user_id not in user_ids:
                raise InvalidInput(f'{where}: player references unknown user {user_id!r}')
            game.players.append(GamePlayer(
                id=_id(p, f'{where} player'),
                user_id=user_id,
                seat=p.get('seat', seat),
                deck_id=int(p.get('deck_id') or 0),
                deck_name=p.get('deck_name') or '',
            ))
        for index, t in enumerate(_list(entry, 'turns')):
            game.turns.append(GameTurn(
                id=_id(t, f'{where} turn'),
                team_number=_optional_team(t.get('team_number'), f'{where} turn', required=True),
                duration_sec=ledger.non_negative_int(t, 'duration_sec', index),
                overtime_sec=ledger.non_negative_int(t, 'overtime_sec', index),
            ))
        games.append(game)
    if active > 1:
        raise InvalidInput('Archive contains more than one active game')
    return users, decks, games, files


def _reset_sequences(session):
    if session.get_bind().dialect.name != 'postgresql':
        return
    for table in TABLES:
        session.execute(text(
            f"SELECT setval(pg_get_serial_sequence('\"{table}\"', 'id'), "
            f"COALESCE((SELECT MAX(id) FROM \"{table}\"), 0) + 1, false)"
        ))


def import_payload(session, payload: dict) -> dict:
    try:
        users, decks, games, files = _build_rows(payload)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f'Malformed archive: {exc}')

    try:
        session.query(GameTurn).delete(synchronize_session=False)
        session.query(GamePlayer).delete(synchronize_session=False)
        session.query(Game).delete(synchronize_session=False)
        session.query(Deck).delete(synchronize_session=False)
        session.query(User).delete(synchronize_session=False)
        session.expunge_all()
        session.add_all(users)
        session.flush()
        session.add_all(decks)
        session.add_all(games)
        session.flush()
        _reset_sequences(session)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.error(f"[import] failed, rolled back: {exc}")
        raise StorageFailure('Import failed; previous data kept')

    storage.reset_decks_dir(files)
    summary = {'users': len(users), 'decks': len(decks), 'games': len(games), 'images': len(files)}
    current_app.logger.info(f"[import] replaced all data {summary}")
    return summary
