"""Operations on the single active game (``end_time IS NULL``).

Every function takes the SQLAlchemy session it should work in. All input is
validated before the first mutation.
"""
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from mtgstats.errors import Conflict, InvalidInput, NotFound, StorageFailure
from mtgstats.models import Deck, Game, GamePlayer, GameTurn, User
from mtgstats.services.games import clock, ledger

MIN_PLAYERS = 2
MAX_PLAYERS = 4


def _team(value, field):
    if isinstance(value, bool) or value not in (1, 2):
        raise InvalidInput(f'{field} must be 1 or 2')
    return value


def _seconds(data, field):
    value = data.get(field, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f'{field} must be a non-negative integer')
    return value


def _text(data, field, max_len=100):
    value = data.get(field) or ''
    if not isinstance(value, str):
        raise InvalidInput(f'{field} must be a string')
    value = value.strip()
    if len(value) > max_len:
        raise InvalidInput(f'{field} must be at most {max_len} characters')
    return value


def find_active_game(session) -> Optional[Game]:
    return session.query(Game).filter(Game.end_time.is_(None)).order_by(Game.id).first()


def get_active_game(session) -> Game:
    game = find_active_game(session)
    if game is None:
        raise NotFound('No active game')
    return game


def _resolve_players(session, raw_players):
    if not isinstance(raw_players, list):
        raise InvalidInput('players must be a list')
    if not MIN_PLAYERS <= len(raw_players) <= MAX_PLAYERS:
        raise InvalidInput(f'A game needs {MIN_PLAYERS} to {MAX_PLAYERS} players')

    resolved = []
    for index, entry in enumerate(raw_players):
        if not isinstance(entry, dict):
            raise InvalidInput(f'players[{index}] must be an object')
        nested = entry.get('user') if isinstance(entry.get('user'), dict) else {}
        user_id = nested.get('id') or entry.get('user_id')
        if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
            raise InvalidInput(f'players[{index}] needs user_id or user.id')
        user = session.get(User, user_id)
        if user is None:
            raise InvalidInput(f'players[{index}]: user {user_id} does not exist')

        deck_id = entry.get('deck_id')
        if isinstance(deck_id, bool) or not isinstance(deck_id, int):
            raise InvalidInput(f'players[{index}].deck_id must be an integer')
        deck_name = entry.get('deck_name')
        if deck_name is not None and not isinstance(deck_name, str):
            raise InvalidInput(f'players[{index}].deck_name must be a string')
        if not deck_name:
            deck = session.get(Deck, deck_id)
            deck_name = deck.name if deck is not None else ''
        resolved.append(GamePlayer(user_id=user.id, seat=index, deck_id=deck_id, deck_name=deck_name))
    return resolved


def create_game(session, data: dict) -> Game:
    first_move_team = _team(data.get('first_move_team'), 'first_move_team')
    turn_limit = _seconds(data, 'turn_limit_seconds')
    team_limit = _seconds(data, 'team_time_limit_seconds')
    team1_name = _text(data, 'team1_name')
    team2_name = _text(data, 'team2_name')
    players = _resolve_players(session, data.get('players'))

    if find_active_game(session) is not None:
        raise Conflict('An active game already exists')

    now = clock.utcnow()
    game = Game(
        start_time=now,
        active_slot=True,
        turn_limit_seconds=turn_limit,
        team_time_limit_seconds=team_limit,
        first_move_team=first_move_team,
        current_turn_team=first_move_team,
        team1_name=team1_name,
        team2_name=team2_name,
        players=players,
    )
    session.add(game)
    try:
        session.commit()
    except IntegrityError:
        # Lost the race against a concurrent create
        session.rollback()
        raise Conflict('An active game already exists')
    current_app.logger.info(f"[game-start] game={game.id} players={len(players)} first_move_team={first_move_team}")
    return game


def pause_active_game(session) -> Tuple[Game, bool]:
    game = get_active_game(session)
    changed = clock.pause(game, clock.utcnow())
    if changed:
        session.commit()
        current_app.logger.info(f"[pause] game={game.id} at={clock.to_iso(game.pause_started_at)}")
    return game, changed


def resume_active_game(session) -> Tuple[Game, bool]:
    game = get_active_game(session)
    total_before = game.total_pause_duration_seconds or 0
    changed = clock.resume(game, clock.utcnow())
    if changed:
        session.commit()
        current_app.logger.info(
            f"[resume] game={game.id} paused_for={game.total_pause_duration_seconds - total_before}s "
            f"total_pause={game.total_pause_duration_seconds}s"
        )
    return game, changed


def start_turn(session) -> Game:
    game = get_active_game(session)
    clock.start_turn(game, clock.utcnow())
    session.commit()
    return game


def _turn_in_progress(value) -> bool:
    """``current_turn_start`` is only a signal; its value is never stored."""
    if value is None or value is False:
        return False
    if value is True:
        return True
    clock.parse_timestamp(value)
    return True


def update_active_game(session, data: dict) -> Game:
    team = _team(data.get('current_turn_team'), 'current_turn_team')
    in_progress = _turn_in_progress(data.get('current_turn_start'))
    turns = ledger.parse_turns(data['turns']) if 'turns' in data else None

    game = get_active_game(session)
    clock.apply_turn_update(game, team, in_progress, clock.utcnow())
    if turns is None:
        session.commit()
    else:
        # Commits the clock fields together with the new ledger
        ledger.replace_turns(session, game, turns)
    current_app.logger.info(
        f"[turn-update] game={game.id} team={team} in_progress={in_progress} "
        f"turns={'kept' if turns is None else len(turns)}"
    )
    return game


def finish_active_game(session, data: dict) -> Game:
    winning_team = _team(data.get('winning_team'), 'winning_team')
    technical = data.get('is_technical_defeat', False)
    if not isinstance(technical, bool):
        raise InvalidInput('is_technical_defeat must be a boolean')

    game = get_active_game(session)
    now = clock.utcnow()
    if game.is_paused and game.pause_started_at is not None:
        clock.close_pause(game, now)
    game.end_time = now
    game.active_slot = None
    game.winning_team = winning_team
    game.is_technical_defeat = technical
    session.commit()
    current_app.logger.info(
        f"[finish] game={game.id} winning_team={winning_team} technical={technical} "
        f"total_pause={game.total_pause_duration_seconds}s"
    )
    return game


def clear_games(session) -> None:
    """Delete every game together with its players and turns."""
    try:
        session.query(GameTurn).delete(synchronize_session=False)
        session.query(GamePlayer).delete(synchronize_session=False)
        session.query(Game).delete(synchronize_session=False)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.error(f"[clear] failed: {exc}")
        raise StorageFailure('Failed to clear games')
    current_app.logger.info("[clear] all games, players and turns deleted")
