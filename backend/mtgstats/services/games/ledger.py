from typing import List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from mtgstats.errors import InvalidInput, StorageFailure
from mtgstats.models import Game, GameTurn


def non_negative_int(entry, key, index):
    value = entry.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f'turns[{index}].{key} must be a non-negative integer')
    return value


def parse_turns(raw) -> List[dict]:
    """Validate a client turn list; client-side ids are dropped."""
    if not isinstance(raw, list):
        raise InvalidInput('turns must be a list')
    parsed = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise InvalidInput(f'turns[{index}] must be an object')
        team = entry.get('team_number')
        if team not in (1, 2) or isinstance(team, bool):
            raise InvalidInput(f'turns[{index}].team_number must be 1 or 2')
        parsed.append({
            'team_number': team,
            'duration_sec': non_negative_int(entry, 'duration_sec', index),
            'overtime_sec': non_negative_int(entry, 'overtime_sec', index),
        })
    return parsed


def replace_turns(session, game: Game, turns: List[dict]) -> List[GameTurn]:
    """Swap the game's whole turn ledger for ``turns`` in one transaction.

    Rows are deleted and re-inserted with fresh ids. On any failure the
    transaction is rolled back and the previous ledger is left in place.
    """
    try:
        session.query(GameTurn).filter_by(game_id=game.id).delete(synchronize_session=False)
        rows = [
            GameTurn(
                game_id=game.id,
                team_number=t['team_number'],
                duration_sec=t['duration_sec'],
                overtime_sec=t['overtime_sec'],
            )
            for t in turns
        ]
        session.add_all(rows)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.error(f"[turns] game={game.id} replace failed: {exc}")
        raise StorageFailure('Failed to update turns')
    current_app.logger.info(f"[turns] game={game.id} replaced ledger with {len(rows)} turns")
    return rows
