"""Game clock accounting.

Elapsed turn time is always derived as ``now - current_turn_start``; nothing
ticks on the server. Every pause therefore has to push ``current_turn_start``
forward by the paused interval on resume, otherwise paused time leaks into
turn durations.

All datetimes are naive UTC.
"""
from datetime import datetime, timezone

from mtgstats.errors import InvalidInput


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value):
    if value is None:
        return None
    return value.isoformat() + 'Z'


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 string into a naive UTC datetime."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f'Malformed timestamp: {value!r}')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise InvalidInput(f'Malformed timestamp: {value!r}')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def pause(game, now=None) -> bool:
    """Pause the clock. Returns False (and changes nothing) if already paused."""
    if game.is_paused:
        return False
    game.is_paused = True
    game.pause_started_at = now or utcnow()
    return True


def close_pause(game, now=None) -> int:
    """Fold the open pause into the totals and return its length in seconds."""
    now = now or utcnow()
    paused_for = now - game.pause_started_at
    seconds = int(paused_for.total_seconds())
    game.total_pause_duration_seconds = (game.total_pause_duration_seconds or 0) + seconds
    if game.current_turn_start is not None:
        game.current_turn_start = game.current_turn_start + paused_for
    game.is_paused = False
    game.pause_started_at = None
    return seconds


def resume(game, now=None) -> bool:
    """Resume the clock. Returns False (and changes nothing) if not paused."""
    if not game.is_paused or game.pause_started_at is None:
        return False
    close_pause(game, now)
    return True


def start_turn(game, now=None) -> None:
    game.current_turn_start = now or utcnow()


def apply_turn_update(game, team: int, turn_in_progress: bool, now=None) -> None:
    # The caller only tells us whether a turn is running; the anchor is ours.
    game.current_turn_team = team
    game.current_turn_start = (now or utcnow()) if turn_in_progress else None


def turn_elapsed_seconds(game, now=None):
    if game.current_turn_start is None:
        return None
    if game.is_paused and game.pause_started_at is not None:
        reference = game.pause_started_at
    else:
        reference = now or utcnow()
    return max(0, int((reference - game.current_turn_start).total_seconds()))
