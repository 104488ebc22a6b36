"""Win-rate statistics over finished games.

Both reductions are pure functions of the finished-game list and are
recomputed on every request; there is no materialized view behind them.
Games without a winning team are skipped.
"""
from collections import defaultdict
from typing import Dict, List


def team_for_seat(seat: int) -> int:
    """Seats 0 and 1 play for team 1, seats 2 and 3 for team 2."""
    return 1 if seat < 2 else 2


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100


def _new_player_tally(name):
    return {
        'name': name,
        'games': 0,
        'wins': 0,
        'first_move_games': 0,
        'first_move_wins': 0,
        'turn_durations': [],
        'deck_games': defaultdict(int),
        'deck_wins': defaultdict(int),
        'deck_names': {},
    }


def _best_deck(tally):
    """Deck with the highest win ratio; equal ratios go to the lowest deck id."""
    best_id = None
    best_wins = 0
    best_games = 0
    for deck_id in sorted(tally['deck_games']):
        games = tally['deck_games'][deck_id]
        wins = tally['deck_wins'][deck_id]
        if games <= 0:
            continue
        # wins/games > best_wins/best_games, without floats
        if best_id is None or wins * best_games > best_wins * games:
            best_id, best_wins, best_games = deck_id, wins, games
    return best_id, best_wins, best_games


def player_stats(games) -> List[dict]:
    tallies: Dict[int, dict] = {}

    for game in games:
        if game.winning_team is None:
            continue
        winning_team = game.winning_team
        seat_teams = []
        for seat, player in enumerate(game.players):
            team = team_for_seat(seat)
            seat_teams.append((player.user_id, team))
            name = player.user.name if player.user is not None else ''
            tally = tallies.get(player.user_id)
            if tally is None:
                tally = tallies[player.user_id] = _new_player_tally(name)
            won = team == winning_team
            tally['games'] += 1
            if won:
                tally['wins'] += 1
            if team == game.first_move_team:
                tally['first_move_games'] += 1
                if won:
                    tally['first_move_wins'] += 1
            tally['deck_games'][player.deck_id] += 1
            tally['deck_names'][player.deck_id] = player.deck_name
            if won:
                tally['deck_wins'][player.deck_id] += 1

        for turn in game.turns:
            for user_id, team in seat_teams:
                if team == turn.team_number:
                    tallies[user_id]['turn_durations'].append(turn.duration_sec)

    out = []
    for user_id in sorted(tallies):
        tally = tallies[user_id]
        durations = tally['turn_durations']
        best_id, best_wins, best_games = _best_deck(tally)
        out.append({
            'player_id': user_id,
            'player_name': tally['name'],
            'games_count': tally['games'],
            'wins_count': tally['wins'],
            'win_percent': _percent(tally['wins'], tally['games']),
            'first_move_games': tally['first_move_games'],
            'first_move_wins': tally['first_move_wins'],
            'first_move_win_percent': _percent(tally['first_move_wins'], tally['first_move_games']),
            'avg_turn_duration_sec': sum(durations) // len(durations) if durations else 0,
            'max_turn_duration_sec': max(durations) if durations else 0,
            'best_deck_id': best_id,
            'best_deck_name': tally['deck_names'].get(best_id, '') if best_id is not None else '',
            'best_deck_wins': best_wins,
            'best_deck_games': best_games,
        })
    return out


def deck_stats(games) -> List[dict]:
    tallies: Dict[int, dict] = {}
    for game in games:
        if game.winning_team is None:
            continue
        for seat, player in enumerate(game.players):
            tally = tallies.setdefault(player.deck_id, {'name': player.deck_name, 'games': 0, 'wins': 0})
            tally['name'] = player.deck_name
            tally['games'] += 1
            if team_for_seat(seat) == game.winning_team:
                tally['wins'] += 1

    return [
        {
            'deck_id': deck_id,
            'deck_name': tallies[deck_id]['name'],
            'games_count': tallies[deck_id]['games'],
            'wins_count': tallies[deck_id]['wins'],
            'win_percent': _percent(tallies[deck_id]['wins'], tallies[deck_id]['games']),
        }
        for deck_id in sorted(tallies)
    ]
