import pytest

from mtgstats import db
from mtgstats.errors import Conflict, StorageFailure
from mtgstats.models import Game, GameTurn
from mtgstats.services.games import active, ledger


def new_game(client, players, first_move_team=1, **extra):
    body = {
        'first_move_team': first_move_team,
        'turn_limit_seconds': 120,
        'team_time_limit_seconds': 1800,
        'team1_name': 'Red',
        'team2_name': 'Blue',
        'players': players,
    }
    body.update(extra)
    return client.post('/api/games', json=body)


def turns_without_ids(game_json):
    return [(t['team_number'], t['duration_sec'], t['overtime_sec']) for t in game_json['turns']]


def test_create_game(client, four_players, fake_clock):
    res = new_game(client, four_players)
    assert res.status_code == 201
    game = res.get_json()
    assert game['end_time'] is None
    assert game['first_move_team'] == 1
    assert game['current_turn_team'] == 1
    assert game['current_turn_start'] is None
    assert game['start_time'] == '2026-03-14T18:00:00Z'
    assert [p['team'] for p in game['players']] == [1, 1, 2, 2]
    assert [p['user']['name'] for p in game['players']] == ['Alice', 'Bob', 'Cara', 'Dan']
    # deck name snapshot taken from the live deck when not supplied
    assert [p['deck_name'] for p in game['players']] == ['Burn', 'Elves', 'Control', 'Tron']
    assert 'active_slot' not in game

    active_game = client.get('/api/games/active').get_json()
    assert active_game['id'] == game['id']


def test_second_active_game_conflicts(client, four_players):
    assert new_game(client, four_players).status_code == 201
    res = new_game(client, four_players)
    assert res.status_code == 409
    assert res.get_json()['category'] == 'conflict'


def test_only_one_active_game_across_create_and_finish(client, four_players):
    for _ in range(3):
        assert new_game(client, four_players).status_code == 201
        assert new_game(client, four_players).status_code == 409
        assert client.post('/api/games/active/finish', json={'winning_team': 2}).status_code == 200
    games = client.get('/api/games').get_json()
    assert len(games) == 3
    assert sum(1 for g in games if g['end_time'] is None) == 0


def test_unique_slot_refuses_concurrent_create(app_ctx, four_players, monkeypatch):
    body = {'first_move_team': 1, 'players': four_players}
    active.create_game(db.session, body)
    # Simulate a second request whose read check ran before the first commit
    monkeypatch.setattr(active, 'find_active_game', lambda session: None)
    with pytest.raises(Conflict):
        active.create_game(db.session, body)
    assert Game.query.filter(Game.end_time.is_(None)).count() == 1


@pytest.mark.parametrize('body, message', [
    ({'first_move_team': 3}, 'first_move_team'),
    ({'first_move_team': 1, 'players': []}, 'players'),
    ({'first_move_team': 1, 'players': [{'user_id': 999, 'deck_id': 1}, {'user_id': 998, 'deck_id': 1}]}, 'does not exist'),
    ({'first_move_team': 1, 'players': [{'deck_id': 1}, {'deck_id': 2}]}, 'user_id'),
])
def test_create_game_validation(client, body, message):
    res = client.post('/api/games', json=body)
    assert res.status_code == 400
    data = res.get_json()
    assert data['category'] == 'invalid_input'
    assert message in data['error']
    assert client.get('/api/games').get_json() == []


def test_create_accepts_nested_user_and_explicit_deck_name(client, make_user):
    a = make_user('Eve')
    b = make_user('Finn')
    res = new_game(client, [
        {'user': {'id': a, 'name': 'Eve'}, 'deck_id': 77, 'deck_name': 'Proxy Pile'},
        {'user_id': b, 'deck_id': 78},
    ])
    assert res.status_code == 201
    players = res.get_json()['players']
    assert players[0]['deck_name'] == 'Proxy Pile'
    # no such deck: the snapshot stays empty
    assert players[1]['deck_name'] == ''


def test_no_active_game(client):
    for method, path in [
        ('get', '/api/games/active'),
        ('post', '/api/games/active/pause'),
        ('post', '/api/games/active/resume'),
        ('post', '/api/games/active/start-turn'),
    ]:
        res = getattr(client, method)(path)
        assert res.status_code == 404
        assert res.get_json()['category'] == 'not_found'
    res = client.put('/api/games/active', json={'current_turn_team': 1})
    assert res.status_code == 404
    res = client.post('/api/games/active/finish', json={'winning_team': 1})
    assert res.status_code == 404


def test_pause_resume_excludes_paused_time(client, four_players, fake_clock):
    new_game(client, four_players)
    client.post('/api/games/active/start-turn')
    fake_clock.advance(5)

    paused = client.post('/api/games/active/pause').get_json()
    assert paused['is_paused'] is True
    assert paused['pause_started_at'] == '2026-03-14T18:00:05Z'

    fake_clock.advance(10)
    # frozen while paused
    assert client.get('/api/games/active').get_json()['current_turn_elapsed_sec'] == 5

    resumed = client.post('/api/games/active/resume').get_json()
    assert resumed['is_paused'] is False
    assert resumed['pause_started_at'] is None
    assert resumed['total_pause_duration_seconds'] == 10
    assert resumed['current_turn_start'] == '2026-03-14T18:00:10Z'
    assert resumed['current_turn_elapsed_sec'] == 5


def test_pause_and_resume_are_idempotent(client, four_players, fake_clock):
    new_game(client, four_players)
    first = client.post('/api/games/active/pause').get_json()
    fake_clock.advance(30)
    second = client.post('/api/games/active/pause')
    assert second.status_code == 200
    assert second.get_json()['pause_started_at'] == first['pause_started_at']

    client.post('/api/games/active/resume')
    fake_clock.advance(30)
    again = client.post('/api/games/active/resume')
    assert again.status_code == 200
    assert again.get_json()['total_pause_duration_seconds'] == 30


def test_update_uses_server_time_for_turn_start(client, four_players, fake_clock):
    new_game(client, four_players)
    fake_clock.advance(42)
    res = client.put('/api/games/active', json={
        'current_turn_team': 2,
        'current_turn_start': '1999-01-01T00:00:00Z',
    })
    assert res.status_code == 200
    game = res.get_json()
    assert game['current_turn_team'] == 2
    assert game['current_turn_start'] == '2026-03-14T18:00:42Z'

    game = client.put('/api/games/active', json={'current_turn_team': 1, 'current_turn_start': None}).get_json()
    assert game['current_turn_team'] == 1
    assert game['current_turn_start'] is None
    assert game['current_turn_elapsed_sec'] is None


@pytest.mark.parametrize('body', [
    {'current_turn_team': 3},
    {'current_turn_team': 1, 'current_turn_start': 'not a time'},
    {'current_turn_team': 1, 'turns': [{'team_number': 0, 'duration_sec': 5}]},
    {'current_turn_team': 1, 'turns': [{'team_number': 1, 'duration_sec': -5}]},
    {'current_turn_team': 1, 'turns': 'nope'},
])
def test_update_validation_leaves_game_untouched(client, four_players, body):
    new_game(client, four_players)
    client.put('/api/games/active', json={'current_turn_team': 1, 'turns': [{'team_number': 1, 'duration_sec': 9}]})

    res = client.put('/api/games/active', json=body)
    assert res.status_code == 400
    assert res.get_json()['category'] == 'invalid_input'
    game = client.get('/api/games/active').get_json()
    assert game['current_turn_team'] == 1
    assert turns_without_ids(game) == [(1, 9, 0)]


def test_turn_list_is_replaced_wholesale(flask_app, client, four_players):
    new_game(client, four_players)
    first = client.put('/api/games/active', json={
        'current_turn_team': 2,
        'turns': [
            {'team_number': 1, 'duration_sec': 30},
            {'team_number': 2, 'duration_sec': 45, 'overtime_sec': 5},
            {'team_number': 1, 'duration_sec': 20},
        ],
    }).get_json()
    assert turns_without_ids(first) == [(1, 30, 0), (2, 45, 5), (1, 20, 0)]

    # client ids are ignored; the same list twice gives the same ledger
    resent = [dict(t) for t in first['turns']]
    second = client.put('/api/games/active', json={'current_turn_team': 2, 'turns': resent}).get_json()
    assert turns_without_ids(second) == turns_without_ids(first)
    with flask_app.app_context():
        assert GameTurn.query.count() == 3

    # no turns key: ledger kept
    kept = client.put('/api/games/active', json={'current_turn_team': 1}).get_json()
    assert turns_without_ids(kept) == turns_without_ids(first)

    cleared = client.put('/api/games/active', json={'current_turn_team': 1, 'turns': []}).get_json()
    assert cleared['turns'] == []


def test_failed_turn_replacement_keeps_old_ledger(app_ctx, four_players, monkeypatch):
    from sqlalchemy.exc import OperationalError

    game = active.create_game(db.session, {'first_move_team': 1, 'players': four_players})
    ledger.replace_turns(db.session, game, [{'team_number': 1, 'duration_sec': 10, 'overtime_sec': 0}])

    def broken_commit():
        raise OperationalError('INSERT INTO game_turn', {}, Exception('disk full'))

    monkeypatch.setattr(db.session, 'commit', broken_commit)
    with pytest.raises(StorageFailure):
        ledger.replace_turns(db.session, game, [
            {'team_number': 2, 'duration_sec': 99, 'overtime_sec': 0},
            {'team_number': 2, 'duration_sec': 98, 'overtime_sec': 0},
        ])
    monkeypatch.undo()

    rows = GameTurn.query.filter_by(game_id=game.id).all()
    assert [(t.team_number, t.duration_sec) for t in rows] == [(1, 10)]


def test_finish_game(client, four_players, fake_clock):
    new_game(client, four_players)
    fake_clock.advance(600)
    res = client.post('/api/games/active/finish', json={'winning_team': 2, 'is_technical_defeat': True})
    assert res.status_code == 200
    game = res.get_json()
    assert game['end_time'] == '2026-03-14T18:10:00Z'
    assert game['winning_team'] == 2
    assert game['is_technical_defeat'] is True
    assert 'current_turn_elapsed_sec' not in game
    assert client.get('/api/games/active').status_code == 404
    assert client.get(f"/api/games/{game['id']}").get_json()['winning_team'] == 2


def test_finish_while_paused_counts_the_open_pause(client, four_players, fake_clock):
    new_game(client, four_players)
    client.post('/api/games/active/pause')
    fake_clock.advance(25)
    game = client.post('/api/games/active/finish', json={'winning_team': 1}).get_json()
    assert game['is_paused'] is False
    assert game['total_pause_duration_seconds'] == 25


@pytest.mark.parametrize('body', [{}, {'winning_team': 0}, {'winning_team': 1, 'is_technical_defeat': 'yes'}])
def test_finish_validation(client, four_players, body):
    new_game(client, four_players)
    res = client.post('/api/games/active/finish', json=body)
    assert res.status_code == 400
    assert client.get('/api/games/active').status_code == 200


def test_get_game_not_found(client):
    res = client.get('/api/games/123')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Game not found'


def test_clear_games_requires_admin(flask_app, client, admin_client, four_players):
    new_game(client, four_players)
    client.put('/api/games/active', json={'current_turn_team': 1, 'turns': [{'team_number': 1, 'duration_sec': 3}]})

    assert client.delete('/api/games').status_code == 401
    res = admin_client.delete('/api/games')
    assert res.status_code == 200
    assert client.get('/api/games').get_json() == []
    with flask_app.app_context():
        assert GameTurn.query.count() == 0


def test_end_to_end_stats(client, four_players):
    assert new_game(client, four_players, first_move_team=1).status_code == 201
    client.put('/api/games/active', json={
        'current_turn_team': 1,
        'current_turn_start': None,
        'turns': [
            {'team_number': 1, 'duration_sec': 30},
            {'team_number': 2, 'duration_sec': 45},
            {'team_number': 1, 'duration_sec': 20},
        ],
    })
    client.post('/api/games/active/finish', json={'winning_team': 1})

    rows = {r['player_name']: r for r in client.get('/api/stats/players').get_json()}
    for name in ('Alice', 'Bob'):
        assert rows[name]['games_count'] == 1
        assert rows[name]['wins_count'] == 1
        assert rows[name]['win_percent'] == 100
        assert rows[name]['avg_turn_duration_sec'] == 25
        assert rows[name]['max_turn_duration_sec'] == 30
    for name in ('Cara', 'Dan'):
        assert rows[name]['wins_count'] == 0
        assert rows[name]['win_percent'] == 0
        assert rows[name]['avg_turn_duration_sec'] == 45
    assert rows['Alice']['best_deck_name'] == 'Burn'

    decks = {r['deck_name']: r for r in client.get('/api/stats/decks').get_json()}
    assert decks['Burn']['wins_count'] == 1
    assert decks['Tron']['win_percent'] == 0


def test_stats_ignore_active_game_and_survive_deck_rename(client, four_players):
    new_game(client, four_players)
    client.post('/api/games/active/finish', json={'winning_team': 2})
    client.put(f"/api/decks/{four_players[2]['deck_id']}", json={'name': 'Renamed Control'})
    new_game(client, four_players)

    rows = {r['player_name']: r for r in client.get('/api/stats/players').get_json()}
    assert rows['Cara']['games_count'] == 1
    assert rows['Cara']['best_deck_name'] == 'Control'
    decks = {r['deck_id']: r for r in client.get('/api/stats/decks').get_json()}
    assert decks[four_players[2]['deck_id']]['deck_name'] == 'Control'


def test_three_player_game_stats(client, make_user, make_deck):
    players = [{'user_id': make_user(n), 'deck_id': make_deck(f'{n} deck')} for n in ('Uma', 'Vic', 'Wes')]
    res = new_game(client, players, first_move_team=2)
    assert [p['team'] for p in res.get_json()['players']] == [1, 1, 2]
    client.post('/api/games/active/finish', json={'winning_team': 2})

    rows = {r['player_name']: r for r in client.get('/api/stats/players').get_json()}
    assert rows['Wes']['wins_count'] == 1
    assert rows['Wes']['first_move_wins'] == 1
    assert rows['Uma']['wins_count'] == 0


def test_stats_empty(client):
    assert client.get('/api/stats/players').get_json() == []
    assert client.get('/api/stats/decks').get_json() == []
