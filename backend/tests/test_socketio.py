def events(sio_client, name):
    return [pkt['args'][0] for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def joined(sio_client):
    sio_client.emit('join_active', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'joined' for pkt in received)
    return sio_client


def test_socket_connect_and_join(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('join_active', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert received[-1]['name'] == 'joined'
    assert received[-1]['args'][0] == {'room': 'active_game'}


def test_ping_pong(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'seq': 3}, namespace='/ws')
    assert events(sio_client, 'pong') == [{'seq': 3}]


def test_game_changes_are_broadcast(sio_client, client, four_players, fake_clock):
    joined(sio_client)

    game = client.post('/api/games', json={'first_move_team': 1, 'players': four_players}).get_json()
    updates = events(sio_client, 'game_update')
    assert [u['id'] for u in updates] == [game['id']]

    client.post('/api/games/active/pause')
    client.post('/api/games/active/pause')
    # second pause was a no-op, so only one broadcast
    paused = events(sio_client, 'game_update')
    assert len(paused) == 1
    assert paused[0]['is_paused'] is True

    client.post('/api/games/active/finish', json={'winning_team': 1})
    finished = events(sio_client, 'game_finished')
    assert finished[0]['winning_team'] == 1


def test_clear_is_broadcast(sio_client, admin_client, four_players):
    joined(sio_client)
    admin_client.post('/api/games', json={'first_move_team': 2, 'players': four_players})
    sio_client.get_received('/ws')

    admin_client.delete('/api/games')
    assert events(sio_client, 'games_cleared') == [{}]


def test_left_room_gets_no_updates(sio_client, client, four_players):
    joined(sio_client)
    sio_client.emit('leave_active', {}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post('/api/games', json={'first_move_team': 1, 'players': four_players})
    assert events(sio_client, 'game_update') == []
