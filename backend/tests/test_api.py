from buzzer import registry


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_room_state(client):
    room = registry.create_room('host-sid')
    registry.join_room(room.code, 'guest-sid')
    res = client.get(f'/api/rooms/{room.code.lower()}/state')
    assert res.status_code == 200
    state = res.get_json()
    assert state['code'] == room.code
    assert state['players'] == ['Host', 'Player1']
    assert state['readyPlayers'] == []
    assert state['allReady'] is False
    assert state['requireReady'] is True
    assert state['roundStartTime'] is None


def test_unknown_room_state(client):
    res = client.get('/api/rooms/ZZZZZZ/state')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}


def test_room_count(client):
    assert client.get('/api/rooms').get_json() == {'count': 0}
    registry.create_room('h1')
    registry.create_room('h2')
    assert client.get('/api/rooms').get_json() == {'count': 2}
