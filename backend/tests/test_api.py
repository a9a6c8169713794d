def test_index_and_health(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()

    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json() == {'status': 'ok', 'channel': 'test_arena'}


def test_channels_empty(client):
    res = client.get('/api/channels/')
    assert res.status_code == 200
    assert res.get_json() == []


def test_unknown_channel_presence_is_404(client):
    res = client.get('/api/channels/nowhere/presence')
    assert res.status_code == 404
    assert 'error' in res.get_json()


def test_presence_reports_members_and_leader(flask_app, client):
    from arena import socketio as _sio
    peers = []
    for uid, team in (('charlie', 'ALPHA'), ('alice', 'BETA'), ('bob', 'ALPHA')):
        peer = _sio.test_client(flask_app, namespace='/ws')
        peer.emit('track', {'channel': 'arena', 'meta': {'user_id': uid, 'name': uid.title(), 'team': team}}, namespace='/ws')
        peers.append(peer)

    listing = client.get('/api/channels/').get_json()
    assert listing == [{'channel': 'arena', 'members': 3}]

    res = client.get('/api/channels/arena/presence')
    assert res.status_code == 200
    data = res.get_json()
    assert data['channel'] == 'arena'
    assert [m['id'] for m in data['members']] == ['alice', 'bob', 'charlie']
    assert data['leader_id'] == 'alice'
    assert data['team_counts'] == {'ALPHA': 2, 'BETA': 1}

    # Leadership moves as soon as the smallest id goes away
    peers[1].disconnect(namespace='/ws')
    data = client.get('/api/channels/arena/presence').get_json()
    assert data['leader_id'] == 'bob'

    for peer in (peers[0], peers[2]):
        peer.disconnect(namespace='/ws')
    assert client.get('/api/channels/arena/presence').status_code == 404
