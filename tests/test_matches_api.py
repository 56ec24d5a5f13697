"""Tests for the match HTTP routes."""
import json
from datetime import timedelta

from pelada.app import db
from pelada.auth_utils import generate_token
from pelada.models import FootballMatch, MatchEvent, MatchParticipant, Player, User
from pelada.time_utils import utc_today


def _future_date(days=1):
    return (utc_today() + timedelta(days=days)).isoformat()


def _match_payload(**overrides):
    payload = {
        'match_date': _future_date(),
        'match_time': '19:30',
        'location': 'Campo do Bairro',
        'players_count': '5vs5',
        'end_mode': 'both',
        'goal_limit': 5,
        'time_limit': 90,
    }
    payload.update(overrides)
    return payload


def _create_match(client, headers, **overrides):
    res = client.post('/api/matches', headers=headers, json=_match_payload(**overrides))
    assert res.status_code == 201, res.get_json()
    return json.loads(res.data)['data']


def _join(client, headers, code):
    return client.post('/api/matches/join', headers=headers, json={'code': code})


def _player_team(shuffle_data, player_id):
    for team_name, team in shuffle_data.items():
        if any(p['player_id'] == player_id for p in team['players']):
            return team_name
    return None


# ── Creation & listing ───────────────────────────────────────────────


def test_create_match(client, register_player):
    admin = register_player('Admin')
    match = _create_match(client, admin['headers'])
    assert match['status'] == 'waiting'
    assert match['admin_id'] == admin['player_id']
    assert len(match['code']) == 6
    assert match['match_time'] == '19:30'
    assert match['capacity'] == 10
    assert match['participants_count'] == 0
    assert match['is_full'] is False
    assert match['participants'] == []
    assert match['teams'] == []
    assert match['events'] == []


def test_create_match_requires_auth(client):
    res = client.post('/api/matches', json=_match_payload())
    assert res.status_code == 401


def test_create_match_missing_fields(client, auth_headers):
    res = client.post('/api/matches', headers=auth_headers, json={})
    assert res.status_code == 422
    errors = json.loads(res.data)['errors']
    for field in ('match_date', 'match_time', 'location', 'players_count', 'end_mode'):
        assert field in errors


def test_create_match_rejects_past_date(client, auth_headers):
    res = client.post('/api/matches', headers=auth_headers, json=_match_payload(
        match_date=(utc_today() - timedelta(days=1)).isoformat(),
    ))
    assert res.status_code == 422
    assert 'match_date' in json.loads(res.data)['errors']


def test_create_match_rejects_bad_options(client, auth_headers):
    res = client.post('/api/matches', headers=auth_headers, json=_match_payload(
        players_count='7vs7', end_mode='sudden_death', match_time='7pm',
    ))
    assert res.status_code == 422
    errors = json.loads(res.data)['errors']
    assert {'players_count', 'end_mode', 'match_time'} <= set(errors)


def test_create_match_requires_limits_for_end_mode(client, auth_headers):
    res = client.post('/api/matches', headers=auth_headers, json=_match_payload(
        end_mode='goals', goal_limit=None, time_limit=None,
    ))
    assert res.status_code == 422
    errors = json.loads(res.data)['errors']
    assert 'goal_limit' in errors
    assert 'time_limit' not in errors

    res = client.post('/api/matches', headers=auth_headers, json=_match_payload(
        end_mode='time', time_limit=0,
    ))
    assert res.status_code == 422
    assert 'time_limit' in json.loads(res.data)['errors']


def test_create_match_requires_player_profile(client, app):
    user = User(name='Ghost', email='ghost@example.com', password_hash='x')
    db.session.add(user)
    db.session.commit()
    headers = {'Authorization': f'Bearer {generate_token(user.id)}'}

    res = client.post('/api/matches', headers=headers, json=_match_payload())
    assert res.status_code == 400
    assert 'player profile' in json.loads(res.data)['message']


def test_list_matches_filters_by_status(client, register_player):
    admin = register_player()
    waiting = _create_match(client, admin['headers'])
    started = _create_match(client, admin['headers'], match_date=_future_date(3))
    client.post(f'/api/matches/{started["id"]}/start', headers=admin['headers'])

    res = client.get('/api/matches', headers=admin['headers'])
    assert res.status_code == 200
    items = json.loads(res.data)['data']['items']
    assert [item['id'] for item in items] == [started['id'], waiting['id']]

    res = client.get('/api/matches?status=waiting', headers=admin['headers'])
    items = json.loads(res.data)['data']['items']
    assert [item['id'] for item in items] == [waiting['id']]


def test_list_matches_rejects_unknown_status(client, auth_headers):
    res = client.get('/api/matches?status=postponed', headers=auth_headers)
    assert res.status_code == 422


def test_get_match(client, register_player):
    admin = register_player()
    created = _create_match(client, admin['headers'])
    res = client.get(f'/api/matches/{created["id"]}', headers=admin['headers'])
    assert res.status_code == 200
    assert json.loads(res.data)['data']['code'] == created['code']

    res = client.get('/api/matches/999', headers=admin['headers'])
    assert res.status_code == 404


# ── Join / leave ─────────────────────────────────────────────────────


def test_join_by_code_is_case_insensitive(client, register_player):
    admin = register_player()
    player = register_player()
    match = _create_match(client, admin['headers'])

    res = _join(client, player['headers'], match['code'].lower())
    assert res.status_code == 200
    data = json.loads(res.data)['data']
    assert data['participants_count'] == 1
    assert data['participants'][0]['player_id'] == player['player_id']


def test_join_unknown_code(client, auth_headers):
    res = _join(client, auth_headers, 'ZZZZZZ')
    assert res.status_code == 404


def test_join_malformed_code(client, auth_headers):
    res = _join(client, auth_headers, 'abc')
    assert res.status_code == 422


def test_join_full_match(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'], players_count='3vs3')
    for _ in range(6):
        assert _join(client, register_player()['headers'], match['code']).status_code == 200

    res = _join(client, register_player()['headers'], match['code'])
    assert res.status_code == 400
    body = json.loads(res.data)
    assert body['reasons'] == ['match_full']
    assert 'full' in body['message']
    assert MatchParticipant.query.filter_by(match_id=match['id']).count() == 6


def test_join_twice_and_after_start(client, register_player):
    admin = register_player()
    player = register_player()
    match = _create_match(client, admin['headers'])
    _join(client, player['headers'], match['code'])

    res = _join(client, player['headers'], match['code'])
    assert res.status_code == 400
    assert json.loads(res.data)['reasons'] == ['already_joined']

    client.post(f'/api/matches/{match["id"]}/start', headers=admin['headers'])
    res = _join(client, register_player()['headers'], match['code'])
    assert json.loads(res.data)['reasons'] == ['match_not_waiting']


def test_leave_match(client, register_player):
    admin = register_player()
    player = register_player()
    match = _create_match(client, admin['headers'])
    _join(client, admin['headers'], match['code'])
    _join(client, player['headers'], match['code'])

    res = client.post(f'/api/matches/{match["id"]}/leave', headers=player['headers'])
    assert res.status_code == 200
    assert json.loads(res.data)['data']['participants_count'] == 1

    res = client.post(f'/api/matches/{match["id"]}/leave', headers=player['headers'])
    assert res.status_code == 400
    assert json.loads(res.data)['reasons'] == ['not_a_participant']

    res = client.post(f'/api/matches/{match["id"]}/leave', headers=admin['headers'])
    assert res.status_code == 400
    assert json.loads(res.data)['reasons'] == ['admin_cannot_leave']


def test_leave_after_start_is_rejected(client, register_player):
    admin = register_player()
    player = register_player()
    match = _create_match(client, admin['headers'])
    _join(client, player['headers'], match['code'])
    client.post(f'/api/matches/{match["id"]}/start', headers=admin['headers'])

    res = client.post(f'/api/matches/{match["id"]}/leave', headers=player['headers'])
    assert res.status_code == 400
    assert json.loads(res.data)['reasons'] == ['match_not_waiting']


# ── Teams & lifecycle ────────────────────────────────────────────────


def test_shuffle_teams(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'])
    for _ in range(5):
        _join(client, register_player()['headers'], match['code'])

    res = client.post(f'/api/matches/{match["id"]}/shuffle-teams', headers=admin['headers'])
    assert res.status_code == 200
    data = json.loads(res.data)['data']
    assert len(data['team_a']['players']) == 3
    assert len(data['team_b']['players']) == 2
    assert data['team_a']['team_color'] == '#FF6B6B'
    assert data['team_b']['capacity'] == 5


def test_shuffle_requires_admin_and_waiting(client, register_player):
    admin = register_player()
    other = register_player()
    match = _create_match(client, admin['headers'])

    res = client.post(f'/api/matches/{match["id"]}/shuffle-teams', headers=other['headers'])
    assert res.status_code == 403

    client.post(f'/api/matches/{match["id"]}/start', headers=admin['headers'])
    res = client.post(f'/api/matches/{match["id"]}/shuffle-teams', headers=admin['headers'])
    assert res.status_code == 400


def test_lifecycle_routes_require_admin(client, register_player):
    admin = register_player()
    other = register_player()
    match = _create_match(client, admin['headers'])
    for action in ('start', 'toggle-pause', 'finish', 'cancel'):
        res = client.post(f'/api/matches/{match["id"]}/{action}', headers=other['headers'])
        assert res.status_code == 403
    assert db.session.get(FootballMatch, match['id']).status == 'waiting'


def test_start_pause_and_invalid_transitions(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'])
    base = f'/api/matches/{match["id"]}'

    assert client.post(f'{base}/toggle-pause', headers=admin['headers']).status_code == 400
    assert client.post(f'{base}/finish', headers=admin['headers']).status_code == 400

    res = client.post(f'{base}/start', headers=admin['headers'])
    assert res.status_code == 200
    data = json.loads(res.data)['data']
    assert data['status'] == 'in_progress'
    assert data['started_at'] is not None
    assert len(data['teams']) == 2
    assert client.post(f'{base}/start', headers=admin['headers']).status_code == 400

    res = client.post(f'{base}/toggle-pause', headers=admin['headers'])
    assert json.loads(res.data)['message'] == 'Match paused'
    res = client.post(f'{base}/toggle-pause', headers=admin['headers'])
    assert json.loads(res.data)['message'] == 'Match resumed'


def test_cancel_match(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'])
    base = f'/api/matches/{match["id"]}'

    res = client.post(f'{base}/cancel', headers=admin['headers'])
    assert res.status_code == 200
    assert json.loads(res.data)['data']['status'] == 'cancelled'
    assert client.post(f'{base}/cancel', headers=admin['headers']).status_code == 400
    assert client.post(f'{base}/start', headers=admin['headers']).status_code == 400


# ── Updates & deletion ───────────────────────────────────────────────


def test_update_match_settings(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'])
    res = client.put(f'/api/matches/{match["id"]}', headers=admin['headers'], json={
        'location': 'Arena Norte', 'end_mode': 'goals', 'goal_limit': 7,
    })
    assert res.status_code == 200
    data = json.loads(res.data)['data']
    assert data['location'] == 'Arena Norte'
    assert data['end_mode'] == 'goals'
    assert data['goal_limit'] == 7
    assert data['time_limit'] == 90


def test_update_match_validates_merged_limits(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'], end_mode='goals', time_limit=None)
    res = client.put(f'/api/matches/{match["id"]}', headers=admin['headers'], json={
        'end_mode': 'both',
    })
    assert res.status_code == 422
    assert 'time_limit' in json.loads(res.data)['errors']


def test_update_match_rejects_shrinking_below_roster(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'])
    for _ in range(7):
        _join(client, register_player()['headers'], match['code'])

    res = client.put(f'/api/matches/{match["id"]}', headers=admin['headers'], json={
        'players_count': '3vs3',
    })
    assert res.status_code == 422
    assert 'players_count' in json.loads(res.data)['errors']
    assert db.session.get(FootballMatch, match['id']).players_count == '5vs5'


def test_update_match_forbidden_for_non_admin(client, register_player):
    admin = register_player()
    other = register_player()
    match = _create_match(client, admin['headers'])
    res = client.put(f'/api/matches/{match["id"]}', headers=other['headers'], json={
        'location': 'Elsewhere',
    })
    assert res.status_code == 403


def test_update_match_settings_locked_after_start(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'])
    client.post(f'/api/matches/{match["id"]}/start', headers=admin['headers'])
    res = client.put(f'/api/matches/{match["id"]}', headers=admin['headers'], json={
        'location': 'Too Late',
    })
    assert res.status_code == 400


def test_update_match_status(client, register_player):
    admin = register_player()
    match = _create_match(client, admin['headers'])
    url = f'/api/matches/{match["id"]}'

    res = client.put(url, headers=admin['headers'], json={'status': 'finished'})
    assert res.status_code == 422

    res = client.put(url, headers=admin['headers'], json={'status': 'cancelled'})
    assert res.status_code == 200
    assert json.loads(res.data)['data']['status'] == 'cancelled'


def test_delete_match(client, register_player):
    admin = register_player()
    other = register_player()
    match = _create_match(client, admin['headers'])
    _join(client, other['headers'], match['code'])
    url = f'/api/matches/{match["id"]}'

    assert client.delete(url, headers=other['headers']).status_code == 403
    res = client.delete(url, headers=admin['headers'])
    assert res.status_code == 200
    assert db.session.get(FootballMatch, match['id']) is None
    assert MatchParticipant.query.filter_by(match_id=match['id']).count() == 0
    assert client.get(url, headers=admin['headers']).status_code == 404


# ── Events ───────────────────────────────────────────────────────────


def test_event_guards(client, register_player):
    admin = register_player()
    player = register_player()
    outsider = register_player()
    match = _create_match(client, admin['headers'])
    _join(client, player['headers'], match['code'])
    url = f'/api/matches/{match["id"]}/events'
    goal = {'player_id': player['player_id'], 'event_type': 'goal'}

    assert client.post(url, headers=admin['headers'], json=goal).status_code == 400
    client.post(f'/api/matches/{match["id"]}/start', headers=admin['headers'])

    assert client.post(url, headers=player['headers'], json=goal).status_code == 403
    res = client.post(url, headers=admin['headers'], json={
        'player_id': player['player_id'], 'event_type': 'own_goal',
    })
    assert res.status_code == 422
    res = client.post(url, headers=admin['headers'], json={
        'player_id': player['player_id'], 'event_type': 'goal', 'minute': -1,
    })
    assert res.status_code == 422
    res = client.post(url, headers=admin['headers'], json={'player_id': 999, 'event_type': 'goal'})
    assert res.status_code == 404
    res = client.post(url, headers=admin['headers'], json={
        'player_id': outsider['player_id'], 'event_type': 'goal',
    })
    assert res.status_code == 400
    assert MatchEvent.query.count() == 0


def test_list_events_with_type_filter(client, register_player):
    admin = register_player()
    player = register_player()
    match = _create_match(client, admin['headers'])
    _join(client, player['headers'], match['code'])
    client.post(f'/api/matches/{match["id"]}/shuffle-teams', headers=admin['headers'])
    client.post(f'/api/matches/{match["id"]}/start', headers=admin['headers'])
    url = f'/api/matches/{match["id"]}/events'

    res = client.post(url, headers=admin['headers'], json={
        'player_id': player['player_id'], 'event_type': 'goal', 'minute': 4,
        'description': 'Volley from outside the box',
    })
    assert res.status_code == 201
    event = json.loads(res.data)['data']
    assert event['minute'] == 4
    assert event['team']['team_name'] == 'team_a'
    assert event['player']['id'] == player['player_id']
    client.post(url, headers=admin['headers'], json={
        'player_id': player['player_id'], 'event_type': 'tackle',
    })

    res = client.get(url, headers=admin['headers'])
    assert [e['event_type'] for e in json.loads(res.data)['data']] == ['goal', 'tackle']
    res = client.get(f'{url}?type=tackle', headers=admin['headers'])
    assert [e['event_type'] for e in json.loads(res.data)['data']] == ['tackle']
    res = client.get(f'{url}?type=corner', headers=admin['headers'])
    assert res.status_code == 422


# ── Full match ───────────────────────────────────────────────────────


def test_full_match_updates_career_stats(client, register_player):
    admin = register_player('Admin')
    match = _create_match(client, admin['headers'])
    assert match['end_mode'] == 'both'
    base = f'/api/matches/{match["id"]}'

    roster = [admin] + [register_player() for _ in range(9)]
    for account in roster:
        assert _join(client, account['headers'], match['code']).status_code == 200
    assert json.loads(client.get(base, headers=admin['headers']).data)['data']['is_full'] is True

    res = client.post(f'{base}/shuffle-teams', headers=admin['headers'])
    teams = json.loads(res.data)['data']
    assert len(teams['team_a']['players']) == 5
    assert len(teams['team_b']['players']) == 5
    team_a_ids = [p['player_id'] for p in teams['team_a']['players']]
    team_b_ids = [p['player_id'] for p in teams['team_b']['players']]

    assert client.post(f'{base}/start', headers=admin['headers']).status_code == 200

    striker = team_a_ids[0]
    for minute in (10, 25, 60):
        res = client.post(f'{base}/events', headers=admin['headers'], json={
            'player_id': striker, 'event_type': 'goal', 'minute': minute,
        })
        assert res.status_code == 201
    client.post(f'{base}/events', headers=admin['headers'], json={
        'player_id': team_a_ids[1], 'event_type': 'assist', 'minute': 25,
    })
    client.post(f'{base}/events', headers=admin['headers'], json={
        'player_id': team_b_ids[0], 'event_type': 'goal', 'minute': 70,
    })
    client.post(f'{base}/events', headers=admin['headers'], json={
        'player_id': team_b_ids[1], 'event_type': 'tackle', 'minute': 80,
    })

    res = client.post(f'{base}/finish', headers=admin['headers'])
    assert res.status_code == 200
    data = json.loads(res.data)['data']
    assert data['status'] == 'finished'
    assert data['finished_at'] is not None
    scores = {team['team_name']: team['score'] for team in data['teams']}
    assert scores == {'team_a': 3, 'team_b': 1}
    assert data['winning_team']['team_name'] == 'team_a'
    assert len(data['events']) == 6

    for player_id in team_a_ids:
        player = db.session.get(Player, player_id)
        assert player.matches == 1
        assert player.wins == 1
    for player_id in team_b_ids:
        player = db.session.get(Player, player_id)
        assert player.matches == 1
        assert player.wins == 0

    striker_player = db.session.get(Player, striker)
    assert striker_player.goals == 3
    assert striker_player.average_rating == 9.5
    assert db.session.get(Player, team_a_ids[1]).assists == 1
    assert db.session.get(Player, team_b_ids[1]).tackles == 1
    assert db.session.get(Player, team_b_ids[0]).goals == 1

    res = client.post(f'{base}/finish', headers=admin['headers'])
    assert res.status_code == 400
    assert db.session.get(Player, striker).matches == 1


def test_delete_finished_match_with_winner(client, register_player):
    admin = register_player()
    player = register_player()
    match = _create_match(client, admin['headers'])
    base = f'/api/matches/{match["id"]}'
    _join(client, player['headers'], match['code'])
    client.post(f'{base}/shuffle-teams', headers=admin['headers'])
    client.post(f'{base}/start', headers=admin['headers'])
    client.post(f'{base}/events', headers=admin['headers'], json={
        'player_id': player['player_id'], 'event_type': 'goal',
    })
    client.post(f'{base}/finish', headers=admin['headers'])

    res = client.delete(base, headers=admin['headers'])
    assert res.status_code == 200
    assert FootballMatch.query.count() == 0
    assert MatchEvent.query.count() == 0
    assert db.session.get(Player, player['player_id']).matches == 1


def test_event_rejects_out_of_range_numbers(client, register_player):
    admin = register_player()
    player = register_player()
    match = _create_match(client, admin['headers'])
    _join(client, player['headers'], match['code'])
    client.post(f'/api/matches/{match["id"]}/start', headers=admin['headers'])
    url = f'/api/matches/{match["id"]}/events'

    res = client.post(url, headers=admin['headers'], json={
        'player_id': 10 ** 30, 'event_type': 'goal',
    })
    assert res.status_code == 422
    assert 'player_id' in json.loads(res.data)['errors']

    res = client.post(url, headers=admin['headers'], json={
        'player_id': player['player_id'], 'event_type': 'goal', 'minute': 10 ** 30,
    })
    assert res.status_code == 422
    assert 'minute' in json.loads(res.data)['errors']
    assert MatchEvent.query.count() == 0


def test_huge_match_id_is_not_found(client, auth_headers):
    res = client.get(f'/api/matches/{10 ** 30}', headers=auth_headers)
    assert res.status_code == 404


def test_create_match_requires_two_digit_time(client, auth_headers):
    for raw_time in ('7:5', '7:30', '19:5', '24:00'):
        res = client.post('/api/matches', headers=auth_headers, json=_match_payload(
            match_time=raw_time,
        ))
        assert res.status_code == 422
        assert 'match_time' in json.loads(res.data)['errors']
