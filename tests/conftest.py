import itertools

import pytest
from pelada.app import create_app, db


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register_player(client):
    """Return a factory that registers a user and yields its token and player."""
    counter = itertools.count(1)

    def _register(name=None):
        index = next(counter)
        res = client.post('/api/auth/register', json={
            'name': name or f'Player {index}',
            'email': f'player{index}@example.com',
            'password': 'password123',
        })
        assert res.status_code == 201, res.get_json()
        data = res.get_json()['data']
        return {
            'token': data['token'],
            'headers': {
                'Authorization': f'Bearer {data["token"]}',
                'Content-Type': 'application/json',
            },
            'player_id': data['player']['id'],
            'user_id': data['user']['id'],
        }

    return _register


@pytest.fixture
def auth_headers(register_player):
    """Register a user and return auth headers."""
    return register_player('Test User')['headers']
