from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, jsonify, request
from pelada.app import db
from pelada.models import User


def generate_token(user_id):
    """Generate a JWT token for a user."""
    payload = {
        'user_id': user_id,
        'exp': datetime.now(timezone.utc) + timedelta(
            hours=current_app.config.get('JWT_EXPIRATION_HOURS', 24)
        ),
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'], algorithm='HS256')


def _normalize_bearer_token(raw_token):
    token = str(raw_token or '').strip()
    if token.startswith('Bearer '):
        token = token.split(' ', 1)[1].strip()
    return token


def _decode_user_from_token(token):
    normalized = _normalize_bearer_token(token)
    if not normalized:
        return None, 'Authentication required'
    try:
        payload = jwt.decode(
            normalized, current_app.config['SECRET_KEY'], algorithms=['HS256']
        )
        user = db.session.get(User, payload['user_id'])
        if not user:
            return None, 'User not found'
        return user, None
    except jwt.ExpiredSignatureError:
        return None, 'Token expired'
    except (jwt.InvalidTokenError, KeyError):
        return None, 'Invalid token'


def login_required(f):
    """Decorator to require authentication on a route."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization', '')
        user, error = _decode_user_from_token(auth_header)
        if error:
            return jsonify({'success': False, 'message': error}), 401
        request.current_user = user
        request.current_player = user.player
        return f(*args, **kwargs)
    return decorated


def player_required(f):
    """Decorator for routes that act on behalf of the caller's player profile."""
    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        if request.current_player is None:
            return jsonify({
                'success': False,
                'message': 'User does not have a player profile',
            }), 400
        return f(*args, **kwargs)
    return decorated
