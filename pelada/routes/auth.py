"""Account registration and login. Every new account gets its player profile here."""
import logging
import re

from flask import Blueprint, request
from werkzeug.security import check_password_hash, generate_password_hash
from pelada.app import db
from pelada.auth_utils import generate_token, login_required
from pelada.models import Player, User
from pelada.routes.responses import fail, json_payload, ok

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
_MAX_NAME_LENGTH = 255


def _password_complexity_error(raw_password):
    password = str(raw_password or '')
    if len(password) < 8:
        return 'Password must be at least 8 characters long'
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return 'Password must include at least one letter and one number'
    return None


def _validate_registration(data):
    errors = {}
    name = str(data.get('name') or '').strip()
    email = str(data.get('email') or '').strip().lower()
    password = data.get('password')

    if not name:
        errors['name'] = ['Name is required']
    elif len(name) > _MAX_NAME_LENGTH:
        errors['name'] = [f'Name must be at most {_MAX_NAME_LENGTH} characters']

    if not email:
        errors['email'] = ['Email is required']
    elif not _EMAIL_RE.match(email) or len(email) > 255:
        errors['email'] = ['Email must be a valid address']

    if not password:
        errors['password'] = ['Password is required']
    else:
        password_error = _password_complexity_error(password)
        if password_error:
            errors['password'] = [password_error]
        elif 'password_confirmation' in data and data.get('password_confirmation') != password:
            errors['password'] = ['Password confirmation does not match']

    return {'name': name, 'email': email, 'password': password}, errors


@auth_bp.route('/register', methods=['POST'])
def register():
    data = json_payload(request)
    if data is None:
        return fail('Invalid JSON payload', 400)

    cleaned, errors = _validate_registration(data)
    if errors:
        return fail('Invalid registration data', 422, errors=errors)

    if User.query.filter_by(email=cleaned['email']).first():
        return fail('Email already registered', 409, errors={'email': ['Email already registered']})

    # The user and its player profile are created in one transaction.
    user = User(
        name=cleaned['name'],
        email=cleaned['email'],
        password_hash=generate_password_hash(cleaned['password']),
    )
    db.session.add(user)
    db.session.flush()
    player = Player(user_id=user.id, name=user.name)
    db.session.add(player)
    db.session.commit()
    logger.info('Registered user %s with player %s', user.id, player.id)

    return ok({
        'token': generate_token(user.id),
        'user': user.to_dict(),
        'player': player.to_dict(),
    }, 'User registered successfully', 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_payload(request)
    if data is None:
        return fail('Invalid JSON payload', 400)

    email = str(data.get('email') or '').strip().lower()
    password = data.get('password')
    errors = {}
    if not email:
        errors['email'] = ['Email is required']
    if not password:
        errors['password'] = ['Password is required']
    if errors:
        return fail('Email and password are required', 422, errors=errors)

    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, str(password)):
        return fail('Invalid email or password', 401)

    return ok({
        'token': generate_token(user.id),
        'user': user.to_dict(),
        'player': user.player.to_dict() if user.player else None,
    }, 'Logged in successfully')


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    user = request.current_user
    return ok({
        'user': user.to_dict(),
        'player': user.player.to_dict() if user.player else None,
    }, 'Authenticated user retrieved')
