"""Match routes — payload validation, loading and response shaping."""
import re
from datetime import date, datetime

from pelada.app import db
from pelada.models import FootballMatch
from pelada.services import match_engine
from pelada.time_utils import utc_today

_MAX_LOCATION_LENGTH = 255
_MAX_DESCRIPTION_LENGTH = 255
_MAX_ID = 2 ** 31 - 1
_MAX_MINUTE = 1000
_MATCH_TIME_RE = re.compile(r'^\d{2}:\d{2}$')
_GOAL_LIMIT_RANGE = (1, 50)
_TIME_LIMIT_RANGE = (1, 300)
_CONFIG_FIELDS = (
    'match_date', 'match_time', 'location',
    'players_count', 'end_mode', 'goal_limit', 'time_limit',
)
_REQUIRED_ON_CREATE = ('match_date', 'match_time', 'location', 'players_count', 'end_mode')


def _parse_int(raw_value):
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value) if raw_value.is_integer() else None
    try:
        return int(str(raw_value).strip())
    except (TypeError, ValueError):
        return None


def _parse_match_date(raw_value):
    if isinstance(raw_value, date) and not isinstance(raw_value, datetime):
        return raw_value
    try:
        return date.fromisoformat(str(raw_value or '').strip())
    except ValueError:
        return None


def _parse_match_time(raw_value):
    text = str(raw_value or '').strip()
    if not _MATCH_TIME_RE.match(text):
        return None
    try:
        return datetime.strptime(text, '%H:%M').time()
    except ValueError:
        return None


def _parse_limit(raw_value, bounds, label):
    """Return (value, error) for an optional bounded integer."""
    if raw_value is None or raw_value == '':
        return None, None
    value = _parse_int(raw_value)
    low, high = bounds
    if value is None:
        return None, f'{label} must be an integer'
    if value < low or value > high:
        return None, f'{label} must be between {low} and {high}'
    return value, None


def config_fields_in(data):
    return [field for field in _CONFIG_FIELDS if field in data]


def validate_match_config(data, existing=None):
    """Validate match settings.

    With ``existing`` set, only the keys present in ``data`` are checked and the
    end-mode requirements are evaluated against the merged result.
    Returns ``(cleaned, errors)``; ``errors`` maps field names to message lists.
    """
    cleaned = {}
    errors = {}

    if existing is None:
        for field in _REQUIRED_ON_CREATE:
            if data.get(field) in (None, ''):
                errors[field] = [f'{field} is required']

    if 'match_date' in data and 'match_date' not in errors:
        match_date = _parse_match_date(data.get('match_date'))
        if match_date is None:
            errors['match_date'] = ['match_date must be a date in YYYY-MM-DD format']
        elif match_date < utc_today():
            errors['match_date'] = ['match_date cannot be in the past']
        else:
            cleaned['match_date'] = match_date

    if 'match_time' in data and 'match_time' not in errors:
        match_time = _parse_match_time(data.get('match_time'))
        if match_time is None:
            errors['match_time'] = ['match_time must use the HH:MM format']
        else:
            cleaned['match_time'] = match_time

    if 'location' in data and 'location' not in errors:
        location = str(data.get('location') or '').strip()
        if not location:
            errors['location'] = ['location is required']
        elif len(location) > _MAX_LOCATION_LENGTH:
            errors['location'] = [f'location must be at most {_MAX_LOCATION_LENGTH} characters']
        else:
            cleaned['location'] = location

    if 'players_count' in data and 'players_count' not in errors:
        players_count = str(data.get('players_count') or '').strip().lower()
        if players_count not in match_engine.PLAYERS_COUNT_OPTIONS:
            errors['players_count'] = [
                'players_count must be one of ' + ', '.join(match_engine.PLAYERS_COUNT_OPTIONS)
            ]
        else:
            cleaned['players_count'] = players_count

    if 'end_mode' in data and 'end_mode' not in errors:
        end_mode = str(data.get('end_mode') or '').strip().lower()
        if end_mode not in match_engine.END_MODES:
            errors['end_mode'] = ['end_mode must be one of ' + ', '.join(match_engine.END_MODES)]
        else:
            cleaned['end_mode'] = end_mode

    for field, bounds in (('goal_limit', _GOAL_LIMIT_RANGE), ('time_limit', _TIME_LIMIT_RANGE)):
        if field not in data:
            continue
        value, error = _parse_limit(data.get(field), bounds, field)
        if error:
            errors[field] = [error]
        else:
            cleaned[field] = value

    end_mode = cleaned.get('end_mode', existing.end_mode if existing is not None else None)
    goal_limit = cleaned.get('goal_limit') if 'goal_limit' in cleaned else (
        existing.goal_limit if existing is not None else None
    )
    time_limit = cleaned.get('time_limit') if 'time_limit' in cleaned else (
        existing.time_limit if existing is not None else None
    )
    if end_mode in ('goals', 'both') and not goal_limit and 'goal_limit' not in errors:
        errors['goal_limit'] = ['goal_limit is required when the end mode includes goals']
    if end_mode in ('time', 'both') and not time_limit and 'time_limit' not in errors:
        errors['time_limit'] = ['time_limit is required when the end mode includes time']

    return cleaned, errors


def validate_event_payload(data):
    cleaned = {}
    errors = {}

    player_id = _parse_int(data.get('player_id'))
    if data.get('player_id') in (None, ''):
        errors['player_id'] = ['player_id is required']
    elif player_id is None or player_id <= 0 or player_id > _MAX_ID:
        errors['player_id'] = ['player_id must be a positive integer']
    else:
        cleaned['player_id'] = player_id

    event_type = str(data.get('event_type') or '').strip().lower()
    if not event_type:
        errors['event_type'] = ['event_type is required']
    elif event_type not in match_engine.EVENT_TYPES:
        errors['event_type'] = ['event_type must be one of ' + ', '.join(match_engine.EVENT_TYPES)]
    else:
        cleaned['event_type'] = event_type

    raw_minute = data.get('minute')
    if raw_minute is None or raw_minute == '':
        cleaned['minute'] = None
    else:
        minute = _parse_int(raw_minute)
        if minute is None or minute < 0 or minute > _MAX_MINUTE:
            errors['minute'] = [f'minute must be an integer between 0 and {_MAX_MINUTE}']
        else:
            cleaned['minute'] = minute

    raw_description = data.get('description')
    if raw_description is None:
        cleaned['description'] = None
    elif not isinstance(raw_description, str):
        errors['description'] = ['description must be a string']
    elif len(raw_description.strip()) > _MAX_DESCRIPTION_LENGTH:
        errors['description'] = [
            f'description must be at most {_MAX_DESCRIPTION_LENGTH} characters'
        ]
    else:
        cleaned['description'] = raw_description.strip() or None

    return cleaned, errors


def load_match(match_id, for_update=False):
    """Fetch a match; ``for_update`` takes a row lock for the rest of the transaction."""
    if match_id > _MAX_ID:
        return None
    query = db.select(FootballMatch).filter_by(id=match_id)
    if for_update:
        query = query.with_for_update()
    return db.session.execute(query).scalar_one_or_none()


def load_match_by_code(code, for_update=False):
    query = db.select(FootballMatch).filter_by(code=code)
    if for_update:
        query = query.with_for_update()
    return db.session.execute(query).scalar_one_or_none()


def team_payload(team, players_count):
    data = team.to_dict()
    data['players'] = [participant.to_dict() for participant in team.participants]
    data['capacity'] = match_engine.per_team_capacity(players_count)
    return data


def match_summary(match):
    data = match.to_dict()
    data['admin'] = match.admin.to_dict() if match.admin else None
    data['participants_count'] = match_engine.participant_count(match)
    data['capacity'] = match_engine.roster_capacity(match.players_count)
    data['is_full'] = match_engine.is_full(match)
    return data


def match_detail(match, include_events=True):
    data = match_summary(match)
    data['participants'] = [participant.to_dict() for participant in match.participants]
    data['teams'] = [team_payload(team, match.players_count) for team in match.teams]
    data['winning_team'] = match.winning_team.to_dict() if match.winning_team else None
    if include_events:
        data['events'] = [event.to_dict() for event in match.events]
    return data
