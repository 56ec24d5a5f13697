"""In-match event ledger routes."""
from flask import request
from pelada.app import db
from pelada.auth_utils import login_required
from pelada.models import Player
from pelada.routes.matches import matches_bp
from pelada.routes.matches.helpers import load_match, validate_event_payload
from pelada.routes.responses import fail, json_payload, ok
from pelada.services import match_engine


@matches_bp.route('/<int:match_id>/events', methods=['POST'])
@login_required
def add_event(match_id):
    match = load_match(match_id, for_update=True)
    if not match:
        return fail('Match not found', 404)
    if not match_engine.is_admin(match, request.current_player):
        return fail('Only the match admin can record events', 403)
    if match.status != match_engine.STATUS_IN_PROGRESS:
        return fail('Events can only be recorded while the match is in progress', 400)

    data = json_payload(request)
    if data is None:
        return fail('Invalid JSON payload', 400)
    cleaned, errors = validate_event_payload(data)
    if errors:
        return fail('Invalid event data', 422, errors=errors)

    event_player = db.session.get(Player, cleaned['player_id'])
    if not event_player:
        return fail('Player not found', 404)
    if not match_engine.is_participant(match, event_player):
        return fail('That player is not taking part in this match', 400)

    event = match_engine.add_event(
        match,
        event_player,
        cleaned['event_type'],
        minute=cleaned['minute'],
        description=cleaned['description'],
    )
    db.session.commit()
    return ok(event.to_dict(), 'Event recorded', 201)


@matches_bp.route('/<int:match_id>/events', methods=['GET'])
@login_required
def list_events(match_id):
    match = load_match(match_id)
    if not match:
        return fail('Match not found', 404)

    event_type = str(request.args.get('type') or '').strip().lower()
    if event_type and event_type not in match_engine.EVENT_TYPES:
        return fail('Invalid event type filter', 422, errors={
            'type': ['type must be one of ' + ', '.join(match_engine.EVENT_TYPES)],
        })

    events = match_engine.events_of_type(match, event_type or None)
    return ok([event.to_dict() for event in events], 'Events listed')
