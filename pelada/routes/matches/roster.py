"""Joining, leaving and team shuffling while a match is waiting."""
from flask import request
from pelada.app import db
from pelada.auth_utils import login_required, player_required
from pelada.routes.matches import matches_bp
from pelada.routes.matches.helpers import (
    load_match, load_match_by_code, match_detail, team_payload,
)
from pelada.routes.responses import fail, json_payload, ok
from pelada.services import match_engine
from pelada.services.join_codes import CODE_LENGTH, normalize_code


@matches_bp.route('/join', methods=['POST'])
@player_required
def join_match():
    data = json_payload(request)
    if data is None:
        return fail('Invalid JSON payload', 400)

    code = normalize_code(data.get('code'))
    if not code:
        return fail('Invalid match code', 422, errors={
            'code': [f'code must be {CODE_LENGTH} letters or digits'],
        })

    match = load_match_by_code(code, for_update=True)
    if not match:
        return fail('No match found for that code', 404)

    _, reasons = match_engine.join(match, request.current_player)
    if reasons:
        return fail(
            'Cannot join match: ' + match_engine.describe_reasons(reasons),
            400,
            reasons=reasons,
        )

    db.session.commit()
    return ok(match_detail(match, include_events=False), 'You joined the match')


@matches_bp.route('/<int:match_id>/leave', methods=['POST'])
@player_required
def leave_match(match_id):
    match = load_match(match_id, for_update=True)
    if not match:
        return fail('Match not found', 404)

    reasons = match_engine.leave(match, request.current_player)
    if reasons:
        return fail(
            'Cannot leave match: ' + match_engine.describe_reasons(reasons),
            400,
            reasons=reasons,
        )

    db.session.commit()
    return ok(match_detail(match, include_events=False), 'You left the match')


@matches_bp.route('/<int:match_id>/shuffle-teams', methods=['POST'])
@login_required
def shuffle_teams(match_id):
    match = load_match(match_id, for_update=True)
    if not match:
        return fail('Match not found', 404)
    if not match_engine.is_admin(match, request.current_player):
        return fail('Only the match admin can shuffle teams', 403)
    if match.status != match_engine.STATUS_WAITING:
        return fail('Teams can only be shuffled before the match starts', 400)

    teams = match_engine.shuffle_teams(match)
    db.session.commit()
    return ok({
        name: team_payload(team, match.players_count) for name, team in teams.items()
    }, 'Teams shuffled')
