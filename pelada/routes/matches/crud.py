"""Match creation, listing, detail, settings updates and deletion."""
import logging

from flask import current_app, request
from pelada.app import db
from pelada.auth_utils import login_required, player_required
from pelada.models import FootballMatch
from pelada.routes.matches import matches_bp
from pelada.routes.matches.helpers import (
    config_fields_in, load_match, match_detail, match_summary, validate_match_config,
)
from pelada.routes.responses import fail, json_payload, ok, page_payload
from pelada.services import match_engine

logger = logging.getLogger(__name__)


@matches_bp.route('', methods=['GET'])
@login_required
def list_matches():
    status = str(request.args.get('status') or '').strip().lower()
    if status and status not in match_engine.MATCH_STATUSES:
        return fail('Invalid status filter', 422, errors={
            'status': ['status must be one of ' + ', '.join(match_engine.MATCH_STATUSES)],
        })

    query = db.select(FootballMatch)
    if status:
        query = query.filter(FootballMatch.status == status)
    query = query.order_by(
        FootballMatch.match_date.desc(),
        FootballMatch.match_time.desc(),
        FootballMatch.id.desc(),
    )

    page = request.args.get('page', 1, type=int)
    pagination = db.paginate(
        query,
        page=max(1, page or 1),
        per_page=current_app.config.get('MATCHES_PER_PAGE', 15),
        error_out=False,
    )
    return ok(page_payload(pagination, match_summary), 'Matches listed')


@matches_bp.route('', methods=['POST'])
@player_required
def create_match():
    data = json_payload(request)
    if data is None:
        return fail('Invalid JSON payload', 400)

    cleaned, errors = validate_match_config(data)
    if errors:
        return fail('Invalid match data', 422, errors=errors)

    match = match_engine.create_match(
        request.current_player,
        max_attempts=current_app.config.get('MATCH_CODE_MAX_ATTEMPTS', 5),
        **cleaned,
    )
    return ok(match_detail(match), 'Match created', 201)


@matches_bp.route('/<int:match_id>', methods=['GET'])
@login_required
def get_match(match_id):
    match = load_match(match_id)
    if not match:
        return fail('Match not found', 404)
    return ok(match_detail(match), 'Match retrieved')


@matches_bp.route('/<int:match_id>', methods=['PUT'])
@login_required
def update_match(match_id):
    match = load_match(match_id, for_update=True)
    if not match:
        return fail('Match not found', 404)
    if not match_engine.is_admin(match, request.current_player):
        return fail('Only the match admin can update this match', 403)

    data = json_payload(request)
    if data is None:
        return fail('Invalid JSON payload', 400)

    requested_status = None
    if 'status' in data:
        requested_status = str(data.get('status') or '').strip().lower()
        if requested_status not in (match.status, match_engine.STATUS_CANCELLED):
            return fail('Invalid status change', 422, errors={
                'status': ['Only cancelled can be set here; use the match actions to start or finish'],
            })
        if requested_status == match.status:
            requested_status = None

    if config_fields_in(data):
        if match.status != match_engine.STATUS_WAITING:
            return fail('Match settings can only change while the match is waiting', 400)

        cleaned, errors = validate_match_config(data, existing=match)
        new_format = cleaned.get('players_count')
        if new_format and 'players_count' not in errors:
            capacity = match_engine.roster_capacity(new_format)
            if match_engine.participant_count(match) > capacity:
                errors['players_count'] = [
                    f'{new_format} holds {capacity} players but '
                    f'{match_engine.participant_count(match)} have already joined'
                ]
        if errors:
            return fail('Invalid match data', 422, errors=errors)

        for field, value in cleaned.items():
            setattr(match, field, value)

    if requested_status == match_engine.STATUS_CANCELLED and not match_engine.cancel(match):
        return fail('Match cannot be cancelled in its current state', 400)

    db.session.commit()
    logger.info('Match %s updated by player %s', match.id, request.current_player.id)
    return ok(match_detail(match), 'Match updated')


@matches_bp.route('/<int:match_id>', methods=['DELETE'])
@login_required
def delete_match(match_id):
    match = load_match(match_id, for_update=True)
    if not match:
        return fail('Match not found', 404)
    if not match_engine.is_admin(match, request.current_player):
        return fail('Only the match admin can delete this match', 403)

    if match.winning_team is not None:
        match.winning_team = None
        db.session.flush()
    db.session.delete(match)
    db.session.commit()
    logger.info('Match %s deleted by player %s', match_id, request.current_player.id)
    return ok(None, 'Match deleted')
