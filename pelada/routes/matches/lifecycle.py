"""Admin-driven match transitions: start, pause/resume, finish and cancel."""
from flask import request
from pelada.app import db
from pelada.auth_utils import login_required
from pelada.routes.matches import matches_bp
from pelada.routes.matches.helpers import load_match, match_detail
from pelada.routes.responses import fail, ok
from pelada.services import match_engine


def _load_admin_match(match_id, action):
    """Return ``(match, error_response)`` for an admin-only action."""
    match = load_match(match_id, for_update=True)
    if not match:
        return None, fail('Match not found', 404)
    if not match_engine.is_admin(match, request.current_player):
        return None, fail(f'Only the match admin can {action} this match', 403)
    return match, None


@matches_bp.route('/<int:match_id>/start', methods=['POST'])
@login_required
def start_match(match_id):
    match, error = _load_admin_match(match_id, 'start')
    if error:
        return error
    if not match_engine.start(match):
        return fail('Match cannot be started in its current state', 400)

    db.session.commit()
    return ok(match_detail(match), 'Match started')


@matches_bp.route('/<int:match_id>/toggle-pause', methods=['POST'])
@login_required
def toggle_pause(match_id):
    match, error = _load_admin_match(match_id, 'pause or resume')
    if error:
        return error
    if not match_engine.toggle_pause(match):
        return fail('Match cannot be paused or resumed in its current state', 400)

    db.session.commit()
    message = 'Match paused' if match.is_paused else 'Match resumed'
    return ok(match_detail(match, include_events=False), message)


@matches_bp.route('/<int:match_id>/finish', methods=['POST'])
@login_required
def finish_match(match_id):
    match, error = _load_admin_match(match_id, 'finish')
    if error:
        return error
    if not match_engine.finish(match):
        return fail('Match cannot be finished in its current state', 400)

    db.session.commit()
    return ok(match_detail(match), 'Match finished')


@matches_bp.route('/<int:match_id>/cancel', methods=['POST'])
@login_required
def cancel_match(match_id):
    match, error = _load_admin_match(match_id, 'cancel')
    if error:
        return error
    if not match_engine.cancel(match):
        return fail('Only waiting or in-progress matches can be cancelled', 400)

    db.session.commit()
    return ok(match_detail(match, include_events=False), 'Match cancelled')
