"""Player profiles: public listing and detail, owner-only edits."""
from flask import Blueprint, current_app, request
from pelada.app import db
from pelada.auth_utils import login_required
from pelada.models import Player
from pelada.routes.responses import fail, json_payload, ok, page_payload

players_bp = Blueprint('players', __name__)

_TEXT_LIMITS = {
    'name': 255,
    'nickname': 255,
    'image': 500,
}
_NULLABLE_FIELDS = {'nickname', 'image'}


@players_bp.route('', methods=['GET'])
def list_players():
    page = request.args.get('page', 1, type=int)
    per_page = current_app.config.get('PLAYERS_PER_PAGE', 15)
    pagination = db.paginate(
        db.select(Player).order_by(Player.id.asc()),
        page=max(1, page or 1), per_page=per_page, error_out=False,
    )
    return ok(page_payload(pagination, lambda player: player.to_dict()), 'Players listed')


@players_bp.route('/me', methods=['GET'])
@login_required
def my_player():
    player = request.current_player
    if player is None:
        return fail('No player profile for the authenticated user', 404)
    return ok(player.to_dict(), 'Player profile retrieved')


@players_bp.route('/<int:player_id>', methods=['GET'])
def get_player(player_id):
    player = db.session.get(Player, player_id)
    if not player:
        return fail('Player not found', 404)
    return ok(player.to_dict(), 'Player found')


@players_bp.route('/<int:player_id>', methods=['PUT'])
@login_required
def update_player(player_id):
    player = db.session.get(Player, player_id)
    if not player:
        return fail('Player not found', 404)
    if player.user_id != request.current_user.id:
        return fail('You are not allowed to edit this player', 403)

    data = json_payload(request)
    if data is None:
        return fail('Invalid JSON payload', 400)

    errors = {}
    updates = {}
    for field, max_len in _TEXT_LIMITS.items():
        if field not in data:
            continue
        raw_value = data.get(field)
        if raw_value is None or str(raw_value).strip() == '':
            if field in _NULLABLE_FIELDS:
                updates[field] = None
            else:
                errors[field] = [f'{field.capitalize()} cannot be empty']
            continue
        cleaned = str(raw_value).strip()
        if len(cleaned) > max_len:
            errors[field] = [f'{field.capitalize()} must be at most {max_len} characters']
            continue
        updates[field] = cleaned

    if errors:
        return fail('Invalid player data', 422, errors=errors)

    for field, value in updates.items():
        setattr(player, field, value)
    db.session.commit()
    return ok(player.to_dict(), 'Player updated')
