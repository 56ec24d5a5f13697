"""Pickup matches — blueprint registration."""
from flask import Blueprint

matches_bp = Blueprint('matches', __name__)

# Route modules register their routes by importing matches_bp.
# These imports MUST come after matches_bp is defined.
from pelada.routes.matches import crud, roster, lifecycle, events  # noqa: E402, F401
