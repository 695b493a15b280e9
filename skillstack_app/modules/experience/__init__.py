"""Experience module: XP, levels, SKP and streaks for learning sessions."""
from flask import Blueprint

# Mount points are declared in core.module_registry
experience_api_bp = Blueprint('experience_api', __name__)
experience_admin_bp = Blueprint('experience_admin', __name__)

from . import routes, events  # noqa: E402,F401
