from flask import Blueprint

bp = Blueprint("coin", __name__, url_prefix="/coins")

from . import routes  # noqa: E402,F401
