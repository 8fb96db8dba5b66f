from flask import Blueprint

bp = Blueprint("public_api", __name__, url_prefix="/api/public/v1")

from . import routes  # noqa: E402,F401
