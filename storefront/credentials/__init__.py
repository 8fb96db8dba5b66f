from flask import Blueprint

bp = Blueprint("credentials", __name__, url_prefix="/api/tenant/api-credentials")

from . import routes  # noqa: E402,F401
