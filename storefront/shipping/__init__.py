from flask import Blueprint

bp = Blueprint("shipping", __name__, url_prefix="/api/tenant/shipping-methods")

from . import routes  # noqa: E402,F401
