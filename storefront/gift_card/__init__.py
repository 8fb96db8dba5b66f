from flask import Blueprint

bp = Blueprint("gift_card", __name__, url_prefix="/api/tenant/gift-cards")

from . import routes  # noqa: E402,F401
