# storefront/gift_card/routes.py
from flask import request

from . import bp
from ..model import GiftCard
from ..services import gift_card_service
from ..utils.api import ok
from ..utils.decorators import role_at_least, tenant_id
from ..utils.params import paginate, parse_bool


@bp.post("")
@role_at_least("manager", message="Only managers and admins can issue gift cards")
def create_gift_cards():
    """Body: { "value", "valid_until"?, "recipient_email"?, "count"? }"""
    cards = gift_card_service.create_gift_cards(tenant_id(), request.get_json(silent=True) or {})
    return ok(f"{len(cards)} gift card(s) created", {"items": [c.as_api() for c in cards]}, status=201)


@bp.get("")
@role_at_least("user")
def list_gift_cards():
    q = GiftCard.query.filter_by(tenant_id=tenant_id())
    if request.args.get("active") is not None:
        q = q.filter(GiftCard.is_active.is_(parse_bool(request.args.get("active"))))
    page = paginate(q.order_by(GiftCard.id.desc()), request.args.get("page"), request.args.get("per_page"))
    return ok("ok", {"meta": page["meta"], "items": [c.as_api() for c in page["items"]]})


@bp.post("/<int:gift_card_id>/deactivate")
@role_at_least("manager")
def deactivate_gift_card(gift_card_id):
    gc = gift_card_service.get_gift_card(tenant_id(), gift_card_id)
    gift_card_service.deactivate(gc)
    return ok("Gift card deactivated", {"gift_card": gc.as_api()})
