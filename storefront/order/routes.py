# storefront/order/routes.py
from flask import request

from . import bp
from ..extensions import db
from ..model import Order
from ..utils.api import ok
from ..utils.decorators import role_at_least, tenant_id
from ..utils.errors import NotFound, ServiceError
from ..utils.params import paginate

ORDER_STATUSES = ("pending", "paid", "shipped", "delivered", "cancelled")


def _get(order_id) -> Order:
    o = Order.query.filter_by(tenant_id=tenant_id(), id=order_id).first()
    if not o:
        raise NotFound("order not found", code="order_not_found")
    return o


@bp.get("")
@role_at_least("user")
def list_orders():
    q = Order.query.filter_by(tenant_id=tenant_id())
    status = (request.args.get("status") or "").strip().lower()
    if status:
        q = q.filter(Order.status == status)
    page = paginate(q.order_by(Order.id.desc()), request.args.get("page"), request.args.get("per_page"))
    return ok("ok", {"meta": page["meta"], "items": [o.as_api() for o in page["items"]]})


@bp.get("/<int:order_id>")
@role_at_least("user")
def get_order(order_id):
    return ok("ok", {"order": _get(order_id).as_api()})


@bp.patch("/<int:order_id>/status")
@role_at_least("manager")
def update_status(order_id):
    o = _get(order_id)
    status = ((request.get_json(silent=True) or {}).get("status") or "").strip().lower()
    if status not in ORDER_STATUSES:
        raise ServiceError(f"status must be one of {', '.join(ORDER_STATUSES)}")
    o.status = status
    db.session.commit()
    return ok("Order status updated", {"order": o.as_api()})
