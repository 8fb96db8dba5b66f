# storefront/coupon/routes.py
from __future__ import annotations

from flask import g, request

from . import bp
from ..model import Coupon
from ..services import coupon_service
from ..utils.api import ok
from ..utils.dates import utcnow
from ..utils.decorators import role_at_least, tenant_id
from ..utils.params import paginate, parse_int

WRITE_MSG = "Only managers and admins can manage coupons"


@bp.post("")
@role_at_least("manager", message=WRITE_MSG)
def create_coupon():
    data = request.get_json(silent=True) or {}
    c = coupon_service.create_coupon(tenant_id(), data, created_by=g.user.id)
    return ok("Coupon created", {"coupon": c.as_api()}, status=201)


@bp.get("")
@role_at_least("user")
def list_coupons():
    """
    Query: page, per_page, search (code/name), status = active | inactive | expired
    """
    q = Coupon.query.filter_by(tenant_id=tenant_id())
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(Coupon.code.ilike(like) | Coupon.name.ilike(like))

    status = (request.args.get("status") or "").lower()
    now = utcnow()
    if status == "active":
        q = q.filter(Coupon.is_active.is_(True), (Coupon.end_date.is_(None)) | (Coupon.end_date >= now))
    elif status == "inactive":
        q = q.filter(Coupon.is_active.is_(False))
    elif status == "expired":
        q = q.filter(Coupon.end_date.isnot(None), Coupon.end_date < now)

    page = paginate(q.order_by(Coupon.id.desc()), request.args.get("page"), request.args.get("per_page"))
    return ok("ok", {"meta": page["meta"], "items": [c.as_api() for c in page["items"]]})


@bp.get("/<int:coupon_id>")
@role_at_least("user")
def get_coupon(coupon_id):
    c = coupon_service.get_coupon(tenant_id(), coupon_id)
    return ok("ok", {"coupon": c.as_api()})


@bp.patch("/<int:coupon_id>")
@role_at_least("manager", message=WRITE_MSG)
def update_coupon(coupon_id):
    c = coupon_service.get_coupon(tenant_id(), coupon_id)
    coupon_service.update_coupon(c, request.get_json(silent=True) or {})
    return ok("Coupon updated", {"coupon": c.as_api()})


@bp.delete("/<int:coupon_id>")
@role_at_least("manager", message=WRITE_MSG)
def delete_coupon(coupon_id):
    c = coupon_service.get_coupon(tenant_id(), coupon_id)
    coupon_service.delete_coupon(c)
    return ok("Coupon deleted")


@bp.get("/<int:coupon_id>/stats")
@role_at_least("user")
def coupon_stats(coupon_id):
    c = coupon_service.get_coupon(tenant_id(), coupon_id)
    return ok("ok", {"coupon": c.as_api(), "stats": coupon_service.coupon_stats(c)})


@bp.post("/bulk")
@role_at_least("manager", message=WRITE_MSG)
def bulk_create():
    """Body: { "count": 1..500, "template": { name, type, value, ... } }"""
    data = request.get_json(silent=True) or {}
    created = coupon_service.bulk_create(
        tenant_id(),
        parse_int(data.get("count"), 0),
        data.get("template") or {},
        created_by=g.user.id,
    )
    return ok(f"{len(created)} coupons created", {"codes": [c.code for c in created]}, status=201)
