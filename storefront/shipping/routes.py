# storefront/shipping/routes.py
from __future__ import annotations

from flask import request

from . import bp
from ..extensions import db
from ..model import Cart, ShippingMethod
from ..utils.api import ok
from ..utils.decorators import role_at_least, tenant_id
from ..utils.errors import NotFound, ServiceError
from ..utils.money import ZERO, opt_D
from ..utils.params import parse_opt_int


def _money(data, key, required=False):
    try:
        m = opt_D(data.get(key))
    except ValueError:
        raise ServiceError(f"{key} must be numeric")
    if m is None and required:
        raise ServiceError(f"{key} is required")
    if m is not None and m < ZERO:
        raise ServiceError(f"{key} must be >= 0")
    return m


def _apply(m: ShippingMethod, data: dict, partial: bool):
    if "name" in data or not partial:
        name = (data.get("name") or "").strip()
        if not name:
            raise ServiceError("name is required")
        m.name = name
    if "flat_fee" in data or not partial:
        m.flat_fee = _money(data, "flat_fee", required=True)
    if "free_above" in data:
        m.free_above = _money(data, "free_above")
    if "estimated_days" in data:
        m.estimated_days = parse_opt_int(data.get("estimated_days"))
    if "is_active" in data:
        m.is_active = bool(data.get("is_active"))
    if "is_default" in data:
        m.is_default = bool(data.get("is_default"))


def _single_default(m: ShippingMethod):
    # at most one default per store
    if m.is_default:
        (ShippingMethod.query
         .filter(ShippingMethod.tenant_id == m.tenant_id, ShippingMethod.id != m.id)
         .update({"is_default": False}, synchronize_session=False))


def _get(method_id) -> ShippingMethod:
    m = ShippingMethod.query.filter_by(tenant_id=tenant_id(), id=method_id).first()
    if not m:
        raise NotFound("shipping method not found", code="shipping_method_not_found")
    return m


@bp.post("")
@role_at_least("manager")
def create_method():
    data = request.get_json(silent=True) or {}
    m = ShippingMethod(tenant_id=tenant_id(), is_active=True, is_default=False)
    _apply(m, data, partial=False)
    db.session.add(m)
    db.session.flush()
    _single_default(m)
    db.session.commit()
    return ok("Shipping method created", {"shipping_method": m.as_api()}, status=201)


@bp.get("")
@role_at_least("user")
def list_methods():
    items = ShippingMethod.query.filter_by(tenant_id=tenant_id()).order_by(ShippingMethod.id.asc()).all()
    return ok("ok", {"items": [m.as_api() for m in items]})


@bp.patch("/<int:method_id>")
@role_at_least("manager")
def update_method(method_id):
    m = _get(method_id)
    _apply(m, request.get_json(silent=True) or {}, partial=True)
    _single_default(m)
    db.session.commit()
    return ok("Shipping method updated", {"shipping_method": m.as_api()})


@bp.delete("/<int:method_id>")
@role_at_least("manager")
def delete_method(method_id):
    m = _get(method_id)
    # carts pointing at it fall back to the store default
    Cart.query.filter_by(shipping_method_id=m.id).update({"shipping_method_id": None}, synchronize_session=False)
    db.session.delete(m)
    db.session.commit()
    return ok("Shipping method deleted")
