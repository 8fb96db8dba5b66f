# storefront/cart/routes.py
from __future__ import annotations

import logging

from flask import request

from . import bp
from ..extensions import db
from ..services import cart_service, checkout_service
from ..utils.api import ok
from ..utils.errors import ServiceError
from ..utils.params import parse_opt_int
from ..utils.tenant import current_tenant

log = logging.getLogger(__name__)


def _resolve_cart():
    tenant = current_tenant()
    return cart_service.get_or_create_cart(tenant.id, request.headers.get("X-Cart-Id"))


def _cart_response(msg, cart, status=200):
    resp = ok(msg, cart_service.cart_api(cart), status=status)
    resp.headers["X-Cart-Id"] = cart.uuid  # <- return UUID to client
    return resp


# ---- cart ------------------------------------------------------------------

@bp.get("")
def get_cart():
    return _cart_response("cart", _resolve_cart())


@bp.post("")
def create_or_get_cart():
    return _cart_response("cart ready", _resolve_cart(), status=201)


@bp.delete("")
def remove_cart():
    """Marks the current cart as 'abandoned' and hands back a fresh one."""
    cart = _resolve_cart()
    new_cart = cart_service.abandon(cart)
    return _cart_response("cart removed; new cart ready", new_cart)


@bp.patch("/customer")
def set_customer():
    """
    Body: { "customer_type": "b2b" | "b2c", "customer_id": int }
    Either key may be omitted. Prices re-resolve on the next read.
    """
    cart = _resolve_cart()
    data = request.get_json(silent=True) or {}
    cart_service.set_customer(
        cart,
        customer_type=data.get("customer_type"),
        customer_id=parse_opt_int(data.get("customer_id")),
    )
    return _cart_response("customer updated", cart)


# ---- items -----------------------------------------------------------------

@bp.post("/items")
def add_item():
    """
    Body: { "product_id": int, "variant_id": int?, "quantity" | "qty": int }
    Header: X-Cart-Id: <uuid>
    """
    cart = _resolve_cart()
    data = request.get_json(silent=True) or {}
    if not data.get("product_id"):
        raise ServiceError("product_id is required")
    cart_service.add_item(
        cart,
        data.get("product_id"),
        quantity=data.get("quantity", data.get("qty", 1)),
        variant_id=parse_opt_int(data.get("variant_id")),
    )
    return _cart_response("item added", cart, status=201)


@bp.put("/items/<int:item_id>")
@bp.patch("/items/<int:item_id>")
def update_item(item_id: int):
    cart = _resolve_cart()
    data = request.get_json(silent=True) or {}
    if "quantity" not in data:
        raise ServiceError("quantity is required")
    cart_service.update_item(cart, item_id, data.get("quantity"))
    return _cart_response("item updated", cart)


@bp.delete("/items/<int:item_id>")
def remove_item(item_id: int):
    cart = _resolve_cart()
    cart_service.remove_item(cart, item_id)
    return _cart_response("item removed", cart)


@bp.delete("/items")
def clear_cart_items():
    cart = _resolve_cart()
    cart_service.clear_items(cart)
    return _cart_response("all items removed", cart)


# ---- coupon / gift card / shipping -----------------------------------------

@bp.post("/coupon")
def apply_coupon():
    """Body: { "code": "SUMMER10" }. One coupon per cart; a new code replaces the old one."""
    cart = _resolve_cart()
    data = request.get_json(silent=True) or {}
    cart_service.apply_coupon(cart, data.get("code"))
    return _cart_response("coupon applied", cart)


@bp.delete("/coupon")
def remove_coupon():
    cart = _resolve_cart()
    cart_service.remove_coupon(cart)
    return _cart_response("coupon removed", cart)


@bp.post("/gift-card")
def apply_gift_card():
    cart = _resolve_cart()
    data = request.get_json(silent=True) or {}
    cart_service.apply_gift_card(cart, data.get("code"))
    return _cart_response("gift card applied", cart)


@bp.delete("/gift-card")
def remove_gift_card():
    cart = _resolve_cart()
    cart_service.remove_gift_card(cart)
    return _cart_response("gift card removed", cart)


@bp.patch("/shipping-method")
def set_shipping_method():
    """Body: { "shipping_method_id": int | null }. null falls back to the store default."""
    cart = _resolve_cart()
    data = request.get_json(silent=True) or {}
    cart_service.set_shipping_method(cart, parse_opt_int(data.get("shipping_method_id")))
    return _cart_response("shipping method updated", cart)


# ---- checkout --------------------------------------------------------------

@bp.post("/checkout")
def checkout():
    """
    Body:
    {
      "customer": { "name", "email", "phone", "document", "customer_type" },
      "shipping_address": {...},
      "payment": { "method": "pix" | "boleto" | "credit_card" }
    }
    """
    cart = _resolve_cart()
    payload = request.get_json(silent=True) or {}
    try:
        order = checkout_service.checkout(cart, payload)
    except ServiceError:
        db.session.rollback()
        raise
    except Exception:
        db.session.rollback()
        log.exception("checkout failed for cart %s", cart.uuid)
        raise

    resp = ok("order placed", {"order": order.as_api()}, status=201)
    resp.headers["X-Cart-Id"] = cart.uuid
    return resp
