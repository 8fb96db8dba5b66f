# storefront/services/checkout_service.py
from __future__ import annotations

import logging
import secrets

from ..extensions import db
from ..model import Cart, Customer, Order, OrderItem, Product, ProductVariant
from ..utils.dates import utcnow
from ..utils.errors import Conflict, ServiceError
from ..utils.validators import digits, is_valid_cnpj, is_valid_cpf, is_valid_email
from . import cart_service, coupon_service, gift_card_service
from .pricing import available_stock, normalize_customer_type, stock_bucket

log = logging.getLogger(__name__)

PAYMENT_METHODS = ("pix", "boleto", "credit_card")


def _gen_order_code(now):
    return "ORD-" + now.strftime("%Y%m%d-%H%M%S%f") + "-" + secrets.token_hex(2).upper()


def resolve_customer(cart: Cart, data: dict) -> Customer:
    """The cart's customer, or one found/created from the checkout payload."""
    if cart.customer_id:
        return cart.customer

    email = (data.get("email") or "").strip().lower()
    name = (data.get("name") or "").strip()
    if not name:
        raise ServiceError("customer name is required", code="invalid_customer")
    if not is_valid_email(email):
        raise ServiceError("invalid email", code="invalid_email")

    ctype = normalize_customer_type(data.get("customer_type") or cart.customer_type)
    document = digits(data.get("document"))
    if document:
        if ctype == "b2c" and not is_valid_cpf(document):
            raise ServiceError("invalid CPF", code="invalid_document")
        if ctype == "b2b" and not is_valid_cnpj(document):
            raise ServiceError("invalid CNPJ", code="invalid_document")
    elif ctype == "b2b":
        raise ServiceError("CNPJ is required for business customers", code="invalid_document")

    customer = Customer.query.filter_by(tenant_id=cart.tenant_id, email=email).first()
    if not customer:
        customer = Customer(tenant_id=cart.tenant_id, email=email, reward_points=0)
        db.session.add(customer)
    customer.name = name
    customer.phone = data.get("phone") or customer.phone
    customer.customer_type = ctype
    customer.document = document or customer.document
    db.session.flush()

    cart.customer_id = customer.id
    cart.customer_type = ctype
    return customer


def _lock_stock(cart: Cart):
    """Lock the cart's products and variants; each stock counter must cover the summed quantity of its lines."""
    ids = [i.product_id for i in cart.items]
    products = (
        db.session.query(Product)
        .filter(Product.id.in_(ids))
        .with_for_update()
        .populate_existing()
        .all()
    )
    variant_ids = [i.variant_id for i in cart.items if i.variant_id]
    if variant_ids:
        db.session.query(ProductVariant).filter(ProductVariant.id.in_(variant_ids)).with_for_update().populate_existing().all()
    pmap = {p.id: p for p in products}
    wanted = {}
    for it in cart.items:
        p = pmap.get(it.product_id)
        if not p or not p.is_active:
            raise Conflict(f"product {it.product_id} unavailable", code="product_unavailable")
        if p.has_unlimited_stock:
            continue
        key = stock_bucket(p, it.variant)
        wanted[key] = wanted.get(key, 0) + it.quantity
        if available_stock(p, it.variant) < wanted[key]:
            raise Conflict(f"requested qty for {p.name} not available", code="insufficient_stock")
    return pmap


def _decrement_stock(cart: Cart, pmap):
    for it in cart.items:
        p = pmap[it.product_id]
        if p.has_unlimited_stock:
            continue
        v: ProductVariant | None = it.variant
        if v is not None and v.stock is not None:
            v.stock = int(v.stock) - it.quantity
        else:
            p.stock = int(p.stock or 0) - it.quantity


def checkout(cart: Cart, payload: dict, now=None) -> Order:
    """
    Turn an active cart into an Order. Re-prices every line, re-validates
    stock, coupon and gift card, then commits everything in one transaction.
    """
    now = now or utcnow()
    if cart.status != "active":
        raise Conflict("cart is not active", code="cart_closed")
    if not cart.items:
        raise ServiceError("cart is empty", code="empty_cart")

    payment_method = ((payload.get("payment") or {}).get("method") or "pix").lower()
    if payment_method not in PAYMENT_METHODS:
        raise ServiceError(f"payment method must be one of {', '.join(PAYMENT_METHODS)}")

    customer = resolve_customer(cart, payload.get("customer") or {})
    pmap = _lock_stock(cart)
    # usage counts and balances are re-read under lock before compute() re-validates them
    if cart.coupon_code:
        coupon_service.lock_coupon(cart.tenant_id, cart.coupon_code)
    if cart.gift_card_code:
        gift_card_service.lock_gift_card(cart.tenant_id, cart.gift_card_code)

    totals, validation, gift_card, gift_error = cart_service.compute(cart, now)
    if cart.coupon_code and not (validation and validation.is_valid):
        raise ServiceError(f"coupon '{cart.coupon_code}' invalid: {validation.error}", code=validation.error_code)
    if cart.gift_card_code and gift_error:
        raise ServiceError(gift_error, code="gift_card_invalid")

    order = Order(
        tenant_id=cart.tenant_id,
        customer_id=customer.id,
        code=_gen_order_code(now),
        status="pending",
        customer_name=customer.name,
        email=customer.email,
        phone=customer.phone,
        customer_type=cart.customer_type,
        address_json=payload.get("shipping_address") or {},
        payment_method=payment_method,
        subtotal=totals.subtotal,
        discount_total=totals.discount,
        shipping_total=totals.shipping,
        gift_card_total=totals.gift_card,
        total=totals.total,
        coupon_code=cart.coupon_code,
        gift_card_code=cart.gift_card_code,
        shipping_method=cart_service.shipping_rule_for(cart).name,
        reward_points=sum(ln.reward_points for ln in totals.lines),
        cart_uuid=cart.uuid,
        created_at=now,
    )
    for ln in totals.lines:
        order.items.append(OrderItem(
            product_id=ln.product_id,
            variant_id=ln.variant_id,
            name=ln.name,
            unit_price=ln.unit_price,
            quantity=ln.quantity,
            line_total=ln.line_total,
        ))
    db.session.add(order)
    db.session.flush()

    _decrement_stock(cart, pmap)

    if validation is not None:
        coupon_service.record_usage(
            validation.coupon, order.id, customer.id,
            discount_amount=totals.discount,
            original_amount=totals.subtotal,
        )
    if gift_card is not None and totals.gift_card > 0:
        gift_card_service.debit(gift_card, totals.gift_card)

    customer.reward_points = int(customer.reward_points or 0) + order.reward_points

    cart.status = "checked_out"
    db.session.commit()
    log.info("order %s placed: tenant=%s total=%s", order.code, order.tenant_id, order.total)
    return order
