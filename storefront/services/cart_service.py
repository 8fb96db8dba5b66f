# storefront/services/cart_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..model import Cart, CartItem, Customer, Product, ProductVariant, ShippingMethod
from ..utils.dates import utcnow
from ..utils.errors import Conflict, NotFound, ServiceError
from ..utils.money import D, ZERO, Money, opt_D, round_money, to_string_money
from . import coupon_service, gift_card_service
from .pricing import (
    available_stock,
    clamp_quantity,
    normalize_customer_type,
    resolve_unit_price,
    reward_points_for,
    stock_bucket,
)

log = logging.getLogger(__name__)


# ---- pure aggregation -------------------------------------------------------

@dataclass
class ShippingRule:
    flat_fee: Money
    free_above: Money | None = None
    name: str = "Standard"
    method_id: int | None = None

    def cost_for(self, subtotal: Money) -> Money:
        if self.free_above is not None and D(subtotal) >= self.free_above:
            return ZERO
        return round_money(self.flat_fee)

    def as_api(self):
        return {
            "id": self.method_id,
            "name": self.name,
            "flat_fee": to_string_money(self.flat_fee),
            "free_above": to_string_money(self.free_above) if self.free_above is not None else None,
        }


@dataclass
class PricedLine:
    unit_price: Money
    quantity: int
    item_id: int | None = None
    product_id: int | None = None
    variant_id: int | None = None
    name: str = ""
    reward_points: int = 0
    requested_quantity: int | None = None
    in_stock: bool = True

    @property
    def line_total(self) -> Money:
        return round_money(D(self.unit_price) * self.quantity)

    def as_api(self):
        return {
            "id": self.item_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "name": self.name,
            "unit_price": to_string_money(self.unit_price),
            "quantity": self.quantity,
            "quantity_adjusted": self.requested_quantity is not None and self.requested_quantity != self.quantity,
            "in_stock": self.in_stock,
            "line_total": to_string_money(self.line_total),
            "reward_points": self.reward_points,
        }


@dataclass
class CartTotals:
    subtotal: Money = ZERO
    discount: Money = ZERO
    shipping: Money = ZERO
    gift_card: Money = ZERO
    total: Money = ZERO
    free_shipping: bool = False
    item_count: int = 0
    lines: list = field(default_factory=list)

    def as_api(self):
        return {
            "item_count": self.item_count,
            "subtotal": to_string_money(self.subtotal),
            "discount": to_string_money(self.discount),
            "shipping": to_string_money(self.shipping),
            "free_shipping": self.free_shipping,
            "gift_card": to_string_money(self.gift_card),
            "total": to_string_money(self.total),
        }


def aggregate(lines, shipping_rule: ShippingRule, coupon=None, gift_card_balance=None) -> CartTotals:
    """
    subtotal -> shipping (threshold on subtotal) -> coupon -> gift card.
    `coupon` is a valid CouponValidation or None.
    """
    lines = list(lines)
    subtotal = round_money(sum((ln.line_total for ln in lines), ZERO))
    shipping = shipping_rule.cost_for(subtotal) if lines else ZERO

    discount = ZERO
    free_shipping = False
    if coupon is not None and coupon.is_valid:
        discount = min(D(coupon.discount_amount), subtotal)
        if coupon.free_shipping:
            free_shipping = True
            shipping = ZERO

    due = round_money(max(ZERO, subtotal - discount + shipping))
    gift = ZERO
    if gift_card_balance is not None:
        gift = round_money(max(ZERO, min(D(gift_card_balance), due)))

    return CartTotals(
        subtotal=subtotal,
        discount=round_money(discount),
        shipping=round_money(shipping),
        gift_card=gift,
        total=round_money(max(ZERO, due - gift)),
        free_shipping=free_shipping,
        item_count=sum(ln.quantity for ln in lines),
        lines=lines,
    )


# ---- cart lookup ------------------------------------------------------------

def get_or_create_cart(tenant_id: int, cart_uuid: str | None) -> Cart:
    cart = None
    if cart_uuid:
        cart = Cart.query.filter_by(tenant_id=tenant_id, uuid=cart_uuid, status="active").first()
    if not cart:
        cart = Cart(tenant_id=tenant_id, status="active", customer_type="b2c")
        db.session.add(cart)
        db.session.commit()
    return cart


def default_shipping_rule() -> ShippingRule:
    cfg = current_app.config
    return ShippingRule(
        flat_fee=D(cfg.get("SHIPPING_FLAT_FEE", "15.90")),
        free_above=opt_D(cfg.get("SHIPPING_FREE_THRESHOLD", "199.00")),
    )


def _rule_from_method(m: ShippingMethod) -> ShippingRule:
    return ShippingRule(flat_fee=D(m.flat_fee), free_above=opt_D(m.free_above), name=m.name, method_id=m.id)


def shipping_rule_for(cart: Cart) -> ShippingRule:
    m = cart.shipping_method
    if m is not None and m.is_active:
        return _rule_from_method(m)
    m = ShippingMethod.query.filter_by(tenant_id=cart.tenant_id, is_active=True, is_default=True).first()
    if m is not None:
        return _rule_from_method(m)
    return default_shipping_rule()


# ---- pricing a cart ---------------------------------------------------------

def price_lines(cart: Cart, now: datetime | None = None) -> list[PricedLine]:
    now = now or utcnow()
    lines = []
    held = {}  # stock bucket -> units already priced on earlier lines
    for it in cart.items:
        p = it.product
        key = stock_bucket(p, it.variant)
        stock = available_stock(p, it.variant) - held.get(key, 0)
        qty = clamp_quantity(it.quantity, stock, p.has_unlimited_stock)
        held[key] = held.get(key, 0) + qty
        name = p.name if it.variant is None else f"{p.name} - {it.variant.name}"
        lines.append(PricedLine(
            item_id=it.id,
            product_id=p.id,
            variant_id=it.variant_id,
            name=name,
            unit_price=resolve_unit_price(p, cart.customer_type, now, it.variant),
            quantity=qty,
            requested_quantity=it.quantity,
            in_stock=bool(p.is_active) and (p.has_unlimited_stock or stock >= it.quantity),
            reward_points=reward_points_for(p, cart.customer_type, qty),
        ))
    return lines


def compute(cart: Cart, now: datetime | None = None):
    """Price the cart. Returns (totals, coupon_validation | None, gift_card | None, gift_card_error | None)."""
    now = now or utcnow()
    lines = price_lines(cart, now)
    rule = shipping_rule_for(cart)
    draft = aggregate(lines, rule)

    validation = None
    if cart.coupon_code:
        validation = coupon_service.validate_coupon(
            cart.tenant_id,
            cart.coupon_code,
            draft.subtotal,
            product_ids=[ln.product_id for ln in lines],
            customer_id=cart.customer_id,
            shipping_cost=draft.shipping,
            now=now,
        )

    gift_card, gift_error = None, None
    if cart.gift_card_code:
        try:
            gift_card = gift_card_service.validate_gift_card(cart.tenant_id, cart.gift_card_code, now=now)
        except ServiceError as e:
            gift_error = e.message

    totals = aggregate(
        lines,
        rule,
        coupon=validation,
        gift_card_balance=D(gift_card.current_balance) if gift_card else None,
    )
    return totals, validation, gift_card, gift_error


def cart_api(cart: Cart, now: datetime | None = None) -> dict:
    totals, validation, gift_card, gift_error = compute(cart, now)
    coupon = None
    if cart.coupon_code:
        coupon = {"code": cart.coupon_code, "applied": bool(validation and validation.is_valid)}
        if validation and validation.is_valid:
            coupon.update(type=validation.coupon.ctype, discount=to_string_money(validation.discount_amount),
                          free_shipping=validation.free_shipping,
                          shipping_discount=to_string_money(validation.shipping_discount))
        elif validation:
            coupon.update(error=validation.error, error_code=validation.error_code)
    gift = None
    if cart.gift_card_code:
        gift = {"code": cart.gift_card_code, "applied": gift_card is not None,
                "amount": to_string_money(totals.gift_card)}
        if gift_error:
            gift["error"] = gift_error
    return {
        "id": cart.id,
        "uuid": cart.uuid,
        "status": cart.status,
        "customer_type": cart.customer_type,
        "customer_id": cart.customer_id,
        "items": [ln.as_api() for ln in totals.lines],
        "totals": totals.as_api(),
        "shipping_method": shipping_rule_for(cart).as_api(),
        "coupon": coupon,
        "gift_card": gift,
        "reward_points": sum(ln.reward_points for ln in totals.lines),
    }


# ---- mutations --------------------------------------------------------------

def _load_product(tenant_id: int, product_id, variant_id=None):
    product = db.session.get(Product, product_id) if product_id else None
    if not product or product.tenant_id != tenant_id or not product.is_active:
        raise NotFound("product not found or inactive", code="product_not_found")
    variant = None
    if variant_id:
        variant = db.session.get(ProductVariant, variant_id)
        if not variant or variant.product_id != product.id:
            raise NotFound("variant not found for this product", code="variant_not_found")
    return product, variant


def _parse_qty(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ServiceError("quantity must be an integer")


def _stock_left(cart: Cart, product: Product, variant, item: CartItem | None = None) -> int:
    """Stock for this line once the cart's other lines on the same counter are served."""
    key = stock_bucket(product, variant)
    held = sum(
        i.quantity for i in cart.items
        if i is not item and stock_bucket(i.product, i.variant) == key
    )
    return available_stock(product, variant) - held


def add_item(cart: Cart, product_id, quantity=1, variant_id=None) -> CartItem:
    qty = _parse_qty(quantity if quantity is not None else 1)
    if qty < 1:
        raise ServiceError("quantity must be >= 1")
    product, variant = _load_product(cart.tenant_id, product_id, variant_id)

    item = cart.find_item(product.id, variant.id if variant else None)
    stock = _stock_left(cart, product, variant, item)
    if not product.has_unlimited_stock and stock <= 0:
        raise Conflict("out of stock", code="out_of_stock")

    if item:
        item.quantity = clamp_quantity(item.quantity + qty, stock, product.has_unlimited_stock)
    else:
        item = CartItem(
            product_id=product.id,
            variant_id=variant.id if variant else None,
            quantity=clamp_quantity(qty, stock, product.has_unlimited_stock),
        )
        cart.items.append(item)
    db.session.commit()
    return item


def _find_item(cart: Cart, item_id: int) -> CartItem:
    item = next((i for i in cart.items if i.id == item_id), None)
    if not item:
        raise NotFound("item not found in this cart", code="item_not_found")
    return item


def update_item(cart: Cart, item_id: int, quantity) -> CartItem:
    item = _find_item(cart, item_id)
    qty = _parse_qty(quantity)
    stock = _stock_left(cart, item.product, item.variant, item)
    item.quantity = clamp_quantity(qty, stock, item.product.has_unlimited_stock)
    db.session.commit()
    return item


def remove_item(cart: Cart, item_id: int):
    item = _find_item(cart, item_id)
    cart.items.remove(item)
    db.session.commit()


def clear_items(cart: Cart):
    # cascade="all, delete-orphan" deletes the rows
    cart.items.clear()
    db.session.commit()


def abandon(cart: Cart) -> Cart:
    cart.status = "abandoned"
    db.session.commit()
    return get_or_create_cart(cart.tenant_id, None)


def set_customer(cart: Cart, customer_type=None, customer_id=None):
    if customer_id is not None:
        customer = db.session.get(Customer, customer_id)
        if not customer or customer.tenant_id != cart.tenant_id:
            raise NotFound("customer not found", code="customer_not_found")
        cart.customer_id = customer.id
        cart.customer_type = customer.customer_type
    if customer_type is not None:
        cart.customer_type = normalize_customer_type(customer_type)
    db.session.commit()


def apply_coupon(cart: Cart, code: str, now: datetime | None = None):
    code = (code or "").strip()
    if not code:
        raise ServiceError("code is required")
    if not cart.items:
        raise ServiceError("cart is empty", code="empty_cart")
    now = now or utcnow()
    lines = price_lines(cart, now)
    draft = aggregate(lines, shipping_rule_for(cart))
    result = coupon_service.validate_coupon(
        cart.tenant_id, code, draft.subtotal,
        product_ids=[ln.product_id for ln in lines],
        customer_id=cart.customer_id,
        shipping_cost=draft.shipping,
        now=now,
    )
    if not result.is_valid:
        raise ServiceError(result.error, code=result.error_code)
    # one coupon per cart; a new code replaces the previous one
    cart.coupon_code = result.coupon.code
    db.session.commit()
    return result


def remove_coupon(cart: Cart):
    cart.coupon_code = None
    db.session.commit()


def apply_gift_card(cart: Cart, code: str):
    gc = gift_card_service.validate_gift_card(cart.tenant_id, code)
    cart.gift_card_code = gc.code
    db.session.commit()
    return gc


def remove_gift_card(cart: Cart):
    cart.gift_card_code = None
    db.session.commit()


def set_shipping_method(cart: Cart, method_id):
    if method_id is None:
        cart.shipping_method_id = None
    else:
        m = db.session.get(ShippingMethod, method_id)
        if not m or m.tenant_id != cart.tenant_id or not m.is_active:
            raise NotFound("shipping method not found", code="shipping_method_not_found")
        cart.shipping_method_id = m.id
    db.session.commit()
    db.session.refresh(cart)
