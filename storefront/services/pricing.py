# storefront/services/pricing.py
"""
Unit price resolution.

A product carries a base price, optional B2B/B2C price lists and an optional
promotional price bounded by a start/end window. The effective unit price is
picked in that order and then shifted by the chosen variant's adjustment.
"""
from __future__ import annotations

from datetime import datetime

from ..utils.dates import utcnow
from ..utils.errors import ServiceError
from ..utils.money import D, ZERO, Money, opt_D, round_money

CUSTOMER_TYPES = ("b2c", "b2b")
INSTALLMENTS = 12


def normalize_customer_type(value) -> str:
    ctype = (value or "b2c").strip().lower()
    if ctype not in CUSTOMER_TYPES:
        raise ServiceError("customer_type must be 'b2c' or 'b2b'", code="invalid_customer_type")
    return ctype


def base_price(product, customer_type: str = "b2c") -> Money:
    if customer_type == "b2b" and product.price_b2b is not None:
        return D(product.price_b2b)
    if customer_type == "b2c" and product.price_b2c is not None:
        return D(product.price_b2c)
    return D(product.price)


def promotion_active(product, now: datetime | None = None) -> bool:
    if opt_D(product.promotional_price) is None:
        return False
    start, end = product.promotional_start_date, product.promotional_end_date
    if start is None or end is None:
        return False
    now = now or utcnow()
    return start <= now <= end


def resolve_unit_price(product, customer_type: str = "b2c", now: datetime | None = None, variant=None) -> Money:
    price = base_price(product, customer_type)
    if promotion_active(product, now):
        price = D(product.promotional_price)
    if variant is not None:
        price += D(variant.price_adjustment)
    if price < ZERO:
        price = ZERO
    return round_money(price)


def reward_points_for(product, customer_type: str = "b2c", quantity: int = 1) -> int:
    per_unit = product.reward_points_b2b if customer_type == "b2b" else product.reward_points_b2c
    return int(per_unit or 0) * int(quantity)


def clamp_quantity(requested, stock, unlimited: bool = False) -> int:
    """Keep a cart quantity inside [1, stock]; unlimited stock only floors at 1."""
    try:
        qty = int(requested)
    except (TypeError, ValueError):
        qty = 1
    if not unlimited:
        qty = min(qty, int(stock or 0))
    return max(qty, 1)


def available_stock(product, variant=None) -> int:
    if variant is not None and variant.stock is not None:
        return int(variant.stock)
    return int(product.stock or 0)


def stock_bucket(product, variant=None) -> tuple[str, int]:
    """Which stock counter a line draws on: its variant's own, else the product's."""
    if variant is not None and variant.stock is not None:
        return "variant", variant.id
    return "product", product.id


def price_breakdown(product, customer_type: str = "b2c", now: datetime | None = None, variant=None) -> dict:
    """Everything a product page shows about a price."""
    now = now or utcnow()
    unit = resolve_unit_price(product, customer_type, now, variant)
    base = round_money(base_price(product, customer_type))
    on_promo = promotion_active(product, now)

    # reference price for the "de/por" display: compare-at wins, else the base price under a promo
    reference = opt_D(product.compare_at_price)
    if reference is None and on_promo:
        reference = base
    if reference is not None and variant is not None:
        reference += D(variant.price_adjustment)

    savings = ZERO
    discount_percent = 0
    if reference is not None and reference > unit:
        savings = round_money(reference - unit)
        discount_percent = int((savings * 100 / reference).to_integral_value())

    return {
        "customer_type": customer_type,
        "base_price": str(base),
        "unit_price": str(unit),
        "compare_at_price": str(round_money(reference)) if reference is not None else None,
        "savings": str(savings),
        "discount_percent": discount_percent,
        "on_promotion": on_promo,
        "promotion_ends_at": product.promotional_end_date.isoformat() if on_promo else None,
        "installments": {
            "count": INSTALLMENTS,
            "value": str(round_money(unit / INSTALLMENTS)),
        },
        "reward_points": reward_points_for(product, customer_type),
    }
