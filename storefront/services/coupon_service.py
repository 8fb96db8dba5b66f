# storefront/services/coupon_service.py
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..model import COUPON_TYPES, Coupon, CouponUsage, Order, Product
from ..utils.dates import parse_iso8601, utcnow
from ..utils.errors import Conflict, NotFound, ServiceError
from ..utils.money import D, ZERO, Money, opt_D, round_money, to_string_money

log = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class CouponValidation:
    is_valid: bool
    coupon: Coupon | None = None
    discount_amount: Money = ZERO
    final_amount: Money = ZERO
    free_shipping: bool = False
    error: str | None = None
    error_code: str | None = None
    shipping_discount: Money = ZERO

    def as_api(self):
        if not self.is_valid:
            return {"isValid": False, "error": self.error, "error_code": self.error_code}
        c = self.coupon
        return {
            "isValid": True,
            "coupon": {
                "id": c.id,
                "code": c.code,
                "name": c.name,
                "type": c.ctype,
                "value": to_string_money(c.value),
                "discountAmount": to_string_money(self.discount_amount),
                "finalAmount": to_string_money(self.final_amount),
                "freeShipping": self.free_shipping,
                "shippingDiscount": to_string_money(self.shipping_discount),
            },
        }


def _invalid(code, message, coupon=None) -> CouponValidation:
    log.info("coupon rejected: %s (%s)", code, coupon.code if coupon else "-")
    return CouponValidation(is_valid=False, coupon=coupon, error=message, error_code=code)


def find_coupon(tenant_id: int, code: str) -> Coupon | None:
    code = (code or "").strip()
    if not code:
        return None
    return Coupon.query.filter_by(tenant_id=tenant_id, code=code).first()


def lock_coupon(tenant_id: int, code: str) -> Coupon | None:
    """SELECT ... FOR UPDATE the coupon and refresh it; held until the transaction ends."""
    code = (code or "").strip()
    if not code:
        return None
    return (
        Coupon.query.filter_by(tenant_id=tenant_id, code=code)
        .with_for_update()
        .populate_existing()
        .first()
    )


def compute_discount(coupon: Coupon, order_total: Money) -> tuple[Money, bool]:
    """Returns (merchandise discount, free_shipping)."""
    order_total = D(order_total)
    if coupon.ctype == "free_shipping":
        return ZERO, True
    if coupon.ctype == "percentage":
        amount = order_total * D(coupon.value) / D(100)
        cap = opt_D(coupon.maximum_discount_amount)
        if cap is not None and amount > cap:
            amount = cap
    else:
        amount = D(coupon.value)
    # never more than the order itself
    amount = min(amount, order_total)
    return round_money(max(amount, ZERO)), False


def _product_categories(tenant_id: int, product_ids) -> set[int]:
    rows = (
        db.session.query(Product.category_id)
        .filter(Product.tenant_id == tenant_id, Product.id.in_(list(product_ids)))
        .all()
    )
    return {cid for (cid,) in rows if cid is not None}


def validate_coupon(
    tenant_id: int,
    code: str,
    order_total,
    product_ids=(),
    customer_id: int | None = None,
    shipping_cost=ZERO,
    now: datetime | None = None,
) -> CouponValidation:
    """
    Check a coupon code against an order. Rules run in this order and the
    first failure decides the error: existence, validity window, usage
    counts, customer rules, minimum order, product and category restrictions.
    """
    now = now or utcnow()
    order_total = D(order_total)
    product_ids = {int(p) for p in (product_ids or [])}

    coupon = find_coupon(tenant_id, code)
    if not coupon or not coupon.is_active:
        return _invalid("not_found", "Invalid or unknown coupon")

    if now < coupon.start_date:
        return _invalid("not_started", "Coupon is not valid yet", coupon)
    if coupon.end_date and now > coupon.end_date:
        return _invalid("expired", "Coupon has expired", coupon)

    if coupon.usage_limit and (coupon.usage_count or 0) >= coupon.usage_limit:
        return _invalid("exhausted", "Coupon usage limit reached", coupon)

    if customer_id and coupon.usage_limit_per_customer:
        used = CouponUsage.query.filter_by(coupon_id=coupon.id, customer_id=customer_id).count()
        if used >= coupon.usage_limit_per_customer:
            return _invalid("customer_limit", "Coupon usage limit per customer reached", coupon)

    if customer_id and coupon.is_first_order_only:
        placed = Order.query.filter(Order.customer_id == customer_id, Order.status != "cancelled").count()
        if placed > 0:
            return _invalid("first_order_only", "Coupon is valid for first purchases only", coupon)

    minimum = opt_D(coupon.minimum_order_value)
    if minimum is not None and order_total < minimum:
        return _invalid("minimum_order", f"Minimum order of {to_string_money(minimum)} required for this coupon", coupon)

    if product_ids:
        applicable = set(coupon.applicable_products or [])
        if applicable and not (product_ids & applicable):
            return _invalid("product_not_applicable", "Coupon is not valid for the selected products", coupon)
        if product_ids & set(coupon.excluded_products or []):
            return _invalid("product_excluded", "Coupon is not valid for some products in the cart", coupon)

        applicable_cats = set(coupon.applicable_categories or [])
        excluded_cats = set(coupon.excluded_categories or [])
        if applicable_cats or excluded_cats:
            cats = _product_categories(tenant_id, product_ids)
            if applicable_cats and not (cats & applicable_cats):
                return _invalid("category_not_applicable", "Coupon is not valid for the categories of the selected products", coupon)
            if cats & excluded_cats:
                return _invalid("category_excluded", "Coupon is not valid for some categories in the cart", coupon)

    discount, free_shipping = compute_discount(coupon, order_total)
    return CouponValidation(
        is_valid=True,
        coupon=coupon,
        discount_amount=discount,
        final_amount=round_money(order_total - discount),
        free_shipping=free_shipping,
        # shipping the coupon waives; not part of discount_amount
        shipping_discount=round_money(shipping_cost) if free_shipping else ZERO,
    )


# ---- admin ------------------------------------------------------------------

def generate_code(length: int = 8) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _id_list(value, field_name):
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ServiceError(f"{field_name} must be a list of ids")
    try:
        return sorted({int(v) for v in value})
    except (TypeError, ValueError):
        raise ServiceError(f"{field_name} must be a list of ids")


def _opt_positive_int(value, field_name):
    if value is None or value == "":
        return None
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ServiceError(f"{field_name} must be an integer")
    if n < 1:
        raise ServiceError(f"{field_name} must be >= 1")
    return n


def _opt_money(value, field_name):
    try:
        m = opt_D(value)
    except ValueError:
        raise ServiceError(f"{field_name} must be numeric")
    if m is not None and m < 0:
        raise ServiceError(f"{field_name} must be >= 0")
    return m


def _parse_date(data, key, required=False):
    raw = data.get(key)
    if not raw:
        if required:
            raise ServiceError(f"{key} is required")
        return None
    dt = parse_iso8601(raw)
    if dt is None:
        raise ServiceError(f"Invalid datetime format for {key}")
    return dt


def _code_taken(tenant_id, code, exclude_id=None) -> bool:
    q = Coupon.query.filter(Coupon.tenant_id == tenant_id, Coupon.code == code)
    if exclude_id is not None:
        q = q.filter(Coupon.id != exclude_id)
    return db.session.query(q.exists()).scalar()


def _apply_payload(coupon: Coupon, data: dict, partial: bool):
    def has(key):
        return key in data or not partial

    if has("name"):
        name = (data.get("name") or "").strip()
        if not name:
            raise ServiceError("name is required")
        coupon.name = name
    if "description" in data:
        coupon.description = data.get("description")
    if has("type"):
        ctype = (data.get("type") or "").strip().lower()
        if ctype not in COUPON_TYPES:
            raise ServiceError(f"type must be one of {', '.join(COUPON_TYPES)}")
        coupon.ctype = ctype
    if has("value"):
        value = _opt_money(data.get("value"), "value")
        coupon.value = value if value is not None else ZERO
    if coupon.ctype == "percentage" and D(coupon.value) > 100:
        raise ServiceError("Percentage value cannot exceed 100%")

    for key in ("minimum_order_value", "maximum_discount_amount"):
        if key in data:
            setattr(coupon, key, _opt_money(data.get(key), key))
    for key in ("usage_limit", "usage_limit_per_customer"):
        if key in data:
            setattr(coupon, key, _opt_positive_int(data.get(key), key))
    for key in ("applicable_products", "excluded_products", "applicable_categories", "excluded_categories"):
        if key in data or getattr(coupon, key) is None:
            setattr(coupon, key, _id_list(data.get(key), key))
    for key in ("is_active", "is_first_order_only"):
        if key in data:
            setattr(coupon, key, bool(data.get(key)))

    if has("start_date"):
        coupon.start_date = _parse_date(data, "start_date") or coupon.start_date or utcnow()
    if "end_date" in data:
        coupon.end_date = _parse_date(data, "end_date")
    if coupon.end_date and coupon.end_date <= coupon.start_date:
        raise ServiceError("End date must be after start date")


def create_coupon(tenant_id: int, data: dict, created_by: int | None = None) -> Coupon:
    code = (data.get("code") or "").strip() or generate_code()
    if _code_taken(tenant_id, code):
        raise Conflict("Coupon code already exists", code="duplicate_code")

    c = Coupon(tenant_id=tenant_id, code=code, created_by=created_by, usage_count=0)
    _apply_payload(c, data, partial=False)
    db.session.add(c)
    db.session.commit()
    log.info("coupon %s created for tenant %s", c.code, tenant_id)
    return c


def update_coupon(coupon: Coupon, data: dict) -> Coupon:
    if "code" in data:
        code = (data.get("code") or "").strip()
        if not code:
            raise ServiceError("code cannot be empty")
        if code != coupon.code and _code_taken(coupon.tenant_id, code, exclude_id=coupon.id):
            raise Conflict("Coupon code already exists", code="duplicate_code")
        coupon.code = code
    _apply_payload(coupon, data, partial=True)
    db.session.commit()
    return coupon


def get_coupon(tenant_id: int, coupon_id: int) -> Coupon:
    c = Coupon.query.filter_by(tenant_id=tenant_id, id=coupon_id).first()
    if not c:
        raise NotFound("Coupon not found")
    return c


def delete_coupon(coupon: Coupon):
    if coupon.usages.count() > 0:
        raise ServiceError(
            "Cannot delete coupon that has been used. Deactivate it instead.",
            code="coupon_in_use",
        )
    db.session.delete(coupon)
    db.session.commit()


def bulk_create(tenant_id: int, count: int, template: dict, created_by: int | None = None) -> list[Coupon]:
    if count < 1 or count > 500:
        raise ServiceError("count must be between 1 and 500")
    created = []
    for _ in range(count):
        code = generate_code()
        while _code_taken(tenant_id, code) or any(c.code == code for c in created):
            code = generate_code()
        c = Coupon(tenant_id=tenant_id, code=code, created_by=created_by, usage_count=0)
        _apply_payload(c, template, partial=False)
        db.session.add(c)
        created.append(c)
    db.session.commit()
    return created


def record_usage(coupon: Coupon, order_id, customer_id, discount_amount, original_amount) -> CouponUsage:
    """Store one redemption and bump the counter. Caller commits."""
    usage = CouponUsage(
        coupon_id=coupon.id,
        order_id=order_id,
        customer_id=customer_id,
        discount_amount=round_money(discount_amount),
        original_amount=round_money(original_amount),
        final_amount=round_money(D(original_amount) - D(discount_amount)),
    )
    # conditional bump: a concurrent redemption that took the last use leaves no row to update
    q = Coupon.query.filter(Coupon.id == coupon.id)
    if coupon.usage_limit:
        q = q.filter(Coupon.usage_count < coupon.usage_limit)
    if q.update({Coupon.usage_count: Coupon.usage_count + 1}, synchronize_session="fetch") == 0:
        raise Conflict("Coupon usage limit reached", code="exhausted")
    db.session.add(usage)
    return usage


def coupon_stats(coupon: Coupon) -> dict:
    count, total_discount, total_original, avg_discount = (
        db.session.query(
            func.count(CouponUsage.id),
            func.sum(CouponUsage.discount_amount),
            func.sum(CouponUsage.original_amount),
            func.avg(CouponUsage.discount_amount),
        )
        .filter(CouponUsage.coupon_id == coupon.id)
        .one()
    )
    unique_customers = (
        db.session.query(func.count(func.distinct(CouponUsage.customer_id)))
        .filter(CouponUsage.coupon_id == coupon.id)
        .scalar()
    )
    usage_rate = None
    if coupon.usage_limit:
        usage_rate = round((coupon.usage_count or 0) / coupon.usage_limit * 100, 2)
    return {
        "total_usages": count or 0,
        "total_discount_given": to_string_money(total_discount or 0),
        "total_order_value": to_string_money(total_original or 0),
        "average_discount": to_string_money(avg_discount or 0),
        "unique_customers": unique_customers or 0,
        "usage_rate": usage_rate,
    }
