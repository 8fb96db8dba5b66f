# storefront/public/routes.py
from __future__ import annotations

import math

from flask import current_app, request
from sqlalchemy import or_

from . import bp
from ..model import Product, ShippingMethod
from ..services import coupon_service, gift_card_service
from ..services.pricing import (
    normalize_customer_type,
    price_breakdown,
    promotion_active,
    resolve_unit_price,
)
from ..utils.api import ok
from ..utils.dates import utcnow
from ..utils.errors import NotFound, ServiceError
from ..utils.money import D, ZERO, format_brl
from ..utils.params import parse_bool, parse_int, parse_opt_int, parse_opt_money
from ..utils.tenant import current_tenant, tenant_by_subdomain

SORTS = ("name", "price-asc", "price-desc", "newest")


# ---- tenant ----------------------------------------------------------------

@bp.get("/public/tenant/<subdomain>")
def get_tenant(subdomain):
    tenant = tenant_by_subdomain(subdomain)
    return ok("store", {"tenant": tenant.as_public()})


@bp.get("/public/shipping-methods/<subdomain>")
def list_shipping_methods(subdomain):
    tenant = tenant_by_subdomain(subdomain)
    methods = (
        ShippingMethod.query.filter_by(tenant_id=tenant.id, is_active=True)
        .order_by(ShippingMethod.is_default.desc(), ShippingMethod.id.asc())
        .all()
    )
    return ok("shipping methods", {"items": [m.as_api() for m in methods]})


# ---- catalog ---------------------------------------------------------------

def _product_card(p: Product, customer_type, now, variant=None):
    data = p.as_api()
    pricing = price_breakdown(p, customer_type, now, variant)
    pricing["display"] = format_brl(pricing["unit_price"], current_app.config.get("CURRENCY_SYMBOL", "R$"))
    data["pricing"] = pricing
    data["in_stock"] = p.in_stock()
    return data


@bp.get("/public/products/<subdomain>")
def list_products(subdomain):
    """
    Query:
      q, category_id, brand, min_price, max_price, in_stock, promotion,
      sort = name | price-asc | price-desc | newest,
      customer_type = b2c | b2b, page, per_page
    Price filters and sorts use the effective unit price for the customer type.
    """
    tenant = tenant_by_subdomain(subdomain)
    args = request.args
    customer_type = normalize_customer_type(args.get("customer_type"))
    sort = (args.get("sort") or "name").lower()
    if sort not in SORTS:
        raise ServiceError(f"sort must be one of {', '.join(SORTS)}")
    now = utcnow()

    q = Product.query.filter_by(tenant_id=tenant.id, is_active=True)
    text = (args.get("q") or "").strip()
    if text:
        like = f"%{text}%"
        q = q.filter(or_(Product.name.ilike(like), Product.description.ilike(like), Product.sku.ilike(like)))
    category_id = parse_opt_int(args.get("category_id"))
    if category_id:
        q = q.filter(Product.category_id == category_id)
    brand = (args.get("brand") or "").strip()
    if brand:
        q = q.filter(Product.brand.ilike(brand))
    if parse_bool(args.get("in_stock")):
        q = q.filter(or_(Product.has_unlimited_stock.is_(True), Product.stock > 0))

    priced = [(p, resolve_unit_price(p, customer_type, now)) for p in q.all()]

    if parse_bool(args.get("promotion")):
        priced = [(p, u) for p, u in priced if promotion_active(p, now)]
    min_price = parse_opt_money(args.get("min_price"))
    if min_price is not None:
        priced = [(p, u) for p, u in priced if u >= min_price]
    max_price = parse_opt_money(args.get("max_price"))
    if max_price is not None:
        priced = [(p, u) for p, u in priced if u <= max_price]

    if sort == "price-asc":
        priced.sort(key=lambda pu: (pu[1], pu[0].id))
    elif sort == "price-desc":
        priced.sort(key=lambda pu: (-pu[1], pu[0].id))
    elif sort == "newest":
        priced.sort(key=lambda pu: pu[0].id, reverse=True)
    else:
        priced.sort(key=lambda pu: ((pu[0].name or "").lower(), pu[0].id))

    page = max(parse_int(args.get("page"), 1), 1)
    per_page = min(max(parse_int(args.get("per_page"), 24), 1), 100)
    total = len(priced)
    window = priced[(page - 1) * per_page: page * per_page]

    return ok("products", {
        "meta": {
            "page": page,
            "pages": max(math.ceil(total / per_page), 1),
            "per_page": per_page,
            "total": total,
        },
        "customer_type": customer_type,
        "items": [_product_card(p, customer_type, now) for p, _ in window],
    })


@bp.get("/public/products/<subdomain>/<int:product_id>")
def get_product(subdomain, product_id):
    tenant = tenant_by_subdomain(subdomain)
    product = Product.query.filter_by(tenant_id=tenant.id, id=product_id, is_active=True).first()
    if not product:
        raise NotFound("product not found", code="product_not_found")

    customer_type = normalize_customer_type(request.args.get("customer_type"))
    variant = None
    variant_id = parse_opt_int(request.args.get("variant_id"))
    if variant_id:
        variant = next((v for v in product.variants if v.id == variant_id), None)
        if variant is None:
            raise NotFound("variant not found for this product", code="variant_not_found")

    data = _product_card(product, customer_type, utcnow(), variant)
    data["selected_variant"] = variant.as_api() if variant else None
    return ok("product", {"product": data})


# ---- coupons / gift cards --------------------------------------------------

@bp.post("/discount-coupons/validate")
def validate_coupon():
    """
    Body: { "code", "orderTotal", "productIds": [], "customerId", "shippingCost" }
    Always 200; the result carries isValid and the error when rejected.
    """
    tenant = current_tenant()
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip()
    if not code:
        raise ServiceError("code is required")
    try:
        order_total = D(data.get("orderTotal", data.get("order_total")) or 0)
        shipping = D(data.get("shippingCost", data.get("shipping_cost")) or 0)
    except ValueError:
        raise ServiceError("orderTotal must be a number")
    if order_total < ZERO:
        raise ServiceError("orderTotal must be >= 0")

    product_ids = data.get("productIds", data.get("product_ids")) or []
    if not isinstance(product_ids, list):
        raise ServiceError("productIds must be a list")
    if any(isinstance(pid, (bool, float)) for pid in product_ids):
        raise ServiceError("productIds must be a list of integers")
    try:
        product_ids = [int(pid) for pid in product_ids]
    except (TypeError, ValueError):
        raise ServiceError("productIds must be a list of integers")

    result = coupon_service.validate_coupon(
        tenant.id,
        code,
        order_total,
        product_ids=product_ids,
        customer_id=parse_opt_int(data.get("customerId", data.get("customer_id"))),
        shipping_cost=shipping,
    )
    return ok("coupon checked", result.as_api())


@bp.get("/gift-cards/<code>/balance")
def gift_card_balance(code):
    tenant = current_tenant()
    return ok("gift card balance", gift_card_service.check_balance(tenant.id, code))
