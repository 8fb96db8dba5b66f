# storefront/services/catalog_service.py
from __future__ import annotations

import re
import unicodedata

from ..extensions import db
from ..model import Category, Product
from ..utils.dates import parse_iso8601
from ..utils.errors import NotFound, ServiceError
from ..utils.money import ZERO, opt_D

MONEY_FIELDS = ("price", "price_b2b", "price_b2c", "promotional_price", "compare_at_price")
STOCK_OPERATIONS = ("set", "increment", "decrement")


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _money(data, key):
    try:
        m = opt_D(data.get(key))
    except ValueError:
        raise ServiceError(f"{key} must be numeric")
    if m is not None and m < ZERO:
        raise ServiceError(f"{key} must be >= 0")
    return m


def _int(data, key, minimum=0):
    try:
        n = int(data.get(key))
    except (TypeError, ValueError):
        raise ServiceError(f"{key} must be an integer")
    if n < minimum:
        raise ServiceError(f"{key} must be >= {minimum}")
    return n


def _apply(p: Product, data: dict, partial: bool):
    if "name" in data or not partial:
        name = (data.get("name") or "").strip()
        if not name:
            raise ServiceError("name is required")
        p.name = name
        if not p.slug or "slug" not in data:
            p.slug = slugify(name)
    if data.get("slug"):
        p.slug = slugify(data["slug"])

    for key in ("sku", "brand", "description"):
        if key in data:
            setattr(p, key, data.get(key))

    if "price" in data or not partial:
        price = _money(data, "price")
        if price is None:
            raise ServiceError("price is required")
        p.price = price
    for key in MONEY_FIELDS[1:]:
        if key in data:
            setattr(p, key, _money(data, key))

    for key in ("promotional_start_date", "promotional_end_date"):
        if key in data:
            raw = data.get(key)
            dt = parse_iso8601(raw) if raw else None
            if raw and dt is None:
                raise ServiceError(f"Invalid datetime format for {key}")
            setattr(p, key, dt)
    if (p.promotional_start_date and p.promotional_end_date
            and p.promotional_end_date < p.promotional_start_date):
        raise ServiceError("promotional_end_date must be after promotional_start_date")

    if "category_id" in data:
        cid = data.get("category_id")
        if cid in (None, ""):
            p.category_id = None
        else:
            cat = Category.query.filter_by(tenant_id=p.tenant_id, id=cid).first()
            if not cat:
                raise NotFound("category not found", code="category_not_found")
            p.category_id = cat.id

    if "stock" in data:
        p.stock = _int(data, "stock")
    for key in ("reward_points_b2b", "reward_points_b2c"):
        if key in data:
            setattr(p, key, _int(data, key))
    for key in ("has_unlimited_stock", "is_active"):
        if key in data:
            setattr(p, key, bool(data.get(key)))


def create_product(tenant_id: int, data: dict) -> Product:
    p = Product(tenant_id=tenant_id, stock=0, has_unlimited_stock=False, is_active=True,
                reward_points_b2b=0, reward_points_b2c=0)
    _apply(p, data, partial=False)
    db.session.add(p)
    db.session.commit()
    return p


def update_product(p: Product, data: dict) -> Product:
    _apply(p, data, partial=True)
    db.session.commit()
    return p


def get_product(tenant_id: int, product_id: int) -> Product:
    p = Product.query.filter_by(tenant_id=tenant_id, id=product_id).first()
    if not p:
        raise NotFound("Product not found", code="product_not_found")
    return p


def update_stock(p: Product, data: dict) -> Product:
    """Body: { "stock": int, "operation": "set" | "increment" | "decrement" }"""
    operation = (data.get("operation") or "set").lower()
    if operation not in STOCK_OPERATIONS:
        raise ServiceError(f"operation must be one of {', '.join(STOCK_OPERATIONS)}")
    amount = _int(data, "stock")
    if operation == "set":
        p.stock = amount
    elif operation == "increment":
        p.stock = int(p.stock or 0) + amount
    else:
        p.stock = max(int(p.stock or 0) - amount, 0)
    db.session.commit()
    return p
