# storefront/public_api/routes.py
"""
Integration API for merchants' own systems (ERPs, marketplaces).

Authorization: Bearer <api_key>:<api_secret>
Every call is scoped to the credential's store and counted against its
hourly rate limit.
"""
from __future__ import annotations

from flask import g, request
from sqlalchemy import or_

from . import bp
from ..extensions import db
from ..model import API_PERMISSIONS, Category, Customer, Order, Product, Tenant
from ..services import catalog_service
from ..utils.api import ok
from ..utils.decorators import api_credential_required
from ..utils.errors import NotFound
from ..utils.params import paginate, parse_opt_int

API_VERSION = "1.0"


def _tenant_id() -> int:
    return g.api_credential.tenant_id


def _page(query):
    return paginate(query, request.args.get("page"), request.args.get("limit"), default_per_page=20)


@bp.get("/info")
@api_credential_required()
def info():
    cred = g.api_credential
    tenant = db.session.get(Tenant, cred.tenant_id)
    return ok("ok", {
        "version": API_VERSION,
        "store": tenant.as_public() if tenant else None,
        "credential": {
            "name": cred.name,
            "permissions": cred.permissions or [],
            "rate_limit": cred.rate_limit,
        },
        "available_permissions": list(API_PERMISSIONS),
    })


# ---- products --------------------------------------------------------------

@bp.get("/products")
@api_credential_required("products:read")
def list_products():
    q = Product.query.filter_by(tenant_id=_tenant_id())
    text = (request.args.get("q") or "").strip()
    if text:
        like = f"%{text}%"
        q = q.filter(or_(Product.name.ilike(like), Product.sku.ilike(like)))
    category_id = parse_opt_int(request.args.get("category_id"))
    if category_id:
        q = q.filter(Product.category_id == category_id)
    page = _page(q.order_by(Product.id.asc()))
    return ok("ok", {"meta": page["meta"], "items": [p.as_api() for p in page["items"]]})


@bp.get("/products/<int:product_id>")
@api_credential_required("products:read")
def get_product(product_id):
    return ok("ok", {"product": catalog_service.get_product(_tenant_id(), product_id).as_api()})


@bp.post("/products")
@api_credential_required("products:write")
def create_product():
    p = catalog_service.create_product(_tenant_id(), request.get_json(silent=True) or {})
    return ok("Product created", {"product": p.as_api()}, status=201)


@bp.put("/products/<int:product_id>")
@bp.patch("/products/<int:product_id>")
@api_credential_required("products:write")
def update_product(product_id):
    p = catalog_service.get_product(_tenant_id(), product_id)
    catalog_service.update_product(p, request.get_json(silent=True) or {})
    return ok("Product updated", {"product": p.as_api()})


@bp.patch("/products/<int:product_id>/stock")
@api_credential_required("products:write")
def update_stock(product_id):
    p = catalog_service.get_product(_tenant_id(), product_id)
    catalog_service.update_stock(p, request.get_json(silent=True) or {})
    return ok("Stock updated", {"id": p.id, "stock": p.stock})


# ---- orders ----------------------------------------------------------------

@bp.get("/orders")
@api_credential_required("orders:read")
def list_orders():
    q = Order.query.filter_by(tenant_id=_tenant_id())
    status = (request.args.get("status") or "").strip().lower()
    if status:
        q = q.filter(Order.status == status)
    page = _page(q.order_by(Order.id.desc()))
    return ok("ok", {"meta": page["meta"], "items": [o.as_api() for o in page["items"]]})


@bp.get("/orders/<int:order_id>")
@api_credential_required("orders:read")
def get_order(order_id):
    o = Order.query.filter_by(tenant_id=_tenant_id(), id=order_id).first()
    if not o:
        raise NotFound("Order not found", code="order_not_found")
    return ok("ok", {"order": o.as_api()})


# ---- customers / categories / brands ---------------------------------------

@bp.get("/customers")
@api_credential_required("customers:read")
def list_customers():
    q = Customer.query.filter_by(tenant_id=_tenant_id())
    text = (request.args.get("q") or "").strip()
    if text:
        like = f"%{text}%"
        q = q.filter(or_(Customer.name.ilike(like), Customer.email.ilike(like)))
    page = _page(q.order_by(Customer.id.asc()))
    return ok("ok", {"meta": page["meta"], "items": [c.as_api() for c in page["items"]]})


@bp.get("/categories")
@api_credential_required("categories:read")
def list_categories():
    cats = Category.query.filter_by(tenant_id=_tenant_id()).order_by(Category.name.asc()).all()
    return ok("ok", {"items": [c.as_dict() for c in cats]})


@bp.get("/brands")
@api_credential_required("brands:read")
def list_brands():
    rows = (
        db.session.query(Product.brand)
        .filter(Product.tenant_id == _tenant_id(), Product.brand.isnot(None), Product.brand != "")
        .distinct()
        .order_by(Product.brand.asc())
        .all()
    )
    return ok("ok", {"items": [r[0] for r in rows]})
