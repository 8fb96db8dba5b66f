from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.config import TestConfig
from storefront.extensions import db as _db
from storefront.model import Category, Coupon, GiftCard, Product, ProductVariant, Tenant, User
from storefront.utils.dates import utcnow


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def tenant(db):
    # "demo" is DEFAULT_STORE, so requests to localhost resolve to it
    t = Tenant(name="Loja Demo", subdomain="demo", category="sports", is_active=True)
    db.session.add(t)
    db.session.commit()
    return t


@pytest.fixture
def other_tenant(db):
    t = Tenant(name="Outra Loja", subdomain="outra", is_active=True)
    db.session.add(t)
    db.session.commit()
    return t


@pytest.fixture
def category(db, tenant):
    c = Category(tenant_id=tenant.id, name="Calçados")
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def make_product(db, tenant):
    def _make(name="Produto", price="100.00", stock=10, **kw):
        p = Product(
            tenant_id=kw.pop("tenant_id", tenant.id),
            name=name,
            slug=name.lower().replace(" ", "-"),
            price=Decimal(price),
            stock=stock,
            has_unlimited_stock=kw.pop("has_unlimited_stock", False),
            is_active=kw.pop("is_active", True),
            reward_points_b2b=kw.pop("reward_points_b2b", 0),
            reward_points_b2c=kw.pop("reward_points_b2c", 0),
            **kw,
        )
        db.session.add(p)
        db.session.commit()
        return p
    return _make


@pytest.fixture
def promo_product(make_product):
    """R$ 100.00 with R$ 80.00 promotion running today."""
    now = utcnow()
    return make_product(
        name="Garrafa",
        price="100.00",
        promotional_price=Decimal("80.00"),
        promotional_start_date=now - timedelta(days=1),
        promotional_end_date=now + timedelta(days=1),
        stock=5,
    )


@pytest.fixture
def variant(db, make_product):
    p = make_product(name="Tenis", price="200.00", stock=10)
    v = ProductVariant(product_id=p.id, name="Tamanho 44", price_adjustment=Decimal("15.00"), stock=2)
    db.session.add(v)
    db.session.commit()
    return v


@pytest.fixture
def make_coupon(db, tenant):
    def _make(code="DESC10", ctype="percentage", value="10", **kw):
        c = Coupon(
            tenant_id=kw.pop("tenant_id", tenant.id),
            code=code,
            name=kw.pop("name", code),
            ctype=ctype,
            value=Decimal(value),
            start_date=kw.pop("start_date", utcnow() - timedelta(days=1)),
            usage_count=kw.pop("usage_count", 0),
            applicable_products=kw.pop("applicable_products", []),
            excluded_products=kw.pop("excluded_products", []),
            applicable_categories=kw.pop("applicable_categories", []),
            excluded_categories=kw.pop("excluded_categories", []),
            is_active=kw.pop("is_active", True),
            **kw,
        )
        db.session.add(c)
        db.session.commit()
        return c
    return _make


@pytest.fixture
def gift_card(db, tenant):
    gc = GiftCard(
        tenant_id=tenant.id,
        code="GIFT-0000-0000-0001",
        initial_value=Decimal("50.00"),
        current_balance=Decimal("50.00"),
        is_active=True,
    )
    db.session.add(gc)
    db.session.commit()
    return gc


@pytest.fixture
def make_user(db, tenant):
    def _make(role="admin", email=None, password="secret123"):
        u = User(
            tenant_id=tenant.id,
            email=email or f"{role}@loja.test",
            name=role.title(),
            password_hash=generate_password_hash(password),
            role=role,
        )
        db.session.add(u)
        db.session.commit()
        return u
    return _make


@pytest.fixture
def auth_headers(make_user):
    def _headers(role="admin"):
        u = make_user(role=role)
        return {"Authorization": f"Bearer {create_access_token(identity=str(u.id))}"}
    return _headers
