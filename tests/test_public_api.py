from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.model import ApiCredential, Category, Customer, Order
from storefront.services import api_auth
from storefront.services.api_auth import FixedWindowRateLimiter
from storefront.utils.dates import utcnow


@pytest.fixture
def credential(tenant):
    def _make(permissions=("*",), rate_limit=1000, **kw):
        cred, secret = api_auth.create_credential(tenant.id, {
            "name": "ERP",
            "permissions": list(permissions),
            "rate_limit": rate_limit,
            **kw,
        })
        return cred, {"Authorization": f"Bearer {cred.api_key}:{secret}"}
    return _make


# ---- authentication --------------------------------------------------------

def test_missing_header(client, tenant):
    r = client.get("/api/public/v1/info")
    assert r.status_code == 401
    assert r.get_json()["error"] == "UNAUTHORIZED"


@pytest.mark.parametrize("header,code", [
    ("Bearer only-a-key", "INVALID_CREDENTIALS"),
    ("Bearer sk_unknown:secret", "INVALID_API_KEY"),
])
def test_bad_credentials(client, tenant, header, code):
    r = client.get("/api/public/v1/info", headers={"Authorization": header})
    assert r.status_code == 401
    assert r.get_json()["error"] == code


def test_wrong_secret(client, credential):
    cred, _ = credential()
    r = client.get("/api/public/v1/info", headers={"Authorization": f"Bearer {cred.api_key}:nope"})
    assert r.get_json()["error"] == "INVALID_SECRET"


def test_expired_and_revoked(client, db, credential):
    cred, headers = credential()
    cred.expires_at = utcnow() - timedelta(minutes=1)
    db.session.commit()
    assert client.get("/api/public/v1/info", headers=headers).get_json()["error"] == "EXPIRED_CREDENTIALS"

    cred.expires_at = None
    cred.is_active = False
    db.session.commit()
    assert client.get("/api/public/v1/info", headers=headers).get_json()["error"] == "INVALID_API_KEY"


def test_info_and_rate_limit_headers(client, db, credential):
    cred, headers = credential(permissions=["products:read"])
    r = client.get("/api/public/v1/info", headers=headers)
    assert r.status_code == 200
    assert r.get_json()["data"]["store"]["subdomain"] == "demo"
    assert r.headers["X-RateLimit-Limit"] == "1000"
    assert r.headers["X-RateLimit-Remaining"] == "999"
    assert int(r.headers["X-RateLimit-Reset"]) > 0
    assert db.session.get(ApiCredential, cred.id).last_used_at is not None


def test_insufficient_permissions(client, credential):
    _, headers = credential(permissions=["products:read"])
    r = client.get("/api/public/v1/orders", headers=headers)
    assert r.status_code == 403
    assert r.get_json()["error"] == "INSUFFICIENT_PERMISSIONS"
    assert "X-RateLimit-Remaining" in r.headers


def test_rate_limit_exceeded(app, client, credential):
    cred, headers = credential()
    limiter = app.extensions["rate_limiter"]
    for _ in range(cred.rate_limit):
        limiter.hit(cred.id, cred.rate_limit)

    r = client.get("/api/public/v1/info", headers=headers)
    assert r.status_code == 429
    assert r.get_json()["error"] == "RATE_LIMIT_EXCEEDED"
    assert r.headers["X-RateLimit-Remaining"] == "0"


def test_fixed_window_resets():
    limiter = FixedWindowRateLimiter(window_seconds=60)
    assert limiter.hit("k", 2, now=0) == (True, 1, 60)
    assert limiter.hit("k", 2, now=10) == (True, 0, 60)
    assert limiter.hit("k", 2, now=59)[0] is False
    assert limiter.hit("k", 2, now=60) == (True, 1, 120)
    assert limiter.hit("other", 2, now=59) == (True, 1, 119)


# ---- resources -------------------------------------------------------------

def test_products_crud_and_stock(client, credential, make_product, other_tenant):
    _, headers = credential(permissions=["products:read", "products:write"])
    foreign = make_product("Alheio", tenant_id=other_tenant.id)

    r = client.post("/api/public/v1/products", json={"name": "Bola Oficial", "price": "149.90", "stock": 10,
                                                     "brand": "Passo", "sku": "BOLA-01"}, headers=headers)
    assert r.status_code == 201
    product = r.get_json()["data"]["product"]
    assert product["slug"] == "bola-oficial"
    assert product["price"] == "149.90"

    r = client.patch(f"/api/public/v1/products/{product['id']}", json={"price_b2b": "120.00"}, headers=headers)
    assert r.get_json()["data"]["product"]["price_b2b"] == "120.00"

    r = client.patch(f"/api/public/v1/products/{product['id']}/stock",
                     json={"stock": 3, "operation": "decrement"}, headers=headers)
    assert r.get_json()["data"]["stock"] == 7

    r = client.get("/api/public/v1/products?q=bola&limit=500", headers=headers)
    data = r.get_json()["data"]
    assert data["meta"]["per_page"] == 100
    assert [p["id"] for p in data["items"]] == [product["id"]]

    r = client.get(f"/api/public/v1/products/{foreign.id}", headers=headers)
    assert r.status_code == 404
    assert "X-RateLimit-Limit" in r.headers


def test_product_validation(client, credential):
    _, headers = credential(permissions=["products:write"])
    r = client.post("/api/public/v1/products", json={"price": "10"}, headers=headers)
    assert r.status_code == 422
    r = client.post("/api/public/v1/products", json={"name": "X", "price": "-1"}, headers=headers)
    assert r.status_code == 422
    r = client.post("/api/public/v1/products", json={"name": "X", "price": "1", "category_id": 99}, headers=headers)
    assert r.status_code == 404


def test_orders_customers_categories_brands(client, db, tenant, credential, make_product):
    _, headers = credential()
    db.session.add_all([
        Order(tenant_id=tenant.id, code="ORD-A", status="paid", total=Decimal("10.00")),
        Order(tenant_id=tenant.id, code="ORD-B", status="pending", total=Decimal("20.00")),
        Customer(tenant_id=tenant.id, email="ana@example.com", name="Ana"),
        Category(tenant_id=tenant.id, name="Bolas"),
    ])
    db.session.commit()
    make_product("A", brand="Passo")
    make_product("B", brand="Frio")
    make_product("C", brand="Passo")
    make_product("D")

    orders = client.get("/api/public/v1/orders?status=pending", headers=headers).get_json()["data"]["items"]
    assert [o["code"] for o in orders] == ["ORD-B"]
    assert client.get("/api/public/v1/orders/999", headers=headers).status_code == 404

    customers = client.get("/api/public/v1/customers", headers=headers).get_json()["data"]["items"]
    assert customers[0]["email"] == "ana@example.com"

    cats = client.get("/api/public/v1/categories", headers=headers).get_json()["data"]["items"]
    assert [c["name"] for c in cats] == ["Bolas"]

    brands = client.get("/api/public/v1/brands", headers=headers).get_json()["data"]["items"]
    assert brands == ["Frio", "Passo"]
