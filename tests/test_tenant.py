import pytest

from storefront.utils.tenant import resolve_subdomain


@pytest.mark.parametrize("host,path,expected", [
    ("loja.example.com", None, "loja"),
    ("LOJA.Example.com:8443", None, "loja"),
    ("www.loja.example.com", None, "loja"),
    ("localhost:5000", None, "demo"),
    ("127.0.0.1", None, "demo"),
    ("minhaloja", None, "minhaloja"),
    ("anything.example.com", "/storefront/acme/produtos", "acme"),
    ("localhost", "/storefront/Acme", "acme"),
    ("[::1]:5000", None, "::1"),
])
def test_resolve_subdomain(host, path, expected):
    assert resolve_subdomain(host, path, default="demo") == expected


def test_dev_hosts_are_configurable():
    assert resolve_subdomain("dev.local", default="demo", dev_hosts=("dev.local",)) == "demo"
    assert resolve_subdomain("dev.local", default="demo") == "dev"


def test_missing_host_uses_default():
    assert resolve_subdomain("", default="demo") == "demo"
    assert resolve_subdomain(None) is None


def test_store_header_wins(client, tenant, other_tenant):
    r = client.get("/api/cart", headers={"X-Store": "outra"})
    assert r.status_code == 200
    cart_id = r.headers["X-Cart-Id"]
    # same cart id is unknown to the demo store, so a new cart comes back
    r2 = client.get("/api/cart", headers={"X-Cart-Id": cart_id})
    assert r2.headers["X-Cart-Id"] != cart_id


def test_unknown_store_is_404(client, tenant):
    r = client.get("/api/cart?store=nope")
    assert r.status_code == 404
    assert r.get_json()["error"] == "tenant_not_found"


def test_public_tenant_endpoint(client, tenant):
    r = client.get("/api/public/tenant/demo")
    assert r.status_code == 200
    assert r.get_json()["data"]["tenant"]["subdomain"] == "demo"
    assert client.get("/api/public/tenant/missing").status_code == 404
