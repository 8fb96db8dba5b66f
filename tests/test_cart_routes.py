from datetime import timedelta
from decimal import Decimal

from storefront.model import (
    Cart, Coupon, CouponUsage, Customer, GiftCard, Order, Product, ProductVariant, ShippingMethod,
)
from storefront.services import cart_service, checkout_service
from storefront.utils.dates import utcnow

VALID_CPF = "529.982.247-25"
VALID_CNPJ = "11.222.333/0001-81"


def new_cart(client):
    r = client.post("/api/cart")
    assert r.status_code == 201
    return {"X-Cart-Id": r.headers["X-Cart-Id"]}


def add(client, headers, product_id, quantity=1, **extra):
    body = {"product_id": product_id, "quantity": quantity, **extra}
    return client.post("/api/cart/items", json=body, headers=headers)


def test_cart_is_created_and_reused(client, tenant):
    headers = new_cart(client)
    r = client.get("/api/cart", headers=headers)
    assert r.status_code == 200
    assert r.headers["X-Cart-Id"] == headers["X-Cart-Id"]
    body = r.get_json()
    assert body["status"] is True
    assert body["data"]["items"] == []
    assert body["data"]["totals"]["total"] == "0.00"


def test_promo_line_and_shipping(client, promo_product):
    headers = new_cart(client)
    r = add(client, headers, promo_product.id, 2)
    assert r.status_code == 201
    data = r.get_json()["data"]
    assert data["items"][0]["unit_price"] == "80.00"
    assert data["items"][0]["line_total"] == "160.00"
    assert data["totals"]["subtotal"] == "160.00"
    assert data["totals"]["shipping"] == "15.90"
    assert data["totals"]["total"] == "175.90"


def test_free_shipping_above_threshold(client, make_product):
    p = make_product("Caro", price="199.00")
    headers = new_cart(client)
    totals = add(client, headers, p.id, 1).get_json()["data"]["totals"]
    assert totals["shipping"] == "0.00"
    assert totals["total"] == "199.00"


def test_adding_same_product_merges_and_clamps(client, promo_product):
    headers = new_cart(client)
    add(client, headers, promo_product.id, 3)
    data = add(client, headers, promo_product.id, 4).get_json()["data"]
    assert len(data["items"]) == 1
    assert data["items"][0]["quantity"] == 5  # stock


def test_out_of_stock_is_rejected(client, make_product):
    p = make_product("Esgotado", stock=0)
    headers = new_cart(client)
    r = add(client, headers, p.id, 1)
    assert r.status_code == 409
    assert r.get_json()["error"] == "out_of_stock"


def test_unknown_or_foreign_product(client, tenant, other_tenant, make_product):
    foreign = make_product("Alheio", tenant_id=other_tenant.id)
    headers = new_cart(client)
    assert add(client, headers, 9999).status_code == 404
    assert add(client, headers, foreign.id).get_json()["error"] == "product_not_found"


def test_update_quantity_is_clamped(client, promo_product):
    headers = new_cart(client)
    item_id = add(client, headers, promo_product.id, 2).get_json()["data"]["items"][0]["id"]

    r = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 0}, headers=headers)
    assert r.get_json()["data"]["items"][0]["quantity"] == 1

    r = client.patch(f"/api/cart/items/{item_id}", json={"quantity": 50}, headers=headers)
    assert r.get_json()["data"]["items"][0]["quantity"] == 5

    r = client.patch(f"/api/cart/items/{item_id}", json={}, headers=headers)
    assert r.status_code == 422


def test_unlimited_stock_is_not_clamped(client, make_product):
    p = make_product("Digital", stock=0, has_unlimited_stock=True)
    headers = new_cart(client)
    data = add(client, headers, p.id, 30).get_json()["data"]
    assert data["items"][0]["quantity"] == 30


def test_variant_price_and_stock(client, variant):
    headers = new_cart(client)
    data = add(client, headers, variant.product_id, 5, variant_id=variant.id).get_json()["data"]
    line = data["items"][0]
    assert line["unit_price"] == "215.00"
    assert line["quantity"] == 2  # variant stock


def test_remove_and_clear(client, make_product):
    a = make_product("A")
    b = make_product("B")
    headers = new_cart(client)
    add(client, headers, a.id)
    items = add(client, headers, b.id).get_json()["data"]["items"]

    r = client.delete(f"/api/cart/items/{items[0]['id']}", headers=headers)
    assert [i["product_id"] for i in r.get_json()["data"]["items"]] == [b.id]
    assert client.delete("/api/cart/items/999999", headers=headers).status_code == 404

    r = client.delete("/api/cart/items", headers=headers)
    assert r.get_json()["data"]["items"] == []


def test_abandon_returns_fresh_cart(client, db, make_product):
    p = make_product("A")
    headers = new_cart(client)
    add(client, headers, p.id)
    r = client.delete("/api/cart", headers=headers)
    assert r.status_code == 200
    assert r.headers["X-Cart-Id"] != headers["X-Cart-Id"]
    assert r.get_json()["data"]["items"] == []
    assert Cart.query.filter_by(uuid=headers["X-Cart-Id"]).one().status == "abandoned"


def test_b2b_customer_type_reprices(client, make_product):
    p = make_product("Atacado", price="100.00", price_b2b=Decimal("70.00"))
    headers = new_cart(client)
    add(client, headers, p.id, 1)
    r = client.patch("/api/cart/customer", json={"customer_type": "b2b"}, headers=headers)
    data = r.get_json()["data"]
    assert data["customer_type"] == "b2b"
    assert data["items"][0]["unit_price"] == "70.00"

    r = client.patch("/api/cart/customer", json={"customer_type": "vip"}, headers=headers)
    assert r.status_code == 422


def test_apply_and_remove_coupon(client, promo_product, make_coupon):
    make_coupon("DESC10", "percentage", "10")
    headers = new_cart(client)
    add(client, headers, promo_product.id, 2)

    r = client.post("/api/cart/coupon", json={"code": "DESC10"}, headers=headers)
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["coupon"]["applied"] is True
    assert data["totals"]["discount"] == "16.00"
    assert data["totals"]["total"] == "159.90"

    r = client.delete("/api/cart/coupon", headers=headers)
    assert r.get_json()["data"]["coupon"] is None
    assert r.get_json()["data"]["totals"]["discount"] == "0.00"


def test_invalid_coupon_is_rejected(client, promo_product, make_coupon):
    make_coupon("MIN500", minimum_order_value=Decimal("500.00"))
    headers = new_cart(client)

    r = client.post("/api/cart/coupon", json={"code": "DESC10"}, headers=headers)
    assert r.get_json()["error"] == "empty_cart"

    add(client, headers, promo_product.id, 1)
    r = client.post("/api/cart/coupon", json={"code": "NOPE"}, headers=headers)
    assert r.status_code == 422
    assert r.get_json()["error"] == "not_found"
    r = client.post("/api/cart/coupon", json={"code": "MIN500"}, headers=headers)
    assert r.get_json()["error"] == "minimum_order"


def test_coupon_revalidated_on_read(client, db, promo_product, make_coupon):
    c = make_coupon("DESC10", "percentage", "10")
    headers = new_cart(client)
    add(client, headers, promo_product.id, 2)
    client.post("/api/cart/coupon", json={"code": "DESC10"}, headers=headers)

    c.is_active = False
    db.session.commit()

    data = client.get("/api/cart", headers=headers).get_json()["data"]
    assert data["coupon"]["applied"] is False
    assert data["coupon"]["error_code"] == "not_found"
    assert data["totals"]["discount"] == "0.00"


def test_free_shipping_coupon_in_cart(client, promo_product, make_coupon):
    make_coupon("FRETE", "free_shipping", "0")
    headers = new_cart(client)
    add(client, headers, promo_product.id, 1)
    data = client.post("/api/cart/coupon", json={"code": "FRETE"}, headers=headers).get_json()["data"]
    assert data["totals"]["shipping"] == "0.00"
    assert data["totals"]["free_shipping"] is True
    assert data["totals"]["total"] == "80.00"


def test_gift_card_in_cart(client, promo_product, gift_card):
    headers = new_cart(client)
    add(client, headers, promo_product.id, 1)
    r = client.post("/api/cart/gift-card", json={"code": gift_card.code.lower()}, headers=headers)
    data = r.get_json()["data"]
    assert data["gift_card"]["applied"] is True
    assert data["totals"]["gift_card"] == "50.00"
    assert data["totals"]["total"] == "45.90"

    r = client.post("/api/cart/gift-card", json={"code": "NOPE"}, headers=headers)
    assert r.status_code == 422
    assert r.get_json()["error"] == "gift_card_invalid"


def test_shipping_method_choice(client, db, tenant, promo_product):
    express = ShippingMethod(tenant_id=tenant.id, name="Expresso", flat_fee=Decimal("29.90"))
    db.session.add(express)
    db.session.commit()

    headers = new_cart(client)
    add(client, headers, promo_product.id, 1)
    r = client.patch("/api/cart/shipping-method", json={"shipping_method_id": express.id}, headers=headers)
    data = r.get_json()["data"]
    assert data["shipping_method"]["name"] == "Expresso"
    assert data["totals"]["shipping"] == "29.90"

    r = client.patch("/api/cart/shipping-method", json={"shipping_method_id": None}, headers=headers)
    assert r.get_json()["data"]["totals"]["shipping"] == "15.90"
    assert client.patch("/api/cart/shipping-method", json={"shipping_method_id": 999}, headers=headers).status_code == 404


def checkout_body(**customer):
    data = {"name": "Ana Souza", "email": "ana@example.com", "document": VALID_CPF}
    data.update(customer)
    return {"customer": data, "payment": {"method": "pix"}, "shipping_address": {"city": "São Paulo"}}


def test_checkout_places_order(client, db, make_product, make_coupon, gift_card):
    now = utcnow()
    p = make_product(
        "Garrafa", price="100.00", stock=5, reward_points_b2c=5,
        promotional_price=Decimal("80.00"),
        promotional_start_date=now - timedelta(days=1),
        promotional_end_date=now + timedelta(days=1),
    )
    coupon = make_coupon("DESC10", "percentage", "10")
    headers = new_cart(client)
    add(client, headers, p.id, 2)
    client.post("/api/cart/coupon", json={"code": "DESC10"}, headers=headers)
    client.post("/api/cart/gift-card", json={"code": gift_card.code}, headers=headers)

    r = client.post("/api/cart/checkout", json=checkout_body(), headers=headers)
    assert r.status_code == 201, r.get_json()
    order = r.get_json()["data"]["order"]
    assert order["money"] == {
        "subtotal": "160.00",
        "discount_total": "16.00",
        "shipping_total": "15.90",
        "gift_card_total": "50.00",
        "total": "109.90",
    }
    assert order["coupon_code"] == "DESC10"
    assert order["reward_points"] == 10
    assert order["items"][0]["quantity"] == 2

    assert db.session.get(Product, p.id).stock == 3
    assert db.session.get(GiftCard, gift_card.id).current_balance == Decimal("0.00")
    assert db.session.get(Coupon, coupon.id).usage_count == 1
    assert CouponUsage.query.filter_by(coupon_id=coupon.id).count() == 1
    customer = Customer.query.filter_by(email="ana@example.com").one()
    assert customer.reward_points == 10
    assert customer.document == "52998224725"
    assert Cart.query.filter_by(uuid=headers["X-Cart-Id"]).one().status == "checked_out"

    # the checked-out cart is gone; a fresh one is handed out
    r = client.get("/api/cart", headers=headers)
    assert r.headers["X-Cart-Id"] != headers["X-Cart-Id"]


def test_checkout_validations(client, promo_product):
    headers = new_cart(client)
    r = client.post("/api/cart/checkout", json=checkout_body(), headers=headers)
    assert r.get_json()["error"] == "empty_cart"

    add(client, headers, promo_product.id, 1)
    r = client.post("/api/cart/checkout", json=checkout_body(email="not-an-email"), headers=headers)
    assert r.get_json()["error"] == "invalid_email"
    r = client.post("/api/cart/checkout", json=checkout_body(document="123.456.789-00"), headers=headers)
    assert r.get_json()["error"] == "invalid_document"
    r = client.post("/api/cart/checkout", json=checkout_body(customer_type="b2b", document=""), headers=headers)
    assert r.get_json()["error"] == "invalid_document"
    body = checkout_body()
    body["payment"] = {"method": "cash"}
    assert client.post("/api/cart/checkout", json=body, headers=headers).status_code == 422
    assert Order.query.count() == 0


def test_b2b_checkout_with_cnpj(client, make_product):
    p = make_product("Atacado", price="300.00", price_b2b=Decimal("250.00"), reward_points_b2b=2)
    headers = new_cart(client)
    add(client, headers, p.id, 1)
    body = checkout_body(customer_type="b2b", document=VALID_CNPJ, name="ACME Ltda", email="compras@acme.com")
    order = client.post("/api/cart/checkout", json=body, headers=headers).get_json()["data"]["order"]
    assert order["customer"]["type"] == "b2b"
    assert order["money"]["subtotal"] == "250.00"
    assert order["reward_points"] == 2


def test_checkout_rechecks_stock(client, db, promo_product):
    headers = new_cart(client)
    add(client, headers, promo_product.id, 3)
    promo_product.stock = 1
    db.session.commit()

    r = client.post("/api/cart/checkout", json=checkout_body(), headers=headers)
    assert r.status_code == 409
    assert r.get_json()["error"] == "insufficient_stock"
    assert Order.query.count() == 0
    assert Customer.query.count() == 0


def shared_stock_variants(db, make_product, stock):
    p = make_product("Camiseta", price="50.00", stock=stock)
    azul = ProductVariant(product_id=p.id, name="Azul", stock=None)
    verde = ProductVariant(product_id=p.id, name="Verde", stock=None)
    db.session.add_all([azul, verde])
    db.session.commit()
    return p, azul, verde


def test_variants_without_own_stock_share_the_product_counter(client, db, make_product):
    p, azul, verde = shared_stock_variants(db, make_product, stock=3)
    headers = new_cart(client)
    add(client, headers, p.id, 2, variant_id=azul.id)
    items = add(client, headers, p.id, 2, variant_id=verde.id).get_json()["data"]["items"]
    assert [i["quantity"] for i in items] == [2, 1]

    # a product-level line draws on the same counter
    r = add(client, headers, p.id, 1)
    assert r.status_code == 409
    assert r.get_json()["error"] == "out_of_stock"

    r = client.patch(f"/api/cart/items/{items[1]['id']}", json={"quantity": 5}, headers=headers)
    assert [i["quantity"] for i in r.get_json()["data"]["items"]] == [2, 1]

    r = client.post("/api/cart/checkout", json=checkout_body(), headers=headers)
    assert r.status_code == 201, r.get_json()
    assert db.session.get(Product, p.id).stock == 0


def test_checkout_sums_lines_on_one_stock_counter(client, db, make_product):
    p, azul, verde = shared_stock_variants(db, make_product, stock=4)
    headers = new_cart(client)
    add(client, headers, p.id, 2, variant_id=azul.id)
    add(client, headers, p.id, 2, variant_id=verde.id)
    p.stock = 3
    db.session.commit()

    r = client.post("/api/cart/checkout", json=checkout_body(), headers=headers)
    assert r.status_code == 409
    assert r.get_json()["error"] == "insufficient_stock"
    assert db.session.get(Product, p.id).stock == 3
    assert Order.query.count() == 0


def test_checkout_rechecks_coupon_usage_limit(client, db, promo_product, make_coupon):
    c = make_coupon("UNICO", "percentage", "10", usage_limit=1)
    headers = new_cart(client)
    add(client, headers, promo_product.id, 1)
    assert client.post("/api/cart/coupon", json={"code": "UNICO"}, headers=headers).status_code == 200

    # another order took the last use meanwhile
    c.usage_count = 1
    db.session.commit()

    r = client.post("/api/cart/checkout", json=checkout_body(), headers=headers)
    assert r.status_code == 422
    assert r.get_json()["error"] == "exhausted"
    assert Order.query.count() == 0
    assert db.session.get(Coupon, c.id).usage_count == 1


def test_checkout_uses_current_gift_card_balance(client, db, promo_product, gift_card):
    headers = new_cart(client)
    add(client, headers, promo_product.id, 1)
    client.post("/api/cart/gift-card", json={"code": gift_card.code}, headers=headers)

    gift_card.current_balance = Decimal("10.00")
    db.session.commit()

    order = client.post("/api/cart/checkout", json=checkout_body(), headers=headers).get_json()["data"]["order"]
    assert order["money"]["gift_card_total"] == "10.00"
    assert order["money"]["total"] == "85.90"
    assert db.session.get(GiftCard, gift_card.id).current_balance == Decimal("0.00")


def test_orders_placed_in_the_same_instant_get_distinct_codes(db, tenant, make_product):
    p = make_product("Caneca", stock=10)
    now = utcnow()
    codes = []
    for email in ("a@example.com", "b@example.com"):
        cart = cart_service.get_or_create_cart(tenant.id, None)
        cart_service.add_item(cart, p.id, 1)
        order = checkout_service.checkout(cart, checkout_body(email=email), now=now)
        codes.append(order.code)
    assert codes[0] != codes[1]
    assert all(code.startswith("ORD-" + now.strftime("%Y%m%d-%H%M%S%f") + "-") for code in codes)
