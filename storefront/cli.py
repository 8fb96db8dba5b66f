# storefront/cli.py
from datetime import timedelta

import click
from flask.cli import with_appcontext
import pandas as pd
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import Category, Coupon, Product, ShippingMethod, Tenant, User
from .services import api_auth, catalog_service, coupon_service
from .services.pricing import resolve_unit_price
from .utils.dates import utcnow
from .utils.errors import NotFound
from .utils.money import D, to_string_money
from .utils.tenant import tenant_by_subdomain


def _tenant(store):
    try:
        return tenant_by_subdomain(store)
    except NotFound as e:
        raise click.ClickException(e.message)


@click.command("create-tenant")
@with_appcontext
@click.option("--name", required=True)
@click.option("--subdomain", required=True)
@click.option("--category", default=None)
def create_tenant(name, subdomain, category):
    subdomain = subdomain.strip().lower()
    if Tenant.query.filter_by(subdomain=subdomain).first():
        raise click.ClickException(f"Subdomain '{subdomain}' already taken")
    t = Tenant(name=name, subdomain=subdomain, category=category, is_active=True)
    db.session.add(t); db.session.commit()
    click.echo(f"Tenant created: {t.id} {t.subdomain}")


@click.command("create-admin")
@with_appcontext
@click.option("--store", required=True, help="tenant subdomain")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(store, email, password, name):
    tenant = _tenant(store)
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise click.ClickException("Email already exists")
    u = User(tenant_id=tenant.id, email=email, name=name,
             password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("create-api-credential")
@with_appcontext
@click.option("--store", required=True, help="tenant subdomain")
@click.option("--name", required=True)
@click.option("--permission", "permissions", multiple=True, default=("*",), show_default=True)
@click.option("--rate-limit", type=click.Choice(["1000", "5000", "10000"]), default="1000", show_default=True)
def create_api_credential(store, name, permissions, rate_limit):
    tenant = _tenant(store)
    cred, secret = api_auth.create_credential(tenant.id, {
        "name": name,
        "permissions": list(permissions),
        "rate_limit": int(rate_limit),
    })
    click.echo(f"api_key:    {cred.api_key}")
    click.echo(f"api_secret: {secret}")
    click.echo("Store the secret now, it will not be shown again.")


DEMO_PRODUCTS = [
    # name, brand, category, price, b2b, promo, stock
    ("Tênis Corrida Pro", "Passo", "Calçados", "299.90", "249.90", "259.90", 12),
    ("Camiseta Dry Fit", "Passo", "Vestuário", "79.90", "59.90", None, 40),
    ("Garrafa Térmica 1L", "Frio", "Acessórios", "100.00", "85.00", "80.00", 25),
    ("Meia Cano Alto", "Passo", "Vestuário", "29.90", None, None, 0),
    ("Vale Presente Digital", None, "Acessórios", "50.00", None, None, 0),
]


@click.command("seed-demo")
@with_appcontext
@click.option("--subdomain", default="demo", show_default=True)
def seed_demo(subdomain):
    """Demo store with products, a coupon and a shipping method."""
    subdomain = subdomain.strip().lower()
    if Tenant.query.filter_by(subdomain=subdomain).first():
        raise click.ClickException(f"Store '{subdomain}' already exists")

    now = utcnow()
    t = Tenant(name="Loja Demo", subdomain=subdomain, category="sports", is_active=True)
    db.session.add(t); db.session.flush()

    categories = {}
    for name, brand, cat, price, b2b, promo, stock in DEMO_PRODUCTS:
        if cat not in categories:
            categories[cat] = Category(tenant_id=t.id, name=cat)
            db.session.add(categories[cat]); db.session.flush()
        data = {
            "name": name, "brand": brand, "category_id": categories[cat].id,
            "price": price, "price_b2b": b2b, "stock": stock,
            "reward_points_b2c": 10, "reward_points_b2b": 5,
        }
        if promo:
            data.update(
                promotional_price=promo,
                promotional_start_date=(now - timedelta(days=1)).isoformat(),
                promotional_end_date=(now + timedelta(days=30)).isoformat(),
            )
        if name.startswith("Vale"):
            data["has_unlimited_stock"] = True
        catalog_service.create_product(t.id, data)

    db.session.add(ShippingMethod(tenant_id=t.id, name="Correios PAC", flat_fee=D("15.90"),
                                  free_above=D("199.00"), estimated_days=7, is_default=True))
    db.session.add(ShippingMethod(tenant_id=t.id, name="Expresso", flat_fee=D("29.90"), estimated_days=2))
    db.session.commit()

    coupon_service.create_coupon(t.id, {"code": "BEMVINDO10", "name": "Boas-vindas", "type": "percentage",
                                        "value": "10", "maximum_discount_amount": "50.00"})
    coupon_service.create_coupon(t.id, {"code": "FRETEGRATIS", "name": "Frete grátis", "type": "free_shipping",
                                        "value": "0", "minimum_order_value": "100.00"})
    click.echo(f"Demo store '{subdomain}' seeded: {Product.query.filter_by(tenant_id=t.id).count()} products, "
               f"{Coupon.query.filter_by(tenant_id=t.id).count()} coupons")


@click.command("export-products")
@with_appcontext
@click.option("--store", required=True, help="tenant subdomain")
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False),
              help="target file; .xlsx writes Excel, anything else CSV")
def export_products(store, output):
    tenant = _tenant(store)
    now = utcnow()
    products = Product.query.filter_by(tenant_id=tenant.id).order_by(Product.id.asc()).all()

    df = pd.DataFrame([
        {
            "ID": p.id,
            "SKU": p.sku,
            "Slug": p.slug,
            "Name": p.name,
            "Brand": p.brand,
            "Category": p.category.name if p.category else None,
            "Price": to_string_money(p.price),
            "Price B2B": to_string_money(p.price_b2b) if p.price_b2b is not None else None,
            "Price B2C": to_string_money(p.price_b2c) if p.price_b2c is not None else None,
            "Promotional Price": to_string_money(p.promotional_price) if p.promotional_price is not None else None,
            "Effective Price B2C": to_string_money(resolve_unit_price(p, "b2c", now)),
            "Effective Price B2B": to_string_money(resolve_unit_price(p, "b2b", now)),
            "Stock": p.stock,
            "Unlimited Stock": p.has_unlimited_stock,
            "Active": p.is_active,
        }
        for p in products
    ])

    if output.lower().endswith(".xlsx"):
        df.to_excel(output, index=False)
    else:
        df.to_csv(output, index=False)
    click.echo(f"{len(df)} products exported to {output}")


def register_cli(app):
    app.cli.add_command(create_tenant)
    app.cli.add_command(create_admin)
    app.cli.add_command(create_api_credential)
    app.cli.add_command(seed_demo)
    app.cli.add_command(export_products)
