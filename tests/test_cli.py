import pandas as pd

from storefront.model import ApiCredential, Coupon, Product, ShippingMethod, Tenant, User


def test_create_tenant_and_admin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-tenant", "--name", "Loja Nova", "--subdomain", "Nova"])
    assert result.exit_code == 0, result.output
    assert Tenant.query.filter_by(subdomain="nova").one().name == "Loja Nova"

    result = runner.invoke(args=["create-tenant", "--name", "Dup", "--subdomain", "nova"])
    assert result.exit_code != 0
    assert "already taken" in result.output

    result = runner.invoke(args=["create-admin", "--store", "nova", "--email", "Dono@Nova.test",
                                 "--password", "segredo1", "--name", "Dono"])
    assert result.exit_code == 0, result.output
    assert User.query.filter_by(email="dono@nova.test").one().role == "admin"

    result = runner.invoke(args=["create-admin", "--store", "ghost", "--email", "a@b.c",
                                 "--password", "x", "--name", "x"])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_create_api_credential(app, tenant):
    result = app.test_cli_runner().invoke(args=["create-api-credential", "--store", "demo", "--name", "ERP",
                                                "--permission", "products:read", "--rate-limit", "5000"])
    assert result.exit_code == 0, result.output
    assert "api_secret:" in result.output
    cred = ApiCredential.query.one()
    assert cred.permissions == ["products:read"]
    assert cred.rate_limit == 5000


def test_seed_demo_and_export(app, tmp_path):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0, result.output

    tenant = Tenant.query.filter_by(subdomain="demo").one()
    assert Product.query.filter_by(tenant_id=tenant.id).count() == 5
    assert Coupon.query.filter_by(tenant_id=tenant.id).count() == 2
    assert ShippingMethod.query.filter_by(tenant_id=tenant.id, is_default=True).count() == 1

    csv_path = tmp_path / "products.csv"
    result = runner.invoke(args=["export-products", "--store", "demo", "-o", str(csv_path)])
    assert result.exit_code == 0, result.output
    df = pd.read_csv(csv_path)
    assert len(df) == 5
    garrafa = df[df["Name"] == "Garrafa Térmica 1L"].iloc[0]
    assert float(garrafa["Effective Price B2C"]) == 80.0
    assert float(garrafa["Price B2B"]) == 85.0

    xlsx_path = tmp_path / "products.xlsx"
    result = runner.invoke(args=["export-products", "--store", "demo", "-o", str(xlsx_path)])
    assert result.exit_code == 0, result.output
    assert len(pd.read_excel(xlsx_path)) == 5
