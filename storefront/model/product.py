# storefront/model/product.py
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso
from ..utils.money import money_or_none


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    slug = db.Column(db.String(255), index=True)
    sku = db.Column(db.String(64), index=True)
    brand = db.Column(db.String(120), index=True)
    description = db.Column(db.Text)

    # prices
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    price_b2b = db.Column(db.Numeric(12, 2), nullable=True)
    price_b2c = db.Column(db.Numeric(12, 2), nullable=True)
    promotional_price = db.Column(db.Numeric(12, 2), nullable=True)
    promotional_start_date = db.Column(db.DateTime, nullable=True)
    promotional_end_date = db.Column(db.DateTime, nullable=True)
    compare_at_price = db.Column(db.Numeric(12, 2), nullable=True)

    # stock
    stock = db.Column(db.Integer, nullable=False, default=0)
    has_unlimited_stock = db.Column(db.Boolean, nullable=False, default=False)

    reward_points_b2b = db.Column(db.Integer, nullable=False, default=0)
    reward_points_b2c = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    variants = db.relationship(
        "ProductVariant",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductVariant.id.asc()",
    )

    def in_stock(self) -> bool:
        return bool(self.has_unlimited_stock) or int(self.stock or 0) > 0

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "brand": self.brand,
            "description": self.description,
            "category": self.category.as_dict() if self.category else None,
            "price": money_or_none(self.price),
            "price_b2b": money_or_none(self.price_b2b),
            "price_b2c": money_or_none(self.price_b2c),
            "promotional_price": money_or_none(self.promotional_price),
            "promotional_start_date": iso(self.promotional_start_date),
            "promotional_end_date": iso(self.promotional_end_date),
            "compare_at_price": money_or_none(self.compare_at_price),
            "stock": self.stock,
            "has_unlimited_stock": self.has_unlimited_stock,
            "reward_points_b2b": self.reward_points_b2b,
            "reward_points_b2c": self.reward_points_b2c,
            "is_active": self.is_active,
            "variants": [v.as_api() for v in self.variants],
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class ProductVariant(db.Model):
    __tablename__ = "product_variant"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)  # e.g. "Tamanho 42", "Azul"
    sku = db.Column(db.String(64))
    price_adjustment = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=True)  # None -> follows product stock

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price_adjustment": money_or_none(self.price_adjustment),
            "stock": self.stock,
        }
