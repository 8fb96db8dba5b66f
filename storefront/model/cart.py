# storefront/model/cart.py
from __future__ import annotations

import uuid as _uuid

from sqlalchemy.sql import func

from ..extensions import db


class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, index=True, default=lambda: str(_uuid.uuid4()))
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=True, index=True)
    customer_type = db.Column(db.String(8), nullable=False, default="b2c")
    status = db.Column(db.String(16), default="active", index=True)  # active | abandoned | checked_out

    # one coupon per cart, kept by code so it is re-validated on every read
    coupon_code = db.Column(db.String(64), nullable=True)
    gift_card_code = db.Column(db.String(32), nullable=True)
    shipping_method_id = db.Column(db.Integer, db.ForeignKey("shipping_method.id"), nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id.asc()",
    )
    customer = db.relationship("Customer", lazy="joined")
    shipping_method = db.relationship("ShippingMethod", lazy="joined")

    def find_item(self, product_id: int, variant_id: int | None = None) -> CartItem | None:
        return next(
            (i for i in self.items if i.product_id == product_id and i.variant_id == variant_id),
            None,
        )


class CartItem(db.Model):
    __tablename__ = "cart_item"

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variant.id"), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")
    variant = db.relationship("ProductVariant", lazy="joined")
