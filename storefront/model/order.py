# storefront/model/order.py
from ..extensions import db
from ..utils.dates import iso, utcnow
from ..utils.money import money_or_none


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), nullable=True, index=True)
    code = db.Column(db.String(40), unique=True, index=True)  # e.g. "ORD-20251022-143001123456-9F3A"
    status = db.Column(db.String(20), default="pending", index=True)  # pending | paid | shipped | cancelled

    # Customer snapshot
    customer_name = db.Column(db.String(180))
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    customer_type = db.Column(db.String(8), default="b2c")
    address_json = db.Column(db.JSON)
    payment_method = db.Column(db.String(20), default="pix")

    # Money snapshot
    subtotal = db.Column(db.Numeric(12, 2))
    discount_total = db.Column(db.Numeric(12, 2))
    shipping_total = db.Column(db.Numeric(12, 2))
    gift_card_total = db.Column(db.Numeric(12, 2))
    total = db.Column(db.Numeric(12, 2))
    coupon_code = db.Column(db.String(64))
    gift_card_code = db.Column(db.String(32))
    shipping_method = db.Column(db.String(120))
    reward_points = db.Column(db.Integer, default=0)

    cart_uuid = db.Column(db.String(36), index=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "status": self.status,
            "customer": {
                "id": self.customer_id,
                "name": self.customer_name,
                "email": self.email,
                "phone": self.phone,
                "type": self.customer_type,
                "address": self.address_json,
            },
            "payment_method": self.payment_method,
            "money": {
                "subtotal": money_or_none(self.subtotal),
                "discount_total": money_or_none(self.discount_total),
                "shipping_total": money_or_none(self.shipping_total),
                "gift_card_total": money_or_none(self.gift_card_total),
                "total": money_or_none(self.total),
            },
            "coupon_code": self.coupon_code,
            "gift_card_code": self.gift_card_code,
            "shipping_method": self.shipping_method,
            "reward_points": self.reward_points,
            "items": [i.as_api() for i in self.items],
            "created_at": iso(self.created_at),
            "cart_uuid": self.cart_uuid,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, index=True)
    variant_id = db.Column(db.Integer, nullable=True)
    name = db.Column(db.String(255))
    unit_price = db.Column(db.Numeric(12, 2))
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(12, 2))

    def as_api(self):
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "name": self.name,
            "unit_price": money_or_none(self.unit_price),
            "quantity": self.quantity,
            "line_total": money_or_none(self.line_total),
        }
