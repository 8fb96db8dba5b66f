# --- storefront/model/coupon.py ---

from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso
from ..utils.money import money_or_none

COUPON_TYPES = ("percentage", "fixed_amount", "free_shipping")


class Coupon(db.Model):
    __tablename__ = "coupon"
    # codes are case-sensitive; uniqueness is per store
    __table_args__ = (db.UniqueConstraint("tenant_id", "code", name="uq_coupon_tenant_code"),)

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255))

    ctype = db.Column(db.String(16), nullable=False, default="percentage")
    value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Optional constraints
    minimum_order_value = db.Column(db.Numeric(12, 2), nullable=True)
    maximum_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)
    usage_limit = db.Column(db.Integer, nullable=True)               # global cap
    usage_limit_per_customer = db.Column(db.Integer, nullable=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    applicable_products = db.Column(db.JSON, nullable=False, default=list)
    excluded_products = db.Column(db.JSON, nullable=False, default=list)
    applicable_categories = db.Column(db.JSON, nullable=False, default=list)
    excluded_categories = db.Column(db.JSON, nullable=False, default=list)

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_first_order_only = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    usages = db.relationship("CouponUsage", back_populates="coupon", lazy="dynamic")

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "type": self.ctype,
            "value": money_or_none(self.value),
            "minimum_order_value": money_or_none(self.minimum_order_value),
            "maximum_discount_amount": money_or_none(self.maximum_discount_amount),
            "usage_limit": self.usage_limit,
            "usage_limit_per_customer": self.usage_limit_per_customer,
            "usage_count": self.usage_count,
            "applicable_products": self.applicable_products or [],
            "excluded_products": self.excluded_products or [],
            "applicable_categories": self.applicable_categories or [],
            "excluded_categories": self.excluded_categories or [],
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "is_active": self.is_active,
            "is_first_order_only": self.is_first_order_only,
            "created_at": iso(self.created_at),
        }


class CouponUsage(db.Model):
    __tablename__ = "coupon_usage"

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id", ondelete="CASCADE"), index=True, nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), index=True, nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customer.id"), index=True, nullable=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    original_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    used_at = db.Column(db.DateTime, server_default=func.now())

    coupon = db.relationship("Coupon", back_populates="usages")
