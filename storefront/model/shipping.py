# storefront/model/shipping.py
from ..extensions import db
from ..utils.money import money_or_none


class ShippingMethod(db.Model):
    __tablename__ = "shipping_method"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    flat_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    free_above = db.Column(db.Numeric(12, 2), nullable=True)  # None -> never free
    estimated_days = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "flat_fee": money_or_none(self.flat_fee),
            "free_above": money_or_none(self.free_above),
            "estimated_days": self.estimated_days,
            "is_active": self.is_active,
            "is_default": self.is_default,
        }
