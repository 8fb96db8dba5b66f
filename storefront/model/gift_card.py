# storefront/model/gift_card.py
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso
from ..utils.money import money_or_none


class GiftCard(db.Model):
    __tablename__ = "gift_card"
    __table_args__ = (db.UniqueConstraint("tenant_id", "code", name="uq_gift_card_tenant_code"),)

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    code = db.Column(db.String(32), nullable=False, index=True)
    initial_value = db.Column(db.Numeric(12, 2), nullable=False)
    current_balance = db.Column(db.Numeric(12, 2), nullable=False)
    valid_until = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    recipient_email = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, server_default=func.now())
    used_at = db.Column(db.DateTime, nullable=True)

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "initial_value": money_or_none(self.initial_value),
            "current_balance": money_or_none(self.current_balance),
            "valid_until": iso(self.valid_until),
            "is_active": self.is_active,
            "recipient_email": self.recipient_email,
            "created_at": iso(self.created_at),
            "used_at": iso(self.used_at),
        }
