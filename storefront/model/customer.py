# storefront/model/customer.py
from sqlalchemy.sql import func

from ..extensions import db


class Customer(db.Model):
    __tablename__ = "customer"
    __table_args__ = (db.UniqueConstraint("tenant_id", "email", name="uq_customer_tenant_email"),)

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(180))
    phone = db.Column(db.String(50))
    customer_type = db.Column(db.String(8), nullable=False, default="b2c")  # "b2c" | "b2b"
    document = db.Column(db.String(20))  # CPF (b2c) or CNPJ (b2b), digits only
    reward_points = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "customer_type": self.customer_type,
            "document": self.document,
            "reward_points": self.reward_points,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
