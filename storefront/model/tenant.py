# --- storefront/model/tenant.py ---
from sqlalchemy.sql import func

from ..extensions import db


class Tenant(db.Model):
    __tablename__ = "tenant"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=False)
    subdomain = db.Column(db.String(63), unique=True, nullable=False, index=True)
    category = db.Column(db.String(64))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_public(self):
        return {
            "id": self.id,
            "name": self.name,
            "subdomain": self.subdomain,
            "category": self.category,
        }
