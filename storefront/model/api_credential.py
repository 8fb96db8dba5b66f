# storefront/model/api_credential.py
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import iso

RATE_LIMIT_TIERS = (1000, 5000, 10000)
API_PERMISSIONS = (
    "products:read",
    "products:write",
    "orders:read",
    "customers:read",
    "categories:read",
    "brands:read",
)


class ApiCredential(db.Model):
    __tablename__ = "api_credential"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    name = db.Column(db.String(120), nullable=False)
    api_key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    secret_hash = db.Column(db.String(256), nullable=False)
    permissions = db.Column(db.JSON, nullable=False, default=list)
    rate_limit = db.Column(db.Integer, nullable=False, default=1000)  # requests per hour
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    expires_at = db.Column(db.DateTime, nullable=True)
    last_used_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def allows(self, permission: str) -> bool:
        perms = self.permissions or []
        return "*" in perms or permission in perms

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "api_key": self.api_key,
            "permissions": self.permissions or [],
            "rate_limit": self.rate_limit,
            "is_active": self.is_active,
            "expires_at": iso(self.expires_at),
            "last_used_at": iso(self.last_used_at),
            "created_at": iso(self.created_at),
        }
