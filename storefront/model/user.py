# --- storefront/model/user.py ---

from ..extensions import db


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False, default="")
    role = db.Column(db.String(50), nullable=False, default="user", index=True)  # user, manager, admin

    tenant = db.relationship("Tenant", lazy="joined")

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "tenant": self.tenant.as_public() if self.tenant else None,
        }
