# --- storefront/model/category.py ---
from ..extensions import db


class Category(db.Model):
    __tablename__ = "category"
    __table_args__ = (db.UniqueConstraint("tenant_id", "name", name="uq_category_tenant_name"),)

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenant.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    products = db.relationship("Product", backref="category", lazy=True)

    def as_dict(self):
        return {"id": self.id, "name": self.name}
