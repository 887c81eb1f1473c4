from __future__ import annotations

from ..extensions import db
from salon_finance.time_utils import to_utc_z

class Product(db.Model):
    """
    Retail product master data (shampoo, styling products, ...).

    Products are company-scoped; stock is held per branch in BranchStock.
    Only products with track_inventory=True have stock decremented on sale.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        db.Index("ix_products_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    price_cents = db.Column(db.Integer, nullable=True)
    cost_cents = db.Column(db.Integer, nullable=True)

    track_inventory = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sku": self.sku,
            "name": self.name,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "track_inventory": self.track_inventory,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class BranchStock(db.Model):
    """On-hand quantity of a product at one branch. Never negative."""
    __tablename__ = "branch_stock"
    __table_args__ = (
        db.UniqueConstraint("product_id", "branch_id", name="uq_branch_stock_product_branch"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product", backref=db.backref("branch_stock", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }

class InventoryMovement(db.Model):
    """
    Append-only stock history.

    MOVEMENT TYPES:
    - receive: stock added
    - sale: stock removed by a completed sale (floored at zero)
    - sale_void: stock returned when a completed sale is voided
    - adjustment: manual correction

    quantity_delta is the change actually applied to BranchStock.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_product_branch", "product_id", "branch_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity_requested = db.Column(db.Integer, nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)

    reference = db.Column(db.String(64), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity_requested": self.quantity_requested,
            "quantity_delta": self.quantity_delta,
            "reference": self.reference,
            "reference_id": self.reference_id,
            "note": self.note,
            "created_by": self.created_by,
            "occurred_at": to_utc_z(self.occurred_at),
        }
