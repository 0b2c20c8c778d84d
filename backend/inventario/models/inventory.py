from __future__ import annotations

from ..extensions import db
from ..validation import format_money
from inventario.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data and on-hand stock.

    MULTI-TENANT: Products are scoped to an inventory via inventory_id.

    QUANTITY DESIGN:
    - quantity is always stored in base units
    - units_per_box is display/entry metadata: (boxes, units) = divmod(quantity, units_per_box)
    - stock changes go through atomic SQL arithmetic (quantity = quantity - :n),
      never a value computed in Python and written back
    """
    __tablename__ = "products"
    __table_args__ = (
        # SKUs are optional but unique within an inventory when present
        db.UniqueConstraint("inventory_id", "sku", name="uq_products_inventory_sku"),
        db.Index("ix_products_inventory_name", "inventory_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    sku = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    units_per_box = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    inventory = db.relationship("Inventory", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} inventory_id={self.inventory_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "category": self.category,
            "quantity": self.quantity,
            "units_per_box": self.units_per_box,
            "unit_price": format_money(self.unit_price),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
