from __future__ import annotations

from ..extensions import db
from ..validation import format_money
from inventario.time_utils import to_utc_z, to_iso_date


class CashClose(db.Model):
    """
    One counted product within a cash close (cierre de caja).

    A close event is the set of rows sharing (inventory_id, close_date,
    created_by_user_id). Rows are written once and never updated.

    difference = system_quantity - physical_quantity
    - positive: units missing from the shelf, treated as sold
    - negative: overage found during the count
    unit_price is a snapshot so historical sale values do not move when the
    product price changes.
    """
    __tablename__ = "cash_closes"
    __table_args__ = (
        db.Index("ix_cash_closes_inventory_date", "inventory_id", "close_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    close_date = db.Column(db.Date, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    system_quantity = db.Column(db.Integer, nullable=False)
    physical_quantity = db.Column(db.Integer, nullable=False)
    difference = db.Column(db.Integer, nullable=False)
    units_per_box = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "close_date": to_iso_date(self.close_date),
            "product_id": self.product_id,
            "product_name": self.product_name,
            "system_quantity": self.system_quantity,
            "physical_quantity": self.physical_quantity,
            "difference": self.difference,
            "units_per_box": self.units_per_box,
            "unit_price": format_money(self.unit_price),
            "created_by_user_id": self.created_by_user_id,
            "created_by_username": self.created_by.username if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
        }
