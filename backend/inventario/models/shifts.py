from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from inventario.time_utils import to_utc_z


SHIFT_STATUSES = ("open", "closed")


class Shift(db.Model):
    """
    Work shift with a full inventory snapshot at open and close.

    INVARIANT: at most one open shift per inventory. The partial unique index
    below enforces it in the database; shift_service pre-checks it to return
    a friendly error.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_one_open_per_inventory",
            "inventory_id",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
        db.CheckConstraint("status IN ('open', 'closed')", name="ck_shifts_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = db.Column(db.String(16), nullable=False, default="open")

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False)
    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])
    inventory_rows = db.relationship(
        "ShiftInventory",
        backref="shift",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ShiftInventory.product_name",
    )

    def to_dict(self, include_inventory: bool = False) -> dict:
        data = {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "opened_by_user_id": self.opened_by_user_id,
            "opened_by_username": self.opened_by.username if self.opened_by else None,
            "closed_at": to_utc_z(self.closed_at),
            "closed_by_user_id": self.closed_by_user_id,
            "closed_by_username": self.closed_by.username if self.closed_by else None,
            "notes": self.notes,
        }
        if include_inventory:
            data["inventory"] = [row.to_dict() for row in self.inventory_rows]
        return data


class ShiftInventory(db.Model):
    """Per-product snapshot row: initial_quantity at open, final_quantity at close."""
    __tablename__ = "shift_inventory"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    initial_quantity = db.Column(db.Integer, nullable=False)
    final_quantity = db.Column(db.Integer, nullable=True)
    units_per_box = db.Column(db.Integer, nullable=False, default=1)

    @property
    def sold(self) -> int | None:
        if self.final_quantity is None:
            return None
        return self.initial_quantity - self.final_quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "initial_quantity": self.initial_quantity,
            "final_quantity": self.final_quantity,
            "units_per_box": self.units_per_box,
            "sold": self.sold,
        }
