from __future__ import annotations

from ..extensions import db
from ..validation import format_money
from inventario.time_utils import to_utc_z, to_iso_date


PAYMENT_METHODS = ("pago_movil", "pos", "bs_cash", "usd_cash", "zelle", "binance")


class Sale(db.Model):
    """
    Point-of-sale sale.

    Totals are the sums of the item subtotals captured at sale time; later
    product price changes never touch a recorded sale. Deleting a sale
    (cancel) cascades to its items after stock has been restored.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("inventory_id", "sale_number", name="uq_sales_inventory_number"),
        db.Index("ix_sales_inventory_date", "inventory_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Human-readable number (e.g., "V-0001"), sequential per inventory
    sale_number = db.Column(db.String(32), nullable=False)
    date = db.Column(db.Date, nullable=False)
    customer_name = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(16), nullable=False, index=True)

    total_usd = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_bs = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    exchange_rate_used = db.Column(db.Numeric(12, 2), nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "sale_number": self.sale_number,
            "date": to_iso_date(self.date),
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
            "total_usd": format_money(self.total_usd),
            "total_bs": format_money(self.total_bs),
            "exchange_rate_used": format_money(self.exchange_rate_used),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line of a sale; product name and prices are snapshots."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_usd = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price_bs = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal_usd = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal_bs = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_usd": format_money(self.unit_price_usd),
            "unit_price_bs": format_money(self.unit_price_bs),
            "subtotal_usd": format_money(self.subtotal_usd),
            "subtotal_bs": format_money(self.subtotal_bs),
        }


class SaleSequence(db.Model):
    """
    Per-inventory sale number counter.

    next_number is incremented with a single UPDATE inside the sale's DB
    transaction, so concurrent sales never read the same value.
    """
    __tablename__ = "sale_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    next_number = db.Column(db.Integer, nullable=False, default=1)
