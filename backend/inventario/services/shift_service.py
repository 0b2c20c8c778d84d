# Overview: Service-layer operations for shifts; encapsulates business logic and database work.

"""
Shift Service - inventory snapshots bracketing a work shift.

Opening a shift copies every product's quantity into ShiftInventory;
closing it writes the quantities again so the difference per product
(sold = initial - final) can be read back later.

INVARIANT: one open shift per inventory (partial unique index on shifts).
The pre-check gives a readable error; the index closes the race between
two concurrent opens.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Shift, ShiftInventory
from ..validation import ConflictError, NotFoundError
from inventario.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .products_service import format_quantity


def _open_shift_query(inventory_id: int):
    return db.session.query(Shift).filter(Shift.inventory_id == inventory_id, Shift.status == "open")


def open_shift(inventory_id: int, user_id: int | None) -> Shift:
    """Raises ConflictError if the inventory already has an open shift."""
    def _op() -> Shift:
        if _open_shift_query(inventory_id).first():
            raise ConflictError("A shift is already open. Close it before opening a new one.")

        shift = Shift(
            inventory_id=inventory_id,
            status="open",
            opened_at=utcnow(),
            opened_by_user_id=user_id,
        )
        products = (
            db.session.query(Product)
            .filter(Product.inventory_id == inventory_id)
            .order_by(Product.name.asc(), Product.id.asc())
            .all()
        )
        for product in products:
            shift.inventory_rows.append(ShiftInventory(
                product_id=product.id,
                product_name=product.name,
                initial_quantity=product.quantity,
                units_per_box=product.units_per_box or 1,
            ))

        db.session.add(shift)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("A shift is already open. Close it before opening a new one.")
        return shift

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def close_shift(inventory_id: int, user_id: int | None, notes: str | None = None) -> Shift:
    """Raises NotFoundError if no shift is open."""
    if notes is not None:
        notes = str(notes).strip() or None

    def _op() -> Shift:
        shift = lock_for_update(_open_shift_query(inventory_id)).first()
        if not shift:
            raise NotFoundError("There is no open shift to close.")

        quantities = dict(
            db.session.query(Product.id, Product.quantity)
            .filter(Product.inventory_id == inventory_id)
            .all()
        )
        for row in shift.inventory_rows:
            # Products deleted during the shift keep final_quantity NULL
            if row.product_id in quantities:
                row.final_quantity = quantities[row.product_id]

        shift.status = "closed"
        shift.closed_at = utcnow()
        shift.closed_by_user_id = user_id
        shift.notes = notes

        db.session.commit()
        return shift

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def shift_to_dict(shift: Shift, include_inventory: bool = True) -> dict:
    data = shift.to_dict(include_inventory=include_inventory)
    if include_inventory:
        for row, row_data in zip(shift.inventory_rows, data["inventory"]):
            row_data["initial_display"] = format_quantity(row.initial_quantity, row.units_per_box).label
            row_data["final_display"] = (
                format_quantity(row.final_quantity, row.units_per_box).label
                if row.final_quantity is not None else None
            )
    return data


def current_shift(inventory_id: int) -> Shift | None:
    return _open_shift_query(inventory_id).first()


def shift_history(inventory_id: int, limit: int = 30) -> list[Shift]:
    return (
        db.session.query(Shift)
        .filter(Shift.inventory_id == inventory_id)
        .order_by(Shift.opened_at.desc(), Shift.id.desc())
        .limit(limit)
        .all()
    )


def shift_details(inventory_id: int, shift_id: int) -> Shift:
    shift = db.session.query(Shift).filter_by(id=shift_id, inventory_id=inventory_id).first()
    if not shift:
        raise NotFoundError("Shift not found")
    return shift
