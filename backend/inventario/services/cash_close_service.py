# Overview: Service-layer operations for cash close; encapsulates business logic and database work.

"""
Cash close (cierre de caja): reconcile counted stock against the system.

WHY: Sales are not always rung up. At the end of the day staff count every
product; whatever is missing from the shelf is treated as sold and the
count becomes the new system quantity.

RULES:
- difference = system_quantity - physical_quantity (positive = missing)
- only a positive difference produces sale value; overage contributes zero
- committing a close overwrites Product.quantity with the physical count for
  every counted product, in one DB transaction with the history rows
"""

from __future__ import annotations

import csv
import io
from datetime import date
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import CashClose, Inventory, Product, User
from ..validation import ValidationError, NotFoundError, CENTS, parse_int, parse_money, parse_date_field, format_money
from inventario.time_utils import today, to_iso_date
from .concurrency import lock_for_update, run_with_retry
from .products_service import format_quantity
from .settings_service import get_exchange_rate


CSV_HEADER = [
    "Producto",
    "Precio USD",
    "Precio Bs",
    "Stock Sistema",
    "Conteo Fisico",
    "Diferencia",
    "Venta USD",
    "Venta Bs",
]


def compute_difference(system_quantity: int, counted_boxes: int, counted_units: int, units_per_box: int) -> int:
    """system_quantity minus the counted boxes/units expressed in base units."""
    if not units_per_box or units_per_box < 1:
        units_per_box = 1
    physical = (counted_boxes or 0) * units_per_box + (counted_units or 0)
    return system_quantity - physical


def sale_values(difference: int, unit_price, exchange_rate) -> tuple[Decimal, Decimal]:
    """
    Implied revenue of a count difference as (usd, bs).

    Only missing units (difference > 0) count as sold. Overage is not
    classified and yields zero.
    """
    if difference <= 0:
        return Decimal("0.00"), Decimal("0.00")
    usd = (Decimal(difference) * Decimal(unit_price)).quantize(CENTS)
    bs = (usd * Decimal(exchange_rate)).quantize(CENTS)
    return usd, bs


def _read(item, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)


def summarize(items, exchange_rate) -> dict:
    """
    Totals for a set of counted items (dicts or CashClose rows with
    difference and unit_price).
    """
    total_difference = 0
    total_usd = Decimal("0.00")
    items_with_difference = 0
    for item in items:
        difference = int(_read(item, "difference") or 0)
        usd, _ = sale_values(difference, _read(item, "unit_price") or 0, exchange_rate)
        total_difference += abs(difference)
        total_usd += usd
        if difference:
            items_with_difference += 1
    return {
        "total_difference": total_difference,
        "total_sales_usd": format_money(total_usd),
        "total_sales_bs": format_money((total_usd * Decimal(exchange_rate)).quantize(CENTS)),
        "items_with_difference": items_with_difference,
        "exchange_rate": format_money(exchange_rate),
    }


def list_close_products(inventory_id: int) -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.inventory_id == inventory_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [
        {
            "id": p.id,
            "name": p.name,
            "quantity": p.quantity,
            "units_per_box": p.units_per_box,
            "unit_price": format_money(p.unit_price),
            "display_quantity": format_quantity(p.quantity, p.units_per_box).label,
        }
        for p in products
    ]


def _parse_physical(raw: dict, idx: int, units_per_box: int) -> int:
    """A count is either physical_quantity (base units) or boxes + units."""
    if raw.get("physical_quantity") is not None:
        physical = parse_int(raw["physical_quantity"], f"items[{idx}].physical_quantity")
    elif raw.get("boxes") is not None or raw.get("units") is not None:
        boxes = parse_int(raw.get("boxes") or 0, f"items[{idx}].boxes")
        units = parse_int(raw.get("units") or 0, f"items[{idx}].units")
        if boxes < 0 or units < 0:
            raise ValidationError(f"items[{idx}] boxes and units must be >= 0")
        physical = boxes * max(units_per_box or 1, 1) + units
    else:
        raise ValidationError(f"items[{idx}].physical_quantity is required")

    if physical < 0:
        raise ValidationError(f"items[{idx}].physical_quantity must be >= 0")
    return physical


def commit_close(
    inventory_id: int,
    items,
    *,
    close_date: date | str | None = None,
    user_id: int | None = None,
    exchange_rate=None,
) -> dict:
    """
    Persist a cash close and overwrite stock with the physical count.

    Each item's system_quantity is the stock the staff counted against, as
    sent by the client; when it is absent the locked product row supplies
    it. All-or-nothing.

    Raises:
        ValidationError: empty items, bad quantities, duplicate product in one close
        NotFoundError: item names a product outside the inventory
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("No items to save")
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"items[{idx}].product_id is required")

    closed_on = today() if close_date in (None, "") else parse_date_field(close_date, "close_date")
    rate = None if exchange_rate is None else parse_money(exchange_rate, "exchange_rate")
    if rate is not None and rate <= 0:
        raise ValidationError("exchange_rate must be greater than 0")

    product_ids = [parse_int(raw["product_id"], f"items[{idx}].product_id") for idx, raw in enumerate(items)]
    if len(set(product_ids)) != len(product_ids):
        raise ValidationError("Each product may appear only once in a cash close")

    def _op() -> list[CashClose]:
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(
                    Product.inventory_id == inventory_id,
                    Product.id.in_(product_ids),
                )
            ).all()
        }
        missing = [pid for pid in product_ids if pid not in products]
        if missing:
            raise NotFoundError(f"Product not found: {', '.join(str(m) for m in missing)}")

        rows = []
        for idx, (product_id, raw) in enumerate(zip(product_ids, items)):
            product = products[product_id]
            physical = _parse_physical(raw, idx, product.units_per_box)
            system = product.quantity
            if raw.get("system_quantity") is not None:
                system = parse_int(raw["system_quantity"], f"items[{idx}].system_quantity")
                if system < 0:
                    raise ValidationError(f"items[{idx}].system_quantity must be >= 0")
            unit_price = product.unit_price
            if raw.get("unit_price") is not None:
                unit_price = parse_money(raw["unit_price"], f"items[{idx}].unit_price")

            row = CashClose(
                inventory_id=inventory_id,
                close_date=closed_on,
                product_id=product.id,
                product_name=product.name,
                system_quantity=system,
                physical_quantity=physical,
                difference=system - physical,
                units_per_box=product.units_per_box or 1,
                unit_price=unit_price or Decimal("0.00"),
                created_by_user_id=user_id,
            )
            db.session.add(row)
            rows.append(row)

            # Count becomes the new system quantity
            product.quantity = physical

        db.session.commit()
        return rows

    try:
        rows = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    if rate is None:
        rate = get_exchange_rate(db.session.get(Inventory, inventory_id).organization_id)

    summary = summarize(rows, rate)
    summary["close_date"] = to_iso_date(closed_on)
    summary["products_count"] = len(rows)
    return summary


def close_history(inventory_id: int, limit: int = 30) -> list[dict]:
    """One line per (close_date, user), newest first."""
    rows = (
        db.session.query(
            CashClose.close_date,
            CashClose.created_by_user_id,
            User.username,
            func.sum(func.abs(CashClose.difference)),
            func.count(func.distinct(CashClose.product_name)),
        )
        .outerjoin(User, User.id == CashClose.created_by_user_id)
        .filter(CashClose.inventory_id == inventory_id)
        .group_by(CashClose.close_date, CashClose.created_by_user_id, User.username)
        .order_by(CashClose.close_date.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "close_date": to_iso_date(close_date),
            "created_by_user_id": user_id,
            "created_by_username": username,
            "total_difference": int(total or 0),
            "products_count": int(count or 0),
        }
        for close_date, user_id, username, total, count in rows
    ]


def close_details(inventory_id: int, close_date: date | str, exchange_rate) -> dict:
    closed_on = parse_date_field(close_date, "close_date")
    rate = Decimal(exchange_rate)
    rows = (
        db.session.query(CashClose)
        .filter(CashClose.inventory_id == inventory_id, CashClose.close_date == closed_on)
        .order_by(CashClose.product_name.asc(), CashClose.id.asc())
        .all()
    )

    items = []
    for row in rows:
        sale_usd, sale_bs = sale_values(row.difference, row.unit_price, rate)
        data = row.to_dict()
        data.update({
            "unit_price_bs": format_money(Decimal(row.unit_price) * rate),
            "sale_usd": format_money(sale_usd),
            "sale_bs": format_money(sale_bs),
            "system_display": format_quantity(row.system_quantity, row.units_per_box).label,
            "physical_display": format_quantity(row.physical_quantity, row.units_per_box).label,
        })
        items.append(data)

    return {
        "close_date": to_iso_date(closed_on),
        "items": items,
        "summary": summarize(rows, rate),
    }


def close_details_csv(details: dict) -> str:
    """CSV export of close_details() output, with a trailing TOTAL row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for item in details["items"]:
        writer.writerow([
            item["product_name"],
            item["unit_price"],
            item["unit_price_bs"],
            item["system_quantity"],
            item["physical_quantity"],
            item["difference"],
            item["sale_usd"],
            item["sale_bs"],
        ])
    summary = details["summary"]
    writer.writerow([])
    writer.writerow([
        "TOTAL", "", "", "", "",
        summary["total_difference"],
        summary["total_sales_usd"],
        summary["total_sales_bs"],
    ])
    return buf.getvalue()
