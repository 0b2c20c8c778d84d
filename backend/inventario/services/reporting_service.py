# Overview: Service-layer operations for reporting; aggregates sales into daily reports.

from __future__ import annotations

import csv
import io
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Product, Sale
from ..validation import format_money, parse_date_field
from inventario.time_utils import today, to_iso_date


def daily_report(inventory_id: int, report_date: date | str | None = None) -> dict:
    """
    Sales of one day grouped by product and by payment method.

    final_stock is the product's current quantity and
    initial_stock = final_stock + sold. Stock moved by anything other than
    that day's sales (cash closes, edits, later sales) is not accounted for,
    so initial_stock is exact only when the report is run at the end of the
    same day.
    """
    day = today() if report_date in (None, "") else parse_date_field(report_date, "date")

    sales = (
        db.session.query(Sale)
        .options(selectinload(Sale.items))
        .filter(Sale.inventory_id == inventory_id, Sale.date == day)
        .order_by(Sale.id.asc())
        .all()
    )

    products: dict = {}
    payment_methods: dict = {}
    total_usd = Decimal("0.00")
    total_bs = Decimal("0.00")

    for sale in sales:
        method = payment_methods.setdefault(
            sale.payment_method, {"count": 0, "usd": Decimal("0.00"), "bs": Decimal("0.00")}
        )
        method["count"] += 1
        method["usd"] += Decimal(sale.total_usd)
        method["bs"] += Decimal(sale.total_bs)
        total_usd += Decimal(sale.total_usd)
        total_bs += Decimal(sale.total_bs)

        for item in sale.items:
            key = ("id", item.product_id) if item.product_id is not None else ("name", item.product_name)
            stats = products.setdefault(key, {
                "product_id": item.product_id,
                "name": item.product_name,
                "sold": 0,
                "revenue_usd": Decimal("0.00"),
                "revenue_bs": Decimal("0.00"),
            })
            stats["sold"] += item.quantity
            stats["revenue_usd"] += Decimal(item.subtotal_usd)
            stats["revenue_bs"] += Decimal(item.subtotal_bs)

    product_ids = [s["product_id"] for s in products.values() if s["product_id"] is not None]
    current = {}
    if product_ids:
        current = dict(
            db.session.query(Product.id, Product.quantity)
            .filter(Product.inventory_id == inventory_id, Product.id.in_(product_ids))
            .all()
        )

    product_rows = []
    for stats in sorted(products.values(), key=lambda s: s["name"]):
        final_stock = current.get(stats["product_id"], 0) if stats["product_id"] is not None else 0
        product_rows.append({
            "product_id": stats["product_id"],
            "name": stats["name"],
            "sold": stats["sold"],
            "revenue_usd": format_money(stats["revenue_usd"]),
            "revenue_bs": format_money(stats["revenue_bs"]),
            "final_stock": final_stock,
            "initial_stock": final_stock + stats["sold"],
        })

    return {
        "date": to_iso_date(day),
        "products": product_rows,
        "payment_methods": {
            name: {"count": data["count"], "usd": format_money(data["usd"]), "bs": format_money(data["bs"])}
            for name, data in sorted(payment_methods.items())
        },
        "totals": {
            "total_sales": len(sales),
            "total_usd": format_money(total_usd),
            "total_bs": format_money(total_bs),
        },
    }


def daily_report_csv(report: dict) -> str:
    """CSV export of daily_report(), in the same sections as the printed report."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")

    writer.writerow(["REPORTE DE CIERRE DIARIO"])
    writer.writerow(["Fecha:", report["date"]])
    writer.writerow([])

    writer.writerow(["PRODUCTOS"])
    writer.writerow(["Producto", "Stock Inicial", "Vendidos", "Stock Final", "Ingreso USD", "Ingreso Bs"])
    for p in report["products"]:
        writer.writerow([p["name"], p["initial_stock"], p["sold"], p["final_stock"], p["revenue_usd"], p["revenue_bs"]])

    writer.writerow([])
    writer.writerow(["MÉTODOS DE PAGO"])
    writer.writerow(["Método", "Cantidad", "Total USD", "Total Bs"])
    for method, data in report["payment_methods"].items():
        writer.writerow([method, data["count"], data["usd"], data["bs"]])

    totals = report["totals"]
    writer.writerow([])
    writer.writerow(["TOTALES"])
    writer.writerow(["Total Ventas:", totals["total_sales"]])
    writer.writerow(["Total USD:", totals["total_usd"]])
    writer.writerow(["Total Bs:", totals["total_bs"]])

    return buf.getvalue()
