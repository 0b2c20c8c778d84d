# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service - point-of-sale sales with stock decrement.

WHY: A sale, its items, its number and the stock it removes must appear
together or not at all.

CONCURRENCY RULES:
- sale numbers come from SaleSequence via a single UPDATE ... next_number + 1
- stock leaves through UPDATE products SET quantity = quantity - :q
  WHERE quantity >= :q; a zero rowcount means another sale got there first
- cancel restores stock through quantity = quantity + :q
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Product, Sale, SaleItem, SaleSequence, PAYMENT_METHODS
from ..validation import ValidationError, NotFoundError, CENTS, parse_int, parse_money
from inventario.time_utils import today
from .concurrency import lock_for_update, run_with_retry


SALE_NUMBER_PREFIX = "V"


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds what is on hand."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class SaleLineInput:
    product_id: int
    quantity: int
    unit_price_usd: Decimal | None
    unit_price_bs: Decimal | None
    subtotal_usd: Decimal | None
    subtotal_bs: Decimal | None


def format_sale_number(number: int) -> str:
    return f"{SALE_NUMBER_PREFIX}-{number:04d}"


def _optional_money(raw: dict, key: str, idx: int) -> Decimal | None:
    if raw.get(key) is None:
        return None
    return parse_money(raw[key], f"items[{idx}].{key}")


def parse_lines(raw_items) -> list[SaleLineInput]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"items[{idx}].product_id is required")
        quantity = parse_int(raw.get("quantity"), f"items[{idx}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be > 0")
        lines.append(SaleLineInput(
            product_id=parse_int(raw["product_id"], f"items[{idx}].product_id"),
            quantity=quantity,
            unit_price_usd=_optional_money(raw, "unit_price_usd", idx),
            unit_price_bs=_optional_money(raw, "unit_price_bs", idx),
            subtotal_usd=_optional_money(raw, "subtotal_usd", idx),
            subtotal_bs=_optional_money(raw, "subtotal_bs", idx),
        ))
    return lines


def _ensure_sale_sequence(inventory_id: int) -> None:
    """
    Create the inventory's sequence row on first use.

    Runs in its own short transaction before the sale so a lost insert race
    (IntegrityError) can be rolled back without touching the sale.
    """
    if db.session.query(SaleSequence.id).filter_by(inventory_id=inventory_id).first():
        return
    db.session.add(SaleSequence(inventory_id=inventory_id, next_number=1))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()


def _allocate_sale_number(inventory_id: int) -> str:
    result = db.session.execute(
        update(SaleSequence)
        .where(SaleSequence.inventory_id == inventory_id)
        .values(next_number=SaleSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise RuntimeError(f"Sale sequence missing for inventory {inventory_id}")
    current = (
        db.session.query(SaleSequence.next_number)
        .filter_by(inventory_id=inventory_id)
        .scalar()
    )
    return format_sale_number(current - 1)


def _check_stock(products: dict[int, Product], requested: dict[int, int]) -> None:
    insufficient = []
    for product_id, qty in requested.items():
        available = products[product_id].quantity
        if available < qty:
            insufficient.append({
                "product_id": product_id,
                "product_name": products[product_id].name,
                "requested_quantity": qty,
                "available": available,
            })
    if insufficient:
        raise InsufficientStockError("Insufficient stock", details={"items": insufficient})


def record_sale(
    inventory_id: int,
    *,
    payment_method: str,
    items,
    exchange_rate,
    customer_name: str | None = None,
    user_id: int | None = None,
) -> Sale:
    """
    Record a sale, decrement stock and allocate the next V-#### number.

    Prices default to the product's unit_price (USD) and that times the
    exchange rate (Bs); subtotals default to price x quantity. Totals are the
    sums of the line subtotals.

    Raises:
        ValidationError: empty items, unknown payment method, bad rate or quantities, unknown product
        InsufficientStockError: a product's aggregated quantity exceeds its stock
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    if exchange_rate is None:
        raise ValidationError("exchange_rate is required")
    rate = parse_money(exchange_rate, "exchange_rate", allow_negative=True)
    if rate <= 0:
        raise ValidationError("exchange_rate must be greater than 0")
    lines = parse_lines(items)
    if customer_name is not None:
        customer_name = str(customer_name).strip()[:255] or None

    requested: dict[int, int] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    _ensure_sale_sequence(inventory_id)

    def _op() -> Sale:
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(
                    Product.inventory_id == inventory_id,
                    Product.id.in_(requested.keys()),
                )
            ).all()
        }
        missing = sorted(set(requested) - products.keys())
        if missing:
            raise ValidationError(f"Product not found: {', '.join(str(m) for m in missing)}")

        _check_stock(products, requested)

        sale = Sale(
            inventory_id=inventory_id,
            sale_number=_allocate_sale_number(inventory_id),
            date=today(),
            customer_name=customer_name,
            payment_method=payment_method,
            exchange_rate_used=rate,
            created_by_user_id=user_id,
        )

        total_usd = Decimal("0.00")
        total_bs = Decimal("0.00")
        for line in lines:
            product = products[line.product_id]
            price_usd = line.unit_price_usd if line.unit_price_usd is not None else Decimal(product.unit_price)
            price_bs = line.unit_price_bs if line.unit_price_bs is not None else (price_usd * rate).quantize(CENTS)
            subtotal_usd = line.subtotal_usd if line.subtotal_usd is not None else (price_usd * line.quantity).quantize(CENTS)
            subtotal_bs = line.subtotal_bs if line.subtotal_bs is not None else (price_bs * line.quantity).quantize(CENTS)

            sale.items.append(SaleItem(
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                unit_price_usd=price_usd,
                unit_price_bs=price_bs,
                subtotal_usd=subtotal_usd,
                subtotal_bs=subtotal_bs,
            ))
            total_usd += subtotal_usd
            total_bs += subtotal_bs

        sale.total_usd = total_usd
        sale.total_bs = total_bs
        db.session.add(sale)

        for product_id, qty in requested.items():
            result = db.session.execute(
                update(Product)
                .where(Product.id == product_id, Product.quantity >= qty)
                .values(quantity=Product.quantity - qty)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InsufficientStockError(
                    "Insufficient stock",
                    details={"items": [{"product_id": product_id, "requested_quantity": qty}]},
                )

        db.session.commit()
        return sale

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def cancel_sale(inventory_id: int, sale_id: int) -> None:
    """
    Restore stock for every item and delete the sale (items cascade).

    Items whose product has since been deleted are skipped.
    """
    def _op() -> None:
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id, inventory_id=inventory_id)
        ).first()
        if not sale:
            raise NotFoundError("Sale not found")

        for item in sale.items:
            if item.product_id is None:
                continue
            db.session.execute(
                update(Product)
                .where(Product.id == item.product_id, Product.inventory_id == inventory_id)
                .values(quantity=Product.quantity + item.quantity)
                .execution_options(synchronize_session=False)
            )

        db.session.delete(sale)
        db.session.commit()

    try:
        run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def list_sales(inventory_id: int, sale_date=None, limit: int | None = None) -> list[Sale]:
    query = (
        db.session.query(Sale)
        .options(selectinload(Sale.items))
        .filter(Sale.inventory_id == inventory_id)
    )
    if sale_date is not None:
        query = query.filter(Sale.date == sale_date)
    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_sale(inventory_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, inventory_id=inventory_id).first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale
