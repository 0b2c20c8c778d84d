# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Products Service

MULTI-TENANT: every operation takes the inventory_id resolved from the
request; a product id from another inventory behaves as not found.

Quantities are stored in base units. format_quantity turns them into the
"cajas + und" label shown next to every product.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import update

from ..extensions import db
from ..models import Product, SaleItem, CashClose, ShiftInventory
from ..validation import (
    ConflictError,
    NotFoundError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "description", "sku", "category", "quantity", "units_per_box", "unit_price"}),
    required_on_create=frozenset({"name"}),
)


@dataclass(frozen=True)
class QuantityBreakdown:
    boxes: int
    units: int
    label: str


def format_quantity(quantity: int, units_per_box: int | None) -> QuantityBreakdown:
    """
    Split a base-unit quantity into boxes and loose units.

    units_per_box <= 1 means the product is not packed in boxes.
    boxes and units are always divmod(quantity, units_per_box). For a
    negative quantity the label instead reads the magnitude with a leading
    minus, so -14 at 12 per box is (-2, 10) but labelled "-1 cajas + 2 und".

    >>> format_quantity(50, 12).label
    '4 cajas + 2 und'
    """
    quantity = int(quantity or 0)
    if not units_per_box or units_per_box <= 1:
        return QuantityBreakdown(boxes=0, units=quantity, label=f"{quantity} und")

    sign = "-" if quantity < 0 else ""
    whole, loose = divmod(abs(quantity), units_per_box)

    if whole and loose:
        label = f"{sign}{whole} cajas + {loose} und"
    elif whole:
        label = f"{sign}{whole} cajas"
    else:
        label = f"{sign}{loose} und"

    boxes, units = divmod(quantity, units_per_box)
    return QuantityBreakdown(boxes=boxes, units=units, label=label)


def product_to_dict(product: Product) -> dict:
    data = product.to_dict()
    data["display_quantity"] = format_quantity(product.quantity, product.units_per_box).label
    return data


def _get(inventory_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, inventory_id=inventory_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _check_sku_free(inventory_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product.id).filter(Product.inventory_id == inventory_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists in this inventory")


def list_products(inventory_id: int, search: str | None = None) -> list[dict]:
    query = db.session.query(Product).filter(Product.inventory_id == inventory_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(like), Product.sku.ilike(like)))
    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    return [product_to_dict(p) for p in products]


def get_product(inventory_id: int, product_id: int) -> dict:
    return product_to_dict(_get(inventory_id, product_id))


def create_product(inventory_id: int, payload: dict, user_id: int | None = None) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_sku_free(inventory_id, patch.get("sku"))

    product = Product(
        inventory_id=inventory_id,
        created_by_user_id=user_id,
        quantity=patch.pop("quantity", 0),
        units_per_box=patch.pop("units_per_box", 1),
        unit_price=patch.pop("unit_price", 0),
    )
    for key, value in patch.items():
        setattr(product, key, value)

    db.session.add(product)
    db.session.commit()
    return product_to_dict(product)


def update_product(inventory_id: int, product_id: int, payload: dict) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    product = _get(inventory_id, product_id)
    if "sku" in patch and patch["sku"] != product.sku:
        _check_sku_free(inventory_id, patch["sku"], exclude_id=product.id)

    for key, value in patch.items():
        setattr(product, key, value)

    db.session.commit()
    return product_to_dict(product)


def delete_product(inventory_id: int, product_id: int) -> None:
    """
    Hard-delete a product.

    Historical rows (sale items, cash closes, shift snapshots) keep their
    product_name snapshot and lose only the product_id link.
    """
    product = _get(inventory_id, product_id)

    for model in (SaleItem, CashClose, ShiftInventory):
        db.session.execute(
            update(model)
            .where(model.product_id == product.id)
            .values(product_id=None)
            .execution_options(synchronize_session=False)
        )

    db.session.delete(product)
    db.session.commit()
