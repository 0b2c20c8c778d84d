# Overview: Flask API routes for product operations; parses input and returns JSON responses.

# backend/inventario/routes/products.py
"""
Product CRUD for the inventory named by X-Inventory-Id.

Every product dict carries display_quantity ("4 cajas + 2 und").
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import products_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_inventory, require_capability


products_bp = Blueprint("products", __name__, url_prefix="/api/inventory/products")


@products_bp.get("")
@require_auth
@require_inventory
@require_capability("VIEW_INVENTORY")
def list_products_route():
    search = request.args.get("search")
    return jsonify(products_service.list_products(g.inventory_id, search=search)), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_inventory
@require_capability("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(g.inventory_id, product_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.post("")
@require_auth
@require_inventory
@require_capability("MANAGE_PRODUCTS")
def create_product_route():
    try:
        data = request.get_json(silent=True)
        product = products_service.create_product(g.inventory_id, data, user_id=g.current_user.id)
        return jsonify(product), 201

    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_inventory
@require_capability("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    try:
        data = request.get_json(silent=True)
        product = products_service.update_product(g.inventory_id, product_id, data)
        return jsonify(product), 200

    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_inventory
@require_capability("DELETE_PRODUCT")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(g.inventory_id, product_id)
        return jsonify({"message": "Product deleted"}), 200

    except NotFoundError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
