# Overview: Flask API routes for shift operations; parses input and returns JSON responses.

# backend/inventario/routes/shifts.py
"""
Shift API for the inventory named by X-Inventory-Id.

Opening while a shift is open and closing with none open both answer 400.
"""

from flask import Blueprint, jsonify, g, current_app

from ..services import shift_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_inventory, require_capability, json_object


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.get("/current")
@require_auth
@require_inventory
@require_capability("MANAGE_SHIFTS")
def current_shift_route():
    shift = shift_service.current_shift(g.inventory_id)
    if shift is None:
        return jsonify(None), 200
    return jsonify(shift_service.shift_to_dict(shift)), 200


@shifts_bp.post("/open")
@require_auth
@require_inventory
@require_capability("MANAGE_SHIFTS")
def open_shift_route():
    try:
        shift = shift_service.open_shift(g.inventory_id, g.current_user.id)
        return jsonify({"message": "Shift opened", "shift_id": shift.id}), 201

    except ConflictError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/close")
@require_auth
@require_inventory
@require_capability("MANAGE_SHIFTS")
def close_shift_route():
    try:
        data = json_object()
        shift = shift_service.close_shift(g.inventory_id, g.current_user.id, notes=data.get("notes"))
        return jsonify({"message": "Shift closed", "shift_id": shift.id}), 200

    except (ValidationError, NotFoundError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/history")
@require_auth
@require_inventory
@require_capability("MANAGE_SHIFTS")
def shift_history_route():
    shifts = shift_service.shift_history(g.inventory_id)
    return jsonify([shift_service.shift_to_dict(s, include_inventory=False) for s in shifts]), 200


@shifts_bp.get("/<int:shift_id>")
@require_auth
@require_inventory
@require_capability("MANAGE_SHIFTS")
def shift_details_route(shift_id: int):
    try:
        shift = shift_service.shift_details(g.inventory_id, shift_id)
        return jsonify(shift_service.shift_to_dict(shift)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
