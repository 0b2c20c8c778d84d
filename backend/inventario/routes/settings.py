# Overview: Flask API routes for settings operations; parses input and returns JSON responses.

# backend/inventario/routes/settings.py
"""Organization settings API (exchange rate)."""

from flask import Blueprint, jsonify, g, current_app

from ..services import settings_service
from ..validation import ValidationError, format_money
from ..decorators import require_auth, require_organization, require_capability, json_object


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/exchange-rate")
@require_auth
@require_organization
@require_capability("VIEW_SETTINGS")
def get_exchange_rate_route():
    rate = settings_service.get_exchange_rate(g.org_id)
    return jsonify({"exchange_rate": format_money(rate)}), 200


@settings_bp.put("/exchange-rate")
@require_auth
@require_organization
@require_capability("MANAGE_SETTINGS")
def set_exchange_rate_route():
    try:
        data = json_object()
        if "exchange_rate" not in data:
            return jsonify({"error": "exchange_rate is required"}), 400
        rate = settings_service.set_exchange_rate(g.org_id, data["exchange_rate"], user_id=g.current_user.id)
        return jsonify({"message": "Exchange rate updated", "exchange_rate": format_money(rate)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update exchange rate")
        return jsonify({"error": "Internal server error"}), 500
