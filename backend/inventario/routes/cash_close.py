# Overview: Flask API routes for cash close operations; parses input and returns JSON responses.

# backend/inventario/routes/cash_close.py
"""Cash close (physical count) API for the inventory named by X-Inventory-Id."""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..services import cash_close_service, settings_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_inventory, require_capability, json_object


cash_close_bp = Blueprint("cash_close", __name__, url_prefix="/api/cash-close")


@cash_close_bp.get("/products")
@require_auth
@require_inventory
@require_capability("VIEW_CASH_CLOSE")
def close_products_route():
    return jsonify(cash_close_service.list_close_products(g.inventory_id)), 200


@cash_close_bp.post("")
@require_auth
@require_inventory
@require_capability("COMMIT_CASH_CLOSE")
def commit_close_route():
    """
    Commit a count. Body: {items: [{product_id, system_quantity?, physical_quantity | boxes + units, unit_price?}],
    close_date?, exchange_rate?}. total_usd / total_bs sent by older clients are ignored;
    the summary is recomputed server-side.
    """
    try:
        data = json_object()
        summary = cash_close_service.commit_close(
            g.inventory_id,
            data.get("items"),
            close_date=data.get("close_date"),
            user_id=g.current_user.id,
            exchange_rate=data.get("exchange_rate"),
        )
        return jsonify({"message": "Cash close saved", "summary": summary}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to save cash close")
        return jsonify({"error": "Internal server error"}), 500


@cash_close_bp.get("/history")
@require_auth
@require_inventory
@require_capability("VIEW_CASH_CLOSE")
def close_history_route():
    return jsonify(cash_close_service.close_history(g.inventory_id)), 200


@cash_close_bp.get("/details/<close_date>")
@require_auth
@require_inventory
@require_capability("VIEW_CASH_CLOSE")
def close_details_route(close_date: str):
    try:
        rate = settings_service.get_exchange_rate(g.org_id)
        details = cash_close_service.close_details(g.inventory_id, close_date, rate)

        if request.args.get("format") == "csv":
            return Response(
                cash_close_service.close_details_csv(details),
                mimetype="text/csv",
                headers={"Content-Disposition": f"attachment; filename=cierre-{details['close_date']}.csv"},
            )
        return jsonify(details), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load cash close details")
        return jsonify({"error": "Internal server error"}), 500
