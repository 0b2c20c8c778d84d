# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/inventario/routes/sales.py
"""Sales API routes for the inventory named by X-Inventory-Id."""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..services import sales_service, reporting_service
from ..services.sales_service import InsufficientStockError
from ..validation import ValidationError, NotFoundError, parse_date_field
from ..decorators import require_auth, require_inventory, require_capability, json_object


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
@require_inventory
@require_capability("VIEW_SALES")
def list_sales_route():
    try:
        sale_date = request.args.get("date")
        if sale_date:
            sale_date = parse_date_field(sale_date, "date")
        sales = sales_service.list_sales(g.inventory_id, sale_date=sale_date or None)
        return jsonify([s.to_dict() for s in sales]), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@sales_bp.post("")
@require_auth
@require_inventory
@require_capability("RECORD_SALE")
def record_sale_route():
    """
    Record a sale. Body: {customer_name?, payment_method, exchange_rate,
    items: [{product_id, quantity, unit_price_usd?, unit_price_bs?, subtotal_usd?, subtotal_bs?}]}
    """
    try:
        data = json_object()
        sale = sales_service.record_sale(
            g.inventory_id,
            payment_method=data.get("payment_method"),
            items=data.get("items"),
            exchange_rate=data.get("exchange_rate"),
            customer_name=data.get("customer_name"),
            user_id=g.current_user.id,
        )
        return jsonify({
            "message": "Sale registered",
            "sale_number": sale.sale_number,
            "sale_id": sale.id,
            "sale": sale.to_dict(),
        }), 201

    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/daily-report")
@require_auth
@require_inventory
@require_capability("VIEW_DAILY_REPORT")
def daily_report_route():
    try:
        report = reporting_service.daily_report(g.inventory_id, request.args.get("date"))

        if request.args.get("format") == "csv":
            return Response(
                reporting_service.daily_report_csv(report),
                mimetype="text/csv",
                headers={"Content-Disposition": f"attachment; filename=reporte_{report['date']}.csv"},
            )
        return jsonify(report), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build daily report")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_inventory
@require_capability("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(g.inventory_id, sale_id).to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_inventory
@require_capability("CANCEL_SALE")
def cancel_sale_route(sale_id: int):
    """Cancel a sale: stock is restored and the sale is deleted."""
    try:
        sales_service.cancel_sale(g.inventory_id, sale_id)
        return jsonify({"message": "Sale cancelled and inventory restored"}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500
