"""Daily report tests."""

from datetime import timedelta

from inventario.services import reporting_service, sales_service
from inventario.time_utils import today

from conftest import make_product


def _sell(inventory, method, lines, rate="50"):
    return sales_service.record_sale(
        inventory.id,
        payment_method=method,
        exchange_rate=rate,
        items=[{"product_id": p.id, "quantity": q} for p, q in lines],
    )


class TestDailyReport:
    def test_groups_by_product_and_payment_method(self, inventory_a, product_a):
        rice = make_product(inventory_a, name="Arroz", quantity=20, units_per_box=1, unit_price="1.20")
        _sell(inventory_a, "pago_movil", [(product_a, 2), (rice, 5)])
        _sell(inventory_a, "pago_movil", [(product_a, 1)])
        _sell(inventory_a, "zelle", [(rice, 1)])

        report = reporting_service.daily_report(inventory_a.id)

        assert report["date"] == today().isoformat()
        assert report["totals"] == {"total_sales": 3, "total_usd": "14.70", "total_bs": "735.00"}
        assert report["payment_methods"] == {
            "pago_movil": {"count": 2, "usd": "13.50", "bs": "675.00"},
            "zelle": {"count": 1, "usd": "1.20", "bs": "60.00"},
        }

        assert [p["name"] for p in report["products"]] == ["Arroz", "Harina PAN"]
        arroz, harina = report["products"]
        assert (arroz["sold"], arroz["final_stock"], arroz["initial_stock"]) == (6, 14, 20)
        assert arroz["revenue_usd"] == "7.20"
        assert (harina["sold"], harina["final_stock"], harina["initial_stock"]) == (3, 47, 50)
        assert harina["revenue_bs"] == "375.00"

    def test_other_day_is_empty(self, inventory_a, product_a):
        _sell(inventory_a, "pos", [(product_a, 1)])

        report = reporting_service.daily_report(inventory_a.id, (today() - timedelta(days=1)).isoformat())

        assert report["products"] == []
        assert report["payment_methods"] == {}
        assert report["totals"] == {"total_sales": 0, "total_usd": "0.00", "total_bs": "0.00"}

    def test_only_this_inventory(self, inventory_a, inventory_a2, product_a):
        _sell(inventory_a, "pos", [(product_a, 1)])
        assert reporting_service.daily_report(inventory_a2.id)["totals"]["total_sales"] == 0

    def test_csv_sections(self, inventory_a, product_a):
        _sell(inventory_a, "binance", [(product_a, 2)])
        report = reporting_service.daily_report(inventory_a.id)

        lines = reporting_service.daily_report_csv(report).splitlines()

        assert lines[0] == "REPORTE DE CIERRE DIARIO"
        assert lines[1] == f"Fecha:,{report['date']}"
        assert "PRODUCTOS" in lines
        assert "Harina PAN,50,2,48,5.00,250.00" in lines
        assert "MÉTODOS DE PAGO" in lines
        assert "binance,1,5.00,250.00" in lines
        assert lines[-3:] == ["Total Ventas:,1", "Total USD:,5.00", "Total Bs:,250.00"]
