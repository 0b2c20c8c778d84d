"""
Shift tests: opening snapshots stock, closing records what was sold.
"""

import pytest

from inventario.extensions import db
from inventario.models import Shift, ShiftInventory
from inventario.services import shift_service, sales_service, products_service
from inventario.validation import ConflictError, NotFoundError

from conftest import make_product


def _sell(inventory, product, quantity):
    sales_service.record_sale(
        inventory.id,
        payment_method="bs_cash",
        exchange_rate="50",
        items=[{"product_id": product.id, "quantity": quantity}],
    )


class TestOpenShift:
    def test_open_snapshots_every_product(self, inventory_a, product_a, employee_a):
        make_product(inventory_a, name="Arroz", quantity=20, units_per_box=1)

        shift = shift_service.open_shift(inventory_a.id, employee_a.id)

        assert shift.status == "open"
        assert shift.opened_by_user_id == employee_a.id
        rows = {r.product_name: r for r in shift.inventory_rows}
        assert rows["Harina PAN"].initial_quantity == 50
        assert rows["Arroz"].initial_quantity == 20
        assert all(r.final_quantity is None and r.sold is None for r in rows.values())

    def test_only_one_open_shift_per_inventory(self, inventory_a, product_a):
        shift_service.open_shift(inventory_a.id, None)

        with pytest.raises(ConflictError):
            shift_service.open_shift(inventory_a.id, None)
        assert db.session.query(Shift).count() == 1

    def test_inventories_have_independent_shifts(self, inventory_a, inventory_a2):
        shift_service.open_shift(inventory_a.id, None)
        shift_service.open_shift(inventory_a2.id, None)
        assert db.session.query(Shift).filter_by(status="open").count() == 2

    def test_open_empty_inventory(self, inventory_a):
        shift = shift_service.open_shift(inventory_a.id, None)
        assert shift.inventory_rows == []


class TestCloseShift:
    def test_close_records_final_and_sold(self, inventory_a, product_a, admin_a):
        shift_service.open_shift(inventory_a.id, admin_a.id)
        _sell(inventory_a, product_a, 8)

        shift = shift_service.close_shift(inventory_a.id, admin_a.id, notes="  Sin novedad  ")

        assert shift.status == "closed"
        assert shift.closed_at is not None
        assert shift.closed_by_user_id == admin_a.id
        assert shift.notes == "Sin novedad"
        row = shift.inventory_rows[0]
        assert (row.initial_quantity, row.final_quantity, row.sold) == (50, 42, 8)

    def test_close_without_open_shift(self, inventory_a):
        with pytest.raises(NotFoundError):
            shift_service.close_shift(inventory_a.id, None)

    def test_can_reopen_after_close(self, inventory_a, product_a):
        first = shift_service.open_shift(inventory_a.id, None)
        shift_service.close_shift(inventory_a.id, None)
        second = shift_service.open_shift(inventory_a.id, None)

        assert second.id != first.id
        assert shift_service.current_shift(inventory_a.id).id == second.id

    def test_product_deleted_during_shift_keeps_no_final(self, inventory_a, product_a):
        shift_service.open_shift(inventory_a.id, None)
        products_service.delete_product(inventory_a.id, product_a.id)

        shift = shift_service.close_shift(inventory_a.id, None)

        row = shift.inventory_rows[0]
        assert row.product_id is None
        assert row.product_name == "Harina PAN"
        assert row.final_quantity is None
        assert db.session.query(ShiftInventory).count() == 1


class TestShiftQueries:
    def test_current_shift_none_when_closed(self, inventory_a):
        assert shift_service.current_shift(inventory_a.id) is None

    def test_dict_has_box_labels(self, inventory_a, product_a, owner_a):
        shift_service.open_shift(inventory_a.id, owner_a.id)
        _sell(inventory_a, product_a, 14)
        shift = shift_service.close_shift(inventory_a.id, owner_a.id)

        data = shift_service.shift_to_dict(shift)

        assert data["opened_by_username"] == "owner_a"
        row = data["inventory"][0]
        assert row["initial_display"] == "4 cajas + 2 und"
        assert row["final_display"] == "3 cajas"
        assert row["sold"] == 14

    def test_history_newest_first(self, inventory_a):
        first = shift_service.open_shift(inventory_a.id, None)
        shift_service.close_shift(inventory_a.id, None)
        second = shift_service.open_shift(inventory_a.id, None)

        assert [s.id for s in shift_service.shift_history(inventory_a.id)] == [second.id, first.id]

    def test_details_scoped_to_inventory(self, inventory_a, inventory_a2):
        shift = shift_service.open_shift(inventory_a.id, None)

        assert shift_service.shift_details(inventory_a.id, shift.id).id == shift.id
        with pytest.raises(NotFoundError):
            shift_service.shift_details(inventory_a2.id, shift.id)
