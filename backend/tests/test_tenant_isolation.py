"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

Two organizations (A with two inventories, B with one) and users in each.
Verifies that:
1. A member of Organization A cannot read or write Organization B data
2. Unknown inventory ids are not distinguishable from foreign ones for members
3. Rows of one inventory are invisible through another inventory of the same org
4. Missing or malformed tenant headers are rejected
"""

import pytest

from inventario.extensions import db
from inventario.models import Product
from inventario.services import tenant_service, ledger_service
from inventario.services.permission_service import PermissionDeniedError
from inventario.validation import ValidationError, NotFoundError

from conftest import get_auth_token, auth_headers


class TestTenantServiceHelpers:
    """tenant_service resolution."""

    def test_member_resolves_own_inventory(self, owner_a, inventory_a):
        context = tenant_service.resolve_inventory(owner_a, inventory_a.id)
        assert context.inventory_id == inventory_a.id
        assert context.organization_id == inventory_a.organization_id
        assert context.role.value == "owner"

    def test_foreign_inventory_denied(self, owner_a, inventory_b):
        with pytest.raises(PermissionDeniedError):
            tenant_service.resolve_inventory(owner_a, inventory_b.id)

    def test_unknown_inventory_denied_for_member(self, owner_a):
        with pytest.raises(PermissionDeniedError):
            tenant_service.resolve_inventory(owner_a, 99999)

    def test_unknown_inventory_not_found_for_superuser(self, superuser):
        with pytest.raises(NotFoundError):
            tenant_service.resolve_inventory(superuser, 99999)

    def test_superuser_resolves_any_inventory(self, superuser, inventory_b):
        context = tenant_service.resolve_inventory(superuser, inventory_b.id)
        assert context.role is None
        assert context.inventory_id == inventory_b.id

    def test_inactive_organization_not_found(self, db_session, owner_a, org_a, inventory_a):
        org_a.is_active = False
        db_session.commit()
        with pytest.raises(NotFoundError):
            tenant_service.resolve_inventory(owner_a, inventory_a.id)

    @pytest.mark.parametrize("raw", [None, "", "  ", "abc", "0", "-3", "1.5"])
    def test_malformed_header_value(self, raw):
        with pytest.raises(ValidationError):
            tenant_service.parse_tenant_id(raw, tenant_service.INVENTORY_HEADER)


class TestCrossTenantRequests:
    """User of Org A pointing at Org B resources."""

    @pytest.fixture
    def token_a(self, client, admin_a):
        return get_auth_token(client, "admin_a")

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/inventory/products"),
        ("post", "/api/inventory/products"),
        ("get", "/api/sales"),
        ("post", "/api/sales"),
        ("get", "/api/cash-close/products"),
        ("post", "/api/shifts/open"),
        ("get", "/api/sales/daily-report"),
    ])
    def test_foreign_inventory_header_forbidden(self, client, token_a, inventory_b, method, path):
        response = getattr(client, method)(path, headers=auth_headers(token_a, inventory=inventory_b), json={})
        assert response.status_code == 403

    @pytest.mark.parametrize("path", ["/api/accounting/accounts", "/api/settings/exchange-rate"])
    def test_foreign_organization_header_forbidden(self, client, token_a, org_b, path):
        response = client.get(path, headers=auth_headers(token_a, organization=org_b))
        assert response.status_code == 403

    def test_foreign_product_write_leaves_row_untouched(self, client, token_a, inventory_a, product_b):
        response = client.put(
            f"/api/inventory/products/{product_b.id}",
            headers=auth_headers(token_a, inventory=inventory_a),
            json={"quantity": 0},
        )
        assert response.status_code == 404

        db.session.expire_all()
        assert db.session.get(Product, product_b.id).quantity == 30

    def test_foreign_transaction_delete_not_found(self, client, token_a, org_a, org_b, inventory_b):
        accounts = {a.code: a.id for a in ledger_service.list_accounts(org_b.id)}
        txn = ledger_service.post_transaction(
            org_b.id,
            entries=[
                {"account_id": accounts["1000"], "debit": "5"},
                {"account_id": accounts["4000"], "credit": "5"},
            ],
            description="Venta B",
        )

        response = client.delete(
            f"/api/accounting/transactions/{txn.id}",
            headers=auth_headers(token_a, organization=org_a),
        )
        assert response.status_code == 404
        assert len(ledger_service.list_transactions(org_b.id)) == 1

    def test_foreign_account_in_entry_rejected(self, client, token_a, org_a, org_b):
        own = {a.code: a.id for a in ledger_service.list_accounts(org_a.id)}
        foreign = {a.code: a.id for a in ledger_service.list_accounts(org_b.id)}

        response = client.post(
            "/api/accounting/transactions",
            headers=auth_headers(token_a, organization=org_a),
            json={
                "description": "Cruzada",
                "entries": [
                    {"account_id": own["1000"], "debit": "5"},
                    {"account_id": foreign["4000"], "credit": "5"},
                ],
            },
        )
        assert response.status_code == 400

    def test_listing_only_shows_own_accounts(self, client, token_a, org_a, org_b):
        response = client.get("/api/accounting/accounts", headers=auth_headers(token_a, organization=org_a))
        assert response.status_code == 200
        assert {a["organization_id"] for a in response.json} == {org_a.id}


class TestSameOrganizationInventories:
    def test_products_scoped_to_inventory(self, client, admin_a, inventory_a, inventory_a2, product_a):
        token = get_auth_token(client, "admin_a")

        own = client.get("/api/inventory/products", headers=auth_headers(token, inventory=inventory_a))
        other = client.get("/api/inventory/products", headers=auth_headers(token, inventory=inventory_a2))

        assert [p["id"] for p in own.json] == [product_a.id]
        assert other.json == []

    def test_product_from_sibling_inventory_not_found(self, client, admin_a, inventory_a2, product_a):
        token = get_auth_token(client, "admin_a")
        response = client.get(
            f"/api/inventory/products/{product_a.id}",
            headers=auth_headers(token, inventory=inventory_a2),
        )
        assert response.status_code == 404

    def test_inventory_header_implies_organization(self, client, admin_a, org_a, inventory_a):
        token = get_auth_token(client, "admin_a")
        response = client.get("/api/accounting/accounts", headers=auth_headers(token, inventory=inventory_a))
        assert response.status_code == 200
        assert {a["organization_id"] for a in response.json} == {org_a.id}


class TestTenantHeaders:
    def test_missing_inventory_header(self, client, admin_a):
        token = get_auth_token(client, "admin_a")
        response = client.get("/api/inventory/products", headers=auth_headers(token))
        assert response.status_code == 400

    def test_malformed_inventory_header(self, client, admin_a):
        token = get_auth_token(client, "admin_a")
        headers = auth_headers(token)
        headers["X-Inventory-Id"] = "abc"
        assert client.get("/api/inventory/products", headers=headers).status_code == 400

    def test_missing_organization_header(self, client, admin_a):
        token = get_auth_token(client, "admin_a")
        response = client.get("/api/accounting/accounts", headers=auth_headers(token))
        assert response.status_code == 400

    def test_unknown_inventory_forbidden_for_member(self, client, admin_a):
        token = get_auth_token(client, "admin_a")
        headers = auth_headers(token)
        headers["X-Inventory-Id"] = "99999"
        assert client.get("/api/inventory/products", headers=headers).status_code == 403

    def test_unknown_inventory_not_found_for_superuser(self, client, superuser):
        token = get_auth_token(client, "root")
        headers = auth_headers(token)
        headers["X-Inventory-Id"] = "99999"
        assert client.get("/api/inventory/products", headers=headers).status_code == 404
