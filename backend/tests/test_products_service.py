"""
Product service tests.

Verifies:
- Codes are unique among active products (create, update, reactivate)
- Soft delete keeps log history resolvable
- Listing order and filters
"""

import pytest

from palletrack.errors import ConflictError, NotFoundError
from palletrack.services import ledger_service, products_service


# =============================================================================
# CODE UNIQUENESS
# =============================================================================


class TestProductCodes:

    def test_create_with_active_code_rejected(self, db_session, warehouse):
        with pytest.raises(ConflictError):
            products_service.create_product(patch={"name": "Kopie", "code": "FM3"})

    def test_create_without_code_allowed_twice(self, db_session):
        a = products_service.create_product(patch={"name": "Lose Ware"})
        b = products_service.create_product(patch={"name": "Lose Ware 2"})
        assert a["code"] is None and b["code"] is None

    def test_update_to_other_products_code_rejected(self, db_session, warehouse):
        with pytest.raises(ConflictError):
            products_service.update_product(product_id=warehouse["p2"].id, patch={"code": "FM3"})
        assert products_service.get_product(warehouse["p2"].id).code == "L2"

    def test_update_keeping_own_code(self, db_session, warehouse):
        updated = products_service.update_product(
            product_id=warehouse["p1"].id, patch={"code": "FM3", "name": "Feuermaxx 3 kg"}
        )
        assert updated["name"] == "Feuermaxx 3 kg"

    def test_code_of_deleted_product_can_be_reused(self, db_session, warehouse):
        products_service.delete_product(product_id=warehouse["p1"].id)
        created = products_service.create_product(patch={"name": "Nachfolger", "code": "FM3"})
        assert created["is_active"] is True

    def test_reactivation_with_taken_code_rejected(self, db_session, warehouse):
        old = warehouse["p1"]
        products_service.delete_product(product_id=old.id)
        products_service.create_product(patch={"name": "Nachfolger", "code": "FM3"})

        with pytest.raises(ConflictError):
            products_service.update_product(product_id=old.id, patch={"is_active": True})
        assert products_service.get_product(old.id).is_active is False

        active = products_service.list_products()["items"]
        assert [p["code"] for p in active].count("FM3") == 1

    def test_reactivation_with_new_code(self, db_session, warehouse):
        old = warehouse["p1"]
        products_service.delete_product(product_id=old.id)
        products_service.create_product(patch={"name": "Nachfolger", "code": "FM3"})

        revived = products_service.update_product(product_id=old.id, patch={"is_active": True, "code": "FM3-ALT"})
        assert revived["is_active"] is True
        assert revived["code"] == "FM3-ALT"

    def test_reactivation_with_free_code(self, db_session, warehouse):
        products_service.delete_product(product_id=warehouse["p2"].id)
        revived = products_service.update_product(product_id=warehouse["p2"].id, patch={"is_active": True})
        assert revived["is_active"] is True
        assert revived["code"] == "L2"


# =============================================================================
# SOFT DELETE
# =============================================================================


class TestDeleteProduct:

    def test_delete_is_soft_and_idempotent(self, db_session, warehouse):
        first = products_service.delete_product(product_id=warehouse["p1"].id)
        second = products_service.delete_product(product_id=warehouse["p1"].id)
        assert first["is_active"] is False
        assert second["is_active"] is False
        assert products_service.get_product(warehouse["p1"].id).name == "Feuermaxx 3kg"

    def test_logs_still_resolve_deleted_product(self, db_session, warehouse, user):
        a1, p1 = warehouse["a1"], warehouse["p1"]
        ledger_service.apply_entries([{"location_id": a1.id, "product_id": p1.id, "quantity": 4}], user.id)
        products_service.delete_product(product_id=p1.id)

        logs = ledger_service.list_logs(product_id=p1.id)
        assert len(logs) == 1
        assert logs[0]["product"]["name"] == "Feuermaxx 3kg"
        assert logs[0]["product"]["code"] == "FM3"

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.get_product(4242)
        with pytest.raises(NotFoundError):
            products_service.delete_product(product_id=4242)


# =============================================================================
# LISTING
# =============================================================================


class TestListProducts:

    def test_ordered_by_category_then_name(self, db_session, make_product):
        make_product("Zylinder", category="finished")
        make_product("Karton", category="packaging")
        make_product("Alpha", category="finished")
        make_product("Wachs", category="raw")

        names = [p["name"] for p in products_service.list_products()["items"]]
        assert names == ["Alpha", "Zylinder", "Karton", "Wachs"]

    def test_inactive_hidden_by_default(self, db_session, warehouse):
        products_service.delete_product(product_id=warehouse["p2"].id)

        active = products_service.list_products()
        assert active["count"] == 1
        everything = products_service.list_products(include_inactive=True)
        assert everything["count"] == 2

    def test_category_filter(self, db_session, make_product):
        make_product("Karton", category="packaging")
        make_product("Alpha", category="finished")

        listed = products_service.list_products(category="packaging")
        assert [p["name"] for p in listed["items"]] == ["Karton"]

    def test_default_category(self, db_session):
        created = products_service.create_product(patch={"name": "Ohne Kategorie"})
        assert created["category"] == "finished"
