"""
Inventory ledger tests.

Verifies:
- Change detection: only real changes are logged
- Idempotent re-submission of a batch
- In-order processing of repeated pairs within a batch
- Up-front validation (nothing written on a bad batch)
- Atomicity on storage failure
- Log listing, summary and as-of reconstruction
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from palletrack.errors import AuthenticationError, PersistenceError, ValidationError
from palletrack.extensions import db
from palletrack.models import CurrentInventory, InventoryLog
from palletrack.services import ledger_service, location_service


def _entry(loc, product, qty):
    return {"location_id": loc.id, "product_id": product.id, "quantity": qty}


def _current(loc, product):
    db.session.expire_all()
    return db.session.query(CurrentInventory).filter_by(location_id=loc.id, product_id=product.id).first()


def _logs(loc=None, product=None):
    q = db.session.query(InventoryLog)
    if loc is not None:
        q = q.filter_by(location_id=loc.id)
    if product is not None:
        q = q.filter_by(product_id=product.id)
    return q.order_by(InventoryLog.id.asc()).all()


T0 = datetime(2026, 3, 2, 8, 0, 0)


# =============================================================================
# CHANGE DETECTION
# =============================================================================


class TestApplyEntries:

    def test_first_observation_then_confirmation(self, db_session, warehouse, user):
        a1, p1 = warehouse["a1"], warehouse["p1"]

        first = ledger_service.apply_entries([_entry(a1, p1, 12)], user.id, now=T0)
        assert first.changed == 1
        assert first.entries[0].previous_qty is None
        logs = _logs(a1, p1)
        assert [(l.previous_qty, l.new_qty) for l in logs] == [(None, 12)]

        later = T0 + timedelta(hours=3)
        second = ledger_service.apply_entries([_entry(a1, p1, 12)], user.id, now=later)
        assert second.changed == 0
        assert second.applied == 1
        assert len(_logs(a1, p1)) == 1

        row = _current(a1, p1)
        assert row.quantity == 12
        assert row.last_checked_at == later
        assert row.last_checked_by_id == user.id

    def test_change_is_logged_with_previous(self, db_session, warehouse, user):
        a1, p1 = warehouse["a1"], warehouse["p1"]
        ledger_service.apply_entries([_entry(a1, p1, 12)], user.id, now=T0)
        result = ledger_service.apply_entries([_entry(a1, p1, 8)], user.id, now=T0 + timedelta(minutes=5))

        assert result.changed == 1
        assert result.entries[0].previous_qty == 12
        assert [(l.previous_qty, l.new_qty) for l in _logs(a1, p1)] == [(None, 12), (12, 8)]
        assert _current(a1, p1).quantity == 8

    def test_same_batch_twice_is_idempotent(self, db_session, warehouse, user):
        batch = [
            _entry(warehouse["a1"], warehouse["p1"], 10),
            _entry(warehouse["a2"], warehouse["p1"], 4),
            _entry(warehouse["a2"], warehouse["p2"], 0),
        ]
        first = ledger_service.apply_entries(batch, user.id)
        state_after_first = sorted((r.location_id, r.product_id, r.quantity) for r in db.session.query(CurrentInventory))
        log_count = len(_logs())

        second = ledger_service.apply_entries(batch, user.id)
        state_after_second = sorted((r.location_id, r.product_id, r.quantity) for r in db.session.query(CurrentInventory))

        assert first.changed == 3
        assert second.changed == 0
        assert state_after_first == state_after_second
        assert len(_logs()) == log_count

    def test_zero_quantity_rows_are_retained(self, db_session, warehouse, user):
        a1, p1 = warehouse["a1"], warehouse["p1"]
        ledger_service.apply_entries([_entry(a1, p1, 5)], user.id)
        ledger_service.apply_entries([_entry(a1, p1, 0)], user.id)
        row = _current(a1, p1)
        assert row is not None
        assert row.quantity == 0

    def test_repeated_pair_in_one_batch_applies_in_order(self, db_session, warehouse, user):
        a1, p1 = warehouse["a1"], warehouse["p1"]
        result = ledger_service.apply_entries(
            [_entry(a1, p1, 3), _entry(a1, p1, 3), _entry(a1, p1, 7)], user.id
        )
        assert [e.changed for e in result.entries] == [True, False, True]
        assert [(l.previous_qty, l.new_qty) for l in _logs(a1, p1)] == [(None, 3), (3, 7)]
        assert _current(a1, p1).quantity == 7

    def test_string_digits_are_accepted(self, db_session, warehouse, user):
        a1, p1 = warehouse["a1"], warehouse["p1"]
        ledger_service.apply_entries(
            [{"location_id": str(a1.id), "product_id": str(p1.id), "quantity": "6"}], user.id
        )
        assert _current(a1, p1).quantity == 6

    def test_result_to_dict(self, db_session, warehouse, user):
        result = ledger_service.apply_entries([_entry(warehouse["a1"], warehouse["p1"], 2)], user.id, now=T0)
        body = result.to_dict()
        assert body["applied"] == 1
        assert body["changed"] == 1
        assert body["checked_at"] == "2026-03-02T08:00:00Z"
        assert body["entries"][0]["previous_qty"] is None


# =============================================================================
# VALIDATION (nothing written)
# =============================================================================


class TestApplyEntriesValidation:

    def test_unknown_user(self, db_session, warehouse):
        with pytest.raises(AuthenticationError):
            ledger_service.apply_entries([_entry(warehouse["a1"], warehouse["p1"], 1)], 987654)
        assert _logs() == []
        assert db.session.query(CurrentInventory).count() == 0

    def test_inactive_user(self, db_session, warehouse, user):
        user.is_active = False
        db.session.commit()
        with pytest.raises(AuthenticationError):
            ledger_service.apply_entries([_entry(warehouse["a1"], warehouse["p1"], 1)], user.id)

    def test_user_checked_before_entries(self, db_session):
        with pytest.raises(AuthenticationError):
            ledger_service.apply_entries([], None)

    @pytest.mark.parametrize("entries", [[], None, "x", {"location_id": 1}])
    def test_empty_or_malformed_batch(self, db_session, user, entries):
        with pytest.raises(ValidationError):
            ledger_service.apply_entries(entries, user.id)

    @pytest.mark.parametrize("missing", ["location_id", "product_id", "quantity"])
    def test_missing_field(self, db_session, warehouse, user, missing):
        entry = _entry(warehouse["a1"], warehouse["p1"], 1)
        del entry[missing]
        with pytest.raises(ValidationError):
            ledger_service.apply_entries([entry], user.id)

    @pytest.mark.parametrize("qty", [-1, 1.5, "abc", True])
    def test_bad_quantity(self, db_session, warehouse, user, qty):
        with pytest.raises(ValidationError):
            ledger_service.apply_entries([_entry(warehouse["a1"], warehouse["p1"], qty)], user.id)

    def test_unknown_location_or_product(self, db_session, warehouse, user):
        with pytest.raises(ValidationError):
            ledger_service.apply_entries(
                [{"location_id": 999, "product_id": warehouse["p1"].id, "quantity": 1}], user.id
            )
        with pytest.raises(ValidationError):
            ledger_service.apply_entries(
                [{"location_id": warehouse["a1"].id, "product_id": 999, "quantity": 1}], user.id
            )

    def test_inactive_location(self, db_session, warehouse, user):
        location_service.delete_location(warehouse["b"].id)
        with pytest.raises(ValidationError):
            ledger_service.apply_entries([_entry(warehouse["b"], warehouse["p1"], 1)], user.id)

    def test_non_leaf_location(self, db_session, warehouse, user):
        with pytest.raises(ValidationError):
            ledger_service.apply_entries([_entry(warehouse["root"], warehouse["p1"], 1)], user.id)

    def test_one_bad_entry_rejects_whole_batch(self, db_session, warehouse, user):
        with pytest.raises(ValidationError):
            ledger_service.apply_entries(
                [
                    _entry(warehouse["a1"], warehouse["p1"], 5),
                    _entry(warehouse["a2"], warehouse["p1"], -3),
                ],
                user.id,
            )
        assert _logs() == []
        assert db.session.query(CurrentInventory).count() == 0


# =============================================================================
# ATOMICITY
# =============================================================================


class TestAtomicity:

    def test_storage_failure_rolls_back_everything(self, db_session, warehouse, user, monkeypatch):
        a1, a2, p1 = warehouse["a1"], warehouse["a2"], warehouse["p1"]
        ledger_service.apply_entries([_entry(a1, p1, 1)], user.id)

        real_flush = db.session.flush
        calls = {"n": 0}

        def failing_flush(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))
            return real_flush(*args, **kwargs)

        monkeypatch.setattr(db.session, "flush", failing_flush)

        with pytest.raises(PersistenceError):
            ledger_service.apply_entries([_entry(a1, p1, 2), _entry(a2, p1, 9)], user.id)

        monkeypatch.undo()
        assert _current(a1, p1).quantity == 1
        assert _current(a2, p1) is None
        assert [(l.previous_qty, l.new_qty) for l in _logs()] == [(None, 1)]


# =============================================================================
# READS
# =============================================================================


class TestReads:

    def test_list_current_inventory_order_and_filters(self, db_session, warehouse, user):
        a1, a2, p1, p2 = warehouse["a1"], warehouse["a2"], warehouse["p1"], warehouse["p2"]
        ledger_service.apply_entries(
            [_entry(a2, p2, 1), _entry(a2, p1, 2), _entry(a1, p2, 3), _entry(warehouse["b"], p1, 4)],
            user.id,
        )

        rows = ledger_service.list_current_inventory()
        assert [(r["location"]["name"], r["product"]["name"]) for r in rows] == [
            ("A1", "Landi 2kg"),
            ("A2", "Feuermaxx 3kg"),
            ("A2", "Landi 2kg"),
            ("B", "Feuermaxx 3kg"),
        ]

        assert len(ledger_service.list_current_inventory(location_id=a2.id)) == 2
        assert len(ledger_service.list_current_inventory(parent_id=warehouse["root"].id)) == 3

    def test_list_logs_filters_newest_first(self, db_session, warehouse, user, make_user):
        other = make_user("Zweite", "2222")
        a1, p1, p2 = warehouse["a1"], warehouse["p1"], warehouse["p2"]
        ledger_service.apply_entries([_entry(a1, p1, 1)], user.id, now=T0)
        ledger_service.apply_entries([_entry(a1, p1, 2)], other.id, now=T0 + timedelta(days=1))
        ledger_service.apply_entries([_entry(a1, p2, 3)], user.id, now=T0 + timedelta(days=2))

        logs = ledger_service.list_logs()
        assert [l["new_qty"] for l in logs] == [3, 2, 1]

        assert [l["new_qty"] for l in ledger_service.list_logs(product_id=p1.id)] == [2, 1]
        assert [l["new_qty"] for l in ledger_service.list_logs(user_id=other.id)] == [2]
        assert len(ledger_service.list_logs(limit=1)) == 1

        # Bounds are inclusive
        window = ledger_service.list_logs(start=T0 + timedelta(days=1), end=T0 + timedelta(days=2))
        assert [l["new_qty"] for l in window] == [3, 2]

    def test_summary(self, db_session, warehouse, user):
        ledger_service.apply_entries(
            [_entry(warehouse["a1"], warehouse["p1"], 5), _entry(warehouse["a2"], warehouse["p1"], 7)],
            user.id,
            now=T0,
        )
        summary = ledger_service.inventory_summary()
        assert summary["total_pallets"] == 12
        assert summary["unique_locations"] == 2
        assert summary["oldest_check"] == "2026-03-02T08:00:00Z"
        assert summary["by_product"][0]["location_count"] == 2

    def test_inventory_as_of(self, db_session, warehouse, user):
        a1, p1 = warehouse["a1"], warehouse["p1"]
        ledger_service.apply_entries([_entry(a1, p1, 12)], user.id, now=T0)
        ledger_service.apply_entries([_entry(a1, p1, 8)], user.id, now=T0 + timedelta(days=2))

        assert ledger_service.inventory_as_of(T0 - timedelta(seconds=1)) == {}
        assert ledger_service.inventory_as_of(T0) == {(a1.id, p1.id): 12}
        assert ledger_service.inventory_as_of(T0 + timedelta(days=1)) == {(a1.id, p1.id): 12}
        assert ledger_service.inventory_as_of("2026-03-10T00:00:00Z") == {(a1.id, p1.id): 8}

    def test_inventory_as_of_bad_input(self, db_session):
        with pytest.raises(ValidationError):
            ledger_service.inventory_as_of("not a date")
