"""
Inventory snapshot tests.

Snapshots are frozen bundles; they never touch current inventory.
"""

from datetime import datetime

import pytest

from palletrack.errors import AuthenticationError, NotFoundError, ValidationError
from palletrack.extensions import db
from palletrack.models import CurrentInventory, InventoryLog
from palletrack.services import ledger_service, snapshot_service


def _entry(loc, product, qty):
    return {"location_id": loc.id, "product_id": product.id, "quantity": qty}


class TestCreateSnapshot:

    def test_explicit_entries(self, db_session, warehouse, user):
        snap = snapshot_service.create_snapshot(
            user.id,
            notes="  Monatsinventur  ",
            entries=[_entry(warehouse["a1"], warehouse["p1"], 4), _entry(warehouse["a2"], warehouse["p2"], 6)],
            taken_at="2026-01-31T18:00:00Z",
        )
        body = snap.to_dict()
        assert body["source"] == "MANUAL"
        assert body["notes"] == "Monatsinventur"
        assert body["entry_count"] == 2
        assert body["total_quantity"] == 10
        assert body["taken_at"] == "2026-01-31T18:00:00Z"

    def test_does_not_touch_current_inventory(self, db_session, warehouse, user):
        snapshot_service.create_snapshot(user.id, entries=[_entry(warehouse["a1"], warehouse["p1"], 4)])
        assert db.session.query(CurrentInventory).count() == 0
        assert db.session.query(InventoryLog).count() == 0

    def test_parent_location_allowed(self, db_session, warehouse, user):
        snap = snapshot_service.create_snapshot(user.id, entries=[_entry(warehouse["root"], warehouse["p1"], 1)])
        assert snap.source == "MANUAL"

    def test_materializes_current_inventory(self, db_session, warehouse, user):
        ledger_service.apply_entries(
            [_entry(warehouse["a1"], warehouse["p1"], 3), _entry(warehouse["a2"], warehouse["p1"], 5)],
            user.id,
        )
        snap = snapshot_service.create_snapshot(user.id)
        assert snap.source == "CURRENT"
        assert sorted(e.quantity for e in snap.entries) == [3, 5]

        # Later changes do not alter the stored snapshot
        ledger_service.apply_entries([_entry(warehouse["a1"], warehouse["p1"], 9)], user.id)
        stored = snapshot_service.get_snapshot(snap.id)
        assert stored["total_quantity"] == 8

    def test_invalid_entries_rejected(self, db_session, warehouse, user):
        with pytest.raises(ValidationError):
            snapshot_service.create_snapshot(user.id, entries=[_entry(warehouse["a1"], warehouse["p1"], -1)])
        with pytest.raises(ValidationError):
            snapshot_service.create_snapshot(user.id, entries=[])

    def test_bad_taken_at(self, db_session, user):
        with pytest.raises(ValidationError):
            snapshot_service.create_snapshot(user.id, taken_at="yesterday")

    def test_unknown_user(self, db_session):
        with pytest.raises(AuthenticationError):
            snapshot_service.create_snapshot(4242)


class TestReadSnapshots:

    def test_list_newest_first(self, db_session, warehouse, user):
        for day in (1, 3, 2):
            snapshot_service.create_snapshot(
                user.id,
                notes=f"day {day}",
                entries=[_entry(warehouse["a1"], warehouse["p1"], day)],
                taken_at=datetime(2026, 2, day, 12, 0),
            )
        rows = snapshot_service.list_snapshots()
        assert [r["notes"] for r in rows] == ["day 3", "day 2", "day 1"]
        assert "entries" not in rows[0]
        assert len(snapshot_service.list_snapshots(limit=2)) == 2

    def test_get_includes_entries(self, db_session, warehouse, user):
        snap = snapshot_service.create_snapshot(user.id, entries=[_entry(warehouse["a2"], warehouse["p2"], 7)])
        body = snapshot_service.get_snapshot(snap.id)
        assert body["entries"][0]["location"]["name"] == "A2"
        assert body["entries"][0]["quantity"] == 7

    def test_get_missing(self, db_session):
        with pytest.raises(NotFoundError):
            snapshot_service.get_snapshot(999)

    def test_bad_limit(self, db_session):
        with pytest.raises(ValidationError):
            snapshot_service.list_snapshots(limit=0)
