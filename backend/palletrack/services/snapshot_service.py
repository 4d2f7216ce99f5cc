# Overview: Service-layer operations for inventory snapshots (immutable point-in-time bundles).

"""
Snapshots never drive current inventory. current_inventory plus
inventory_logs is the system of record; a snapshot either freezes an
explicit list of counted entries or materializes the current table.
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import CurrentInventory, InventoryEntry, InventorySnapshot
from palletrack.time_utils import normalize_datetime
from .auth_service import require_active_user
from .ledger_service import parse_entries, validate_references
from .transactions import atomic

SOURCE_MANUAL = "MANUAL"
SOURCE_CURRENT = "CURRENT"


def create_snapshot(taken_by_id, notes: str | None = None, entries=None, taken_at=None) -> InventorySnapshot:
    """
    Store a snapshot taken by taken_by_id.

    With entries: validated like a ledger batch (the leaf rule does not
    apply) and stored as given. Without entries: copies every
    current_inventory row.
    """
    user = require_active_user(taken_by_id)
    try:
        taken_at = normalize_datetime(taken_at)
    except ValueError:
        raise ValidationError("taken_at must be an ISO-8601 datetime")

    if entries is not None:
        parsed = parse_entries(entries)
        validate_references(parsed, require_leaf=False)
        items = [(e.location_id, e.product_id, e.quantity) for e in parsed]
        source = SOURCE_MANUAL
    else:
        items = [
            (r.location_id, r.product_id, r.quantity)
            for r in db.session.query(CurrentInventory).order_by(CurrentInventory.id.asc()).all()
        ]
        source = SOURCE_CURRENT

    snapshot = InventorySnapshot(
        taken_at=taken_at,
        taken_by_id=user.id,
        notes=(notes.strip() or None) if isinstance(notes, str) else None,
        source=source,
    )
    for location_id, product_id, quantity in items:
        snapshot.entries.append(
            InventoryEntry(location_id=location_id, product_id=product_id, quantity=quantity)
        )

    with atomic("create snapshot"):
        db.session.add(snapshot)

    current_app.logger.info(
        "Snapshot created id=%s source=%s entries=%s", snapshot.id, source, len(items)
    )
    return snapshot


def list_snapshots(limit: int = 50) -> list[dict]:
    if limit is None:
        limit = 50
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    rows = (
        db.session.query(InventorySnapshot)
        .order_by(InventorySnapshot.taken_at.desc(), InventorySnapshot.id.desc())
        .limit(limit)
        .all()
    )
    return [s.to_dict() for s in rows]


def get_snapshot(snapshot_id: int) -> dict:
    snapshot = db.session.get(InventorySnapshot, snapshot_id)
    if snapshot is None:
        raise NotFoundError("Snapshot not found")
    return snapshot.to_dict(include_entries=True)
