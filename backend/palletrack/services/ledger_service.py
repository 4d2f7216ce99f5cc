# Overview: Service-layer operations for ledger; current inventory, change log and as-of views.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..hierarchy import LocationTree
from ..models import CurrentInventory, InventoryLog, ProductVariant, StorageLocation
from ..validation import coerce_int, validate_quantity
from palletrack.time_utils import normalize_datetime, to_utc_z
from .auth_service import require_active_user
from .location_service import load_tree
from .transactions import atomic
"""
Inventory Ledger Invariants (authoritative)

- current_inventory holds exactly one row per (location, product) ever observed.
- inventory_logs is append-only; no code path updates or deletes a row.
- A log row is written iff the pair was unobserved or its quantity changed.
- Every observation (changed or not) refreshes last_checked_at / last_checked_by.
- A batch is one transaction: either every entry lands or none does.
- Concurrent batches: last writer wins. No locking, versioning or retries.
"""

REQUIRED_ENTRY_FIELDS = ("location_id", "product_id", "quantity")


@dataclass(frozen=True)
class InventoryEntryInput:
    location_id: int
    product_id: int
    quantity: int


@dataclass
class AppliedEntry:
    location_id: int
    product_id: int
    quantity: int
    previous_qty: int | None
    changed: bool

    def to_dict(self) -> dict:
        return {
            "location_id": self.location_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "previous_qty": self.previous_qty,
            "changed": self.changed,
        }


@dataclass
class ApplyResult:
    entries: list[AppliedEntry] = field(default_factory=list)
    checked_at: datetime | None = None

    @property
    def applied(self) -> int:
        return len(self.entries)

    @property
    def changed(self) -> int:
        return sum(1 for e in self.entries if e.changed)

    def to_dict(self) -> dict:
        return {
            "applied": self.applied,
            "changed": self.changed,
            "checked_at": to_utc_z(self.checked_at),
            "entries": [e.to_dict() for e in self.entries],
        }


def parse_entries(entries) -> list[InventoryEntryInput]:
    """Shape-check a raw batch. Raises ValidationError naming the first bad entry."""
    if not isinstance(entries, list) or not entries:
        raise ValidationError("At least one inventory entry is required")

    parsed: list[InventoryEntryInput] = []
    for idx, raw in enumerate(entries):
        if not isinstance(raw, dict):
            raise ValidationError(f"entries[{idx}] must be an object")
        missing = [k for k in REQUIRED_ENTRY_FIELDS if raw.get(k) is None]
        if missing:
            raise ValidationError(
                f"entries[{idx}] is missing {', '.join(missing)} "
                "(each entry needs location_id, product_id and quantity)"
            )
        try:
            parsed.append(InventoryEntryInput(
                location_id=coerce_int("location_id", raw["location_id"]),
                product_id=coerce_int("product_id", raw["product_id"]),
                quantity=validate_quantity("quantity", raw["quantity"]),
            ))
        except ValidationError as e:
            raise ValidationError(f"entries[{idx}]: {e}")
    return parsed


def validate_references(
    entries: list[InventoryEntryInput],
    *,
    require_leaf: bool = True,
    tree: LocationTree | None = None,
) -> None:
    """
    Every referenced location and product must exist and be active; with
    require_leaf, locations must also have no active sub-locations.
    """
    location_ids = {e.location_id for e in entries}
    product_ids = {e.product_id for e in entries}

    active_locations = {
        row.id for row in db.session.query(StorageLocation.id).filter(
            StorageLocation.id.in_(location_ids),
            StorageLocation.is_active.is_(True),
        )
    }
    active_products = {
        row.id for row in db.session.query(ProductVariant.id).filter(
            ProductVariant.id.in_(product_ids),
            ProductVariant.is_active.is_(True),
        )
    }

    if require_leaf and tree is None:
        tree = load_tree()

    for idx, e in enumerate(entries):
        if e.location_id not in active_locations:
            raise ValidationError(f"entries[{idx}]: location {e.location_id} does not exist or is inactive")
        if e.product_id not in active_products:
            raise ValidationError(f"entries[{idx}]: product {e.product_id} does not exist or is inactive")
        if require_leaf and not tree.is_leaf(e.location_id):
            raise ValidationError(
                f"entries[{idx}]: location {e.location_id} has sub-locations; record stock on a leaf"
            )


def apply_entries(entries, acting_user_id, now=None) -> ApplyResult:
    """
    Record a batch of observed quantities as acting_user_id.

    The user is checked first (AuthenticationError), then every entry is
    validated (ValidationError); only then is anything written. Entries are
    applied in order, so a pair repeated in the batch compares against the
    quantity the earlier entry just wrote.
    """
    user = require_active_user(acting_user_id)
    parsed = parse_entries(entries)
    validate_references(parsed)

    try:
        checked_at = normalize_datetime(now)
    except ValueError:
        raise ValidationError("now must be an ISO-8601 datetime")

    result = ApplyResult(checked_at=checked_at)

    with atomic("apply inventory entries"):
        for e in parsed:
            row = (
                db.session.query(CurrentInventory)
                .filter_by(location_id=e.location_id, product_id=e.product_id)
                .first()
            )
            previous = row.quantity if row is not None else None
            changed = previous is None or previous != e.quantity

            if changed:
                db.session.add(InventoryLog(
                    location_id=e.location_id,
                    product_id=e.product_id,
                    previous_qty=previous,
                    new_qty=e.quantity,
                    changed_by_id=user.id,
                    changed_at=checked_at,
                ))

            if row is None:
                row = CurrentInventory(location_id=e.location_id, product_id=e.product_id)
                db.session.add(row)
            row.quantity = e.quantity
            row.last_checked_at = checked_at
            row.last_checked_by_id = user.id

            # Later entries for the same pair must see this write
            db.session.flush()

            result.entries.append(AppliedEntry(
                location_id=e.location_id,
                product_id=e.product_id,
                quantity=e.quantity,
                previous_qty=previous,
                changed=changed,
            ))

    current_app.logger.info(
        "Inventory batch applied user_id=%s applied=%s changed=%s",
        user.id, result.applied, result.changed,
    )
    return result


def list_current_inventory(location_id: int | None = None, parent_id: int | None = None) -> list[dict]:
    """
    Current rows, ordered by location name then product name.

    location_id selects one location; otherwise parent_id selects the rows of
    every direct child of that parent.
    """
    q = (
        db.session.query(CurrentInventory)
        .join(StorageLocation, CurrentInventory.location_id == StorageLocation.id)
        .join(ProductVariant, CurrentInventory.product_id == ProductVariant.id)
    )
    if location_id is not None:
        q = q.filter(CurrentInventory.location_id == location_id)
    elif parent_id is not None:
        q = q.filter(StorageLocation.parent_id == parent_id)

    rows = q.order_by(StorageLocation.name.asc(), ProductVariant.name.asc(), CurrentInventory.id.asc()).all()
    return [r.to_dict() for r in rows]


def list_logs(
    location_id: int | None = None,
    product_id: int | None = None,
    user_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
) -> list[dict]:
    """Change log, newest first. start and end are inclusive."""
    if limit is None:
        limit = 100
    if limit < 1:
        raise ValidationError("limit must be >= 1")

    q = db.session.query(InventoryLog)
    if location_id is not None:
        q = q.filter(InventoryLog.location_id == location_id)
    if product_id is not None:
        q = q.filter(InventoryLog.product_id == product_id)
    if user_id is not None:
        q = q.filter(InventoryLog.changed_by_id == user_id)
    if start is not None:
        q = q.filter(InventoryLog.changed_at >= start)
    if end is not None:
        q = q.filter(InventoryLog.changed_at <= end)

    rows = q.order_by(InventoryLog.changed_at.desc(), InventoryLog.id.desc()).limit(limit).all()
    return [r.to_dict() for r in rows]


def inventory_summary() -> dict:
    """Totals, freshness and per-location / per-product breakdown of current inventory."""
    rows = db.session.query(CurrentInventory).all()

    by_location: dict[int, dict] = {}
    by_product: dict[int, dict] = {}
    for r in rows:
        loc = by_location.setdefault(r.location_id, {
            "location": r.location.to_ref() if r.location else None,
            "total_pallets": 0,
            "product_count": 0,
            "last_checked_at": r.last_checked_at,
        })
        loc["total_pallets"] += r.quantity
        loc["product_count"] += 1
        if r.last_checked_at > loc["last_checked_at"]:
            loc["last_checked_at"] = r.last_checked_at

        prod = by_product.setdefault(r.product_id, {
            "product": r.product.to_ref() if r.product else None,
            "total_pallets": 0,
            "location_count": 0,
        })
        prod["total_pallets"] += r.quantity
        prod["location_count"] += 1

    check_dates = [r.last_checked_at for r in rows]
    for loc in by_location.values():
        loc["last_checked_at"] = to_utc_z(loc["last_checked_at"])

    return {
        "total_pallets": sum(r.quantity for r in rows),
        "unique_locations": len(by_location),
        "oldest_check": to_utc_z(min(check_dates)) if check_dates else None,
        "newest_check": to_utc_z(max(check_dates)) if check_dates else None,
        "by_location": list(by_location.values()),
        "by_product": list(by_product.values()),
    }


def inventory_as_of(at) -> dict[tuple[int, int], int]:
    """
    Reconstruct (location_id, product_id) -> quantity as of `at` (inclusive)
    from the change log: each pair's latest log row with changed_at <= at.
    """
    try:
        at = normalize_datetime(at)
    except ValueError:
        raise ValidationError("at must be an ISO-8601 datetime")

    rows = (
        db.session.query(InventoryLog.location_id, InventoryLog.product_id, InventoryLog.new_qty)
        .filter(InventoryLog.changed_at <= at)
        .order_by(InventoryLog.changed_at.asc(), InventoryLog.id.asc())
        .all()
    )
    state: dict[tuple[int, int], int] = {}
    for r in rows:
        state[(r.location_id, r.product_id)] = r.new_qty
    return state
