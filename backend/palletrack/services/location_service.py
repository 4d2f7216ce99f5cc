# Overview: Service-layer operations for storage locations; tree invariants and roll-ups.

"""
Location Hierarchy Service

Every mutation loads the active tree, runs all structural checks, and only
then writes. A failed check leaves the database untouched.

TREE RULES:
- parent relation is acyclic (CycleError)
- capacity only on leaves (InvalidOperationError)
- only capacity-free locations without stock take sub-locations (InvalidOperationError)
- no deletion while active children exist (HasChildrenError)
- names unique among active siblings (ConflictError)
"""

from __future__ import annotations

from flask import current_app

from ..errors import (
    ConflictError,
    CycleError,
    HasChildrenError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..hierarchy import LocationTree, ROLLUP_UNBOUNDED, utilization_percent
from ..models import CurrentInventory, StorageLocation
from ..validation import enforce_rules_location, validate_capacity
from .transactions import atomic

LOCATION_MUTABLE_FIELDS = {"name", "description", "x", "y", "width", "height", "color"}

# Sentinel for "parent_id not given" in list_locations (None means roots)
ALL = object()


def load_tree() -> LocationTree:
    rows = (
        db.session.query(StorageLocation.id, StorageLocation.parent_id, StorageLocation.capacity)
        .filter(StorageLocation.is_active.is_(True))
        .all()
    )
    return LocationTree(rows)


def get_location(location_id: int, *, include_inactive: bool = False) -> StorageLocation:
    loc = db.session.get(StorageLocation, location_id)
    if loc is None or (not include_inactive and not loc.is_active):
        raise NotFoundError("Location not found")
    return loc


def _active_parent(parent_id) -> StorageLocation:
    parent = db.session.get(StorageLocation, parent_id)
    if parent is None or not parent.is_active:
        raise ValidationError("parent_id does not reference an active location")
    return parent


def _clean_name(name) -> str:
    if name is None or not str(name).strip():
        raise ValidationError("name cannot be blank")
    return str(name).strip()


def _ensure_unique_sibling_name(name: str, parent_id: int | None, exclude_id: int | None = None) -> None:
    q = db.session.query(StorageLocation.id).filter(
        StorageLocation.is_active.is_(True),
        StorageLocation.name == name,
    )
    if parent_id is None:
        q = q.filter(StorageLocation.parent_id.is_(None))
    else:
        q = q.filter(StorageLocation.parent_id == parent_id)
    if exclude_id is not None:
        q = q.filter(StorageLocation.id != exclude_id)

    if q.first() is not None:
        raise ConflictError(f"A location named '{name}' already exists at this level")


def _check_new_parent(tree: LocationTree, location_id: int, new_parent_id: int | None) -> None:
    """Structural checks for re-parenting; raises before anything is written."""
    if new_parent_id is None:
        return

    if tree.would_create_cycle(location_id, new_parent_id):
        raise CycleError("A location cannot be moved below itself or one of its sub-locations")

    _check_parent_accepts_children(_active_parent(new_parent_id))


def _check_parent_accepts_children(parent: StorageLocation) -> None:
    """A future parent must be capacity-free and hold no stock."""
    if parent.capacity is not None:
        raise InvalidOperationError(
            "Parent location has a capacity; clear it before adding sub-locations"
        )
    stocked = (
        db.session.query(CurrentInventory.id)
        .filter(CurrentInventory.location_id == parent.id, CurrentInventory.quantity > 0)
        .first()
    )
    if stocked is not None:
        raise InvalidOperationError(
            "Parent location still holds pallets; move or zero them before adding sub-locations"
        )


def _check_capacity_change(tree: LocationTree, location_id: int) -> None:
    if not tree.is_leaf(location_id):
        raise InvalidOperationError(
            "Capacity can only be set on locations without sub-locations"
        )


def create_location(
    *,
    name: str,
    parent_id: int | None = None,
    description: str | None = None,
    x: int = 0,
    y: int = 0,
    width: int = 1,
    height: int = 1,
    color: str | None = None,
    capacity: int | None = None,
) -> StorageLocation:
    name = _clean_name(name)
    capacity = validate_capacity(capacity)
    enforce_rules_location({"x": x, "y": y, "width": width, "height": height, "color": color})

    if parent_id is not None:
        _check_parent_accepts_children(_active_parent(parent_id))

    _ensure_unique_sibling_name(name, parent_id)

    loc = StorageLocation(
        name=name,
        parent_id=parent_id,
        description=description,
        x=x,
        y=y,
        width=width,
        height=height,
        color=color,
        capacity=capacity,
        is_active=True,
    )
    with atomic("create location"):
        db.session.add(loc)

    current_app.logger.info("Location created id=%s name=%r parent_id=%s", loc.id, loc.name, loc.parent_id)
    return loc


def set_parent(location_id: int, new_parent_id: int | None) -> StorageLocation:
    """Move a location; None moves it to the root level."""
    loc = get_location(location_id)
    tree = load_tree()

    _check_new_parent(tree, location_id, new_parent_id)
    _ensure_unique_sibling_name(loc.name, new_parent_id, exclude_id=loc.id)

    with atomic("move location"):
        loc.parent_id = new_parent_id
    return loc


def set_capacity(location_id: int, capacity: int | None) -> StorageLocation:
    """Set or clear (None = unbounded) the pallet capacity of a leaf."""
    loc = get_location(location_id)
    capacity = validate_capacity(capacity)
    _check_capacity_change(load_tree(), location_id)

    with atomic("set location capacity"):
        loc.capacity = capacity
    return loc


def update_location(location_id: int, patch: dict) -> StorageLocation:
    """
    Apply a validated patch.

    parent_id and capacity go through the same checks as set_parent and
    set_capacity; every check runs before the first attribute is written.
    """
    loc = get_location(location_id)
    tree = load_tree()
    enforce_rules_location(patch)

    new_parent_id = patch.get("parent_id", loc.parent_id)
    parent_changed = "parent_id" in patch and patch["parent_id"] != loc.parent_id
    if parent_changed:
        _check_new_parent(tree, loc.id, new_parent_id)

    if "capacity" in patch:
        patch["capacity"] = validate_capacity(patch["capacity"])
        if patch["capacity"] != loc.capacity:
            _check_capacity_change(tree, loc.id)

    new_name = loc.name
    if "name" in patch:
        new_name = _clean_name(patch["name"])
        patch["name"] = new_name
    if parent_changed or new_name != loc.name:
        _ensure_unique_sibling_name(new_name, new_parent_id, exclude_id=loc.id)

    with atomic("update location"):
        for k, v in patch.items():
            if k in LOCATION_MUTABLE_FIELDS:
                setattr(loc, k, v)
        if parent_changed:
            loc.parent_id = new_parent_id
        if "capacity" in patch:
            loc.capacity = patch["capacity"]
    return loc


def delete_location(location_id: int) -> StorageLocation:
    """Soft-delete a location without active sub-locations."""
    loc = get_location(location_id)
    tree = load_tree()
    child_count = len(tree.children(location_id))
    if child_count:
        raise HasChildrenError(
            f"Location has {child_count} sub-location(s); delete or move them first"
        )

    with atomic("delete location"):
        loc.is_active = False

    current_app.logger.info("Location deactivated id=%s name=%r", loc.id, loc.name)
    return loc


def list_locations(
    parent_id=ALL,
    include_children: bool = False,
    include_inactive: bool = False,
) -> list[dict]:
    """
    parent_id=ALL lists every location, None lists roots, an id lists that
    location's direct children. Rows are ordered top-to-bottom, left-to-right.
    """
    q = db.session.query(StorageLocation)
    if not include_inactive:
        q = q.filter(StorageLocation.is_active.is_(True))
    if parent_id is None:
        q = q.filter(StorageLocation.parent_id.is_(None))
    elif parent_id is not ALL:
        q = q.filter(StorageLocation.parent_id == parent_id)

    locations = q.order_by(StorageLocation.y.asc(), StorageLocation.x.asc(), StorageLocation.id.asc()).all()

    active = (
        db.session.query(StorageLocation)
        .filter(StorageLocation.is_active.is_(True))
        .order_by(StorageLocation.y.asc(), StorageLocation.x.asc(), StorageLocation.id.asc())
        .all()
    )
    children_by_parent: dict[int, list[StorageLocation]] = {}
    for child in active:
        if child.parent_id is not None:
            children_by_parent.setdefault(child.parent_id, []).append(child)

    out = []
    for loc in locations:
        row = loc.to_dict()
        kids = children_by_parent.get(loc.id, [])
        row["child_count"] = len(kids)
        if include_children:
            row["children"] = [
                {**k.to_dict(), "child_count": len(children_by_parent.get(k.id, []))}
                for k in kids
            ]
        out.append(row)
    return out


def _rollup_policy() -> str:
    return current_app.config.get("CAPACITY_ROLLUP_POLICY", ROLLUP_UNBOUNDED)


def _tree_with(location_id: int) -> LocationTree:
    tree = load_tree()
    if location_id not in tree:
        raise NotFoundError("Location not found")
    return tree


def get_aggregate_capacity(location_id: int) -> int | None:
    tree = _tree_with(location_id)
    return tree.aggregate_capacity(location_id, _rollup_policy())


def _quantities_by_location(rows) -> dict[int, int]:
    totals: dict[int, int] = {}
    for row in rows:
        if isinstance(row, dict):
            loc_id, qty = row["location_id"], row["quantity"]
        else:
            loc_id, qty = row.location_id, row.quantity
        totals[loc_id] = totals.get(loc_id, 0) + (qty or 0)
    return totals


def get_aggregate_stock(location_id: int, inventory_rows=None) -> int:
    """
    Pallets on the leaves under location_id (or on location_id itself if it
    is a leaf). inventory_rows may be supplied as objects or dicts carrying
    location_id and quantity; otherwise current_inventory is read.
    """
    tree = _tree_with(location_id)
    leaves = tree.leaf_descendants(location_id)

    if inventory_rows is None:
        inventory_rows = (
            db.session.query(CurrentInventory.location_id, CurrentInventory.quantity)
            .filter(CurrentInventory.location_id.in_(leaves))
            .all()
        )
    return tree.aggregate_stock(location_id, _quantities_by_location(inventory_rows))


def get_rollup(location_id: int) -> dict:
    """Capacity/stock summary of one location for the floor-plan view."""
    tree = _tree_with(location_id)
    capacity = tree.aggregate_capacity(location_id, _rollup_policy())
    stock = get_aggregate_stock(location_id)
    return {
        "location_id": location_id,
        "capacity": capacity,
        "stock": stock,
        "utilization_percent": utilization_percent(stock, capacity),
        "leaf_count": len(tree.leaf_descendants(location_id)),
        "is_leaf": tree.is_leaf(location_id),
    }
