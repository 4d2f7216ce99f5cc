# Overview: Service-layer operations for analytics; dashboards derived from current inventory and the change log.

"""
Analytics Service

Nothing here is stored. build_analytics() reads current_inventory,
storage_locations, product_variants and a window of inventory_logs and
recomputes the whole bundle on every call.

The replay/aggregation helpers are pure functions over in-memory rows
(anything with changed_at, previous_qty, new_qty, product_id attributes),
so they can be exercised without a database.

Days are UTC calendar days (YYYY-MM-DD).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..hierarchy import utilization_percent
from ..models import CurrentInventory, InventoryLog, ProductVariant, StorageLocation, User
from palletrack.time_utils import day_key, days_ago, normalize_datetime, to_utc_z


def net_delta(log) -> int:
    """Signed change recorded by a log row; a first observation counts from zero."""
    return log.new_qty - (log.previous_qty or 0)


def _day_keys(today: datetime, days: int) -> list[str]:
    """`days` calendar-day keys ending with today, oldest first."""
    return [day_key(today - timedelta(days=i)) for i in range(days - 1, -1, -1)]


def replay_stock_history(current_total: int, logs: Iterable, today: datetime, days: int) -> list[dict]:
    """
    Daily total stock for the last `days` days plus today, oldest first.

    Walks backwards from today: record the running total for the day, then
    undo that day's net deltas to get the previous day's closing total.
    """
    deltas_by_day: dict[str, int] = {}
    for log in logs:
        key = day_key(log.changed_at)
        deltas_by_day[key] = deltas_by_day.get(key, 0) + net_delta(log)

    history: list[dict] = []
    running = current_total
    for i in range(days + 1):
        key = day_key(today - timedelta(days=i))
        history.append({"date": key, "total_stock": running})
        running -= deltas_by_day.get(key, 0)

    history.reverse()
    return history


def activity_by_day(logs: Iterable, today: datetime, days: int = 7) -> list[dict]:
    """Changes, pallets added and pallets removed per day for the last `days` days."""
    buckets = {
        key: {"date": key, "changes": 0, "total_added": 0, "total_removed": 0}
        for key in _day_keys(today, days)
    }
    for log in logs:
        bucket = buckets.get(day_key(log.changed_at))
        if bucket is None:
            continue
        bucket["changes"] += 1
        diff = net_delta(log)
        if diff > 0:
            bucket["total_added"] += diff
        else:
            bucket["total_removed"] += -diff
    return list(buckets.values())


def rank_top_movers(logs: Iterable, products: Iterable, limit: int = 5) -> list[dict]:
    """
    Products ranked by absolute movement (added + removed), busiest first.

    Products without movement are left out. Ties keep product order.
    """
    activity: dict[int, dict] = {}
    for log in logs:
        a = activity.setdefault(log.product_id, {"added": 0, "removed": 0, "changes": 0})
        a["changes"] += 1
        diff = net_delta(log)
        if diff > 0:
            a["added"] += diff
        else:
            a["removed"] += -diff

    movers = []
    for p in products:
        a = activity.get(p.id)
        if not a:
            continue
        movement = a["added"] + a["removed"]
        if movement <= 0:
            continue
        movers.append({
            "id": p.id,
            "name": p.name,
            "code": p.code,
            "color": p.color,
            "added": a["added"],
            "removed": a["removed"],
            "changes": a["changes"],
            "total_movement": movement,
        })

    movers.sort(key=lambda m: m["total_movement"], reverse=True)
    return movers[:limit]


def _staff_activity(logs: Iterable, users_by_id: dict[int, User]) -> list[dict]:
    staff: dict[int, dict] = {}
    for log in logs:
        entry = staff.get(log.changed_by_id)
        if entry is None:
            user = users_by_id.get(log.changed_by_id)
            entry = staff[log.changed_by_id] = {
                "user_id": log.changed_by_id,
                "user_name": user.name if user else "Unknown",
                "changes": 0,
                "last_activity": log.changed_at,
            }
        entry["changes"] += 1
        if log.changed_at > entry["last_activity"]:
            entry["last_activity"] = log.changed_at

    out = sorted(staff.values(), key=lambda s: s["last_activity"], reverse=True)
    for s in out:
        s["last_activity"] = to_utc_z(s["last_activity"])
    return out


def build_analytics(now=None) -> dict:
    now = normalize_datetime(now)
    cfg = current_app.config
    history_days = cfg.get("STOCK_HISTORY_DAYS", 30)
    activity_days = cfg.get("ACTIVITY_WINDOW_DAYS", 7)
    movers_days = cfg.get("TOP_MOVERS_WINDOW_DAYS", 7)
    movers_limit = cfg.get("TOP_MOVERS_LIMIT", 5)
    staff_days = 30

    inventory = db.session.query(CurrentInventory).all()
    locations = (
        db.session.query(StorageLocation)
        .filter(StorageLocation.is_active.is_(True))
        .order_by(StorageLocation.id.asc())
        .all()
    )
    products = (
        db.session.query(ProductVariant)
        .filter(ProductVariant.is_active.is_(True))
        .order_by(ProductVariant.id.asc())
        .all()
    )

    # One log read covers every window; history needs the most days
    oldest_day = datetime.combine((now - timedelta(days=max(history_days, staff_days))).date(), datetime.min.time())
    logs = (
        db.session.query(InventoryLog)
        .filter(InventoryLog.changed_at >= oldest_day, InventoryLog.changed_at <= now)
        .order_by(InventoryLog.changed_at.asc(), InventoryLog.id.asc())
        .all()
    )
    users_by_id = {u.id: u for u in db.session.query(User).all()}

    total_items = sum(i.quantity for i in inventory)
    stocked = [i for i in inventory if i.quantity > 0]

    # Product totals
    qty_by_product: dict[int, int] = {}
    holders_by_product: dict[int, int] = {}
    for i in inventory:
        qty_by_product[i.product_id] = qty_by_product.get(i.product_id, 0) + i.quantity
        if i.quantity > 0:
            holders_by_product[i.product_id] = holders_by_product.get(i.product_id, 0) + 1

    product_totals = sorted(
        (
            {
                "id": p.id,
                "name": p.name,
                "code": p.code,
                "color": p.color,
                "category": p.category,
                "total_quantity": qty_by_product.get(p.id, 0),
                "location_count": holders_by_product.get(p.id, 0),
            }
            for p in products
        ),
        key=lambda row: row["total_quantity"],
        reverse=True,
    )

    # Leaf utilization
    has_children = {loc.parent_id for loc in locations if loc.parent_id is not None}
    names_by_id = {loc.id: loc.name for loc in locations}
    qty_by_location: dict[int, int] = {}
    for i in inventory:
        qty_by_location[i.location_id] = qty_by_location.get(i.location_id, 0) + i.quantity

    leaves = [loc for loc in locations if loc.id not in has_children]
    location_utilization = []
    for loc in leaves:
        stock = qty_by_location.get(loc.id, 0)
        location_utilization.append({
            "id": loc.id,
            "name": loc.name,
            "parent_name": names_by_id.get(loc.parent_id),
            "capacity": loc.capacity,
            "current_stock": stock,
            "utilization_percent": utilization_percent(stock, loc.capacity),
        })
    location_utilization.sort(
        key=lambda row: -1 if row["utilization_percent"] is None else row["utilization_percent"],
        reverse=True,
    )

    activity = activity_by_day(logs, now, activity_days)

    movers_cutoff = days_ago(now, movers_days)
    top_movers = rank_top_movers(
        (log for log in logs if log.changed_at >= movers_cutoff), products, movers_limit
    )

    staff_cutoff = days_ago(now, staff_days)
    staff_activity = _staff_activity((log for log in logs if log.changed_at >= staff_cutoff), users_by_id)

    # Categories from each product's own category
    categories: dict[str, dict] = {}
    for row in product_totals:
        cat = row["category"] or "other"
        entry = categories.setdefault(cat, {"category": cat, "quantity": 0, "product_count": 0})
        entry["quantity"] += row["total_quantity"]
        entry["product_count"] += 1
    category_data = sorted(categories.values(), key=lambda c: c["quantity"], reverse=True)

    check_dates = [i.last_checked_at for i in inventory]

    return {
        "generated_at": to_utc_z(now),
        "summary": {
            "total_items": total_items,
            "unique_locations_with_stock": len({i.location_id for i in stocked}),
            "unique_products_in_stock": len({i.product_id for i in stocked}),
            "total_locations": len(leaves),
            "total_products": len(products),
            "changes_this_week": sum(d["changes"] for d in activity),
        },
        "product_totals": product_totals,
        "location_utilization": location_utilization,
        "activity_by_day": activity,
        "stock_history": replay_stock_history(total_items, logs, now, history_days),
        "top_movers": top_movers,
        "staff_activity": staff_activity,
        "category_data": category_data,
        "data_freshness": {
            "oldest_check_at": to_utc_z(min(check_dates)) if check_dates else None,
            "newest_check_at": to_utc_z(max(check_dates)) if check_dates else None,
        },
    }
