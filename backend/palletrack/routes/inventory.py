# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Inventory ledger routes.

POST /api/inventory records a batch as the session user. The acting user
always comes from the bearer session, never from the request body.
"""
from flask import Blueprint, request, current_app, g

from ..errors import PalletTrackError, ValidationError, error_response
from ..services import ledger_service
from ..decorators import require_auth
from palletrack.time_utils import parse_iso_datetime, to_utc_z

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _datetime_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    """
    Query params:
    - location_id: rows of one location
    - parent_id: rows of every direct child of this location
    """
    try:
        items = ledger_service.list_current_inventory(
            location_id=_int_arg("location_id"),
            parent_id=_int_arg("parent_id"),
        )
    except PalletTrackError as e:
        return error_response(e)
    return {"items": items, "count": len(items)}


@inventory_bp.post("")
@require_auth
def apply_inventory_route():
    """
    Request body:
    {
        "entries": [{"location_id": 1, "product_id": 2, "quantity": 12}, ...]
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload; expected an object with an entries list")
        result = ledger_service.apply_entries(payload.get("entries"), g.current_user.id)
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply inventory entries")
        return {"error": "Internal server error"}, 500

    body = result.to_dict()
    body["message"] = f"{result.applied} entries saved, {result.changed} changes logged"
    return body, 200


@inventory_bp.get("/summary")
@require_auth
def inventory_summary_route():
    return ledger_service.inventory_summary()


@inventory_bp.get("/logs")
@require_auth
def inventory_logs_route():
    """
    Query params: location_id, product_id, user_id, from, to (ISO, inclusive), limit (default 100)
    """
    try:
        limit = _int_arg("limit")
        items = ledger_service.list_logs(
            location_id=_int_arg("location_id"),
            product_id=_int_arg("product_id"),
            user_id=_int_arg("user_id"),
            start=_datetime_arg("from"),
            end=_datetime_arg("to"),
            limit=limit if limit is not None else 100,
        )
    except PalletTrackError as e:
        return error_response(e)
    return {"items": items, "count": len(items)}


@inventory_bp.get("/as-of")
@require_auth
def inventory_as_of_route():
    """Quantities per (location, product) reconstructed from the log as of `at`."""
    try:
        at = _datetime_arg("at")
        if at is None:
            raise ValidationError("at is required")
        state = ledger_service.inventory_as_of(at)
    except PalletTrackError as e:
        return error_response(e)

    items = [
        {"location_id": loc_id, "product_id": prod_id, "quantity": qty}
        for (loc_id, prod_id), qty in sorted(state.items())
    ]
    return {"at": to_utc_z(at), "items": items, "total_pallets": sum(i["quantity"] for i in items)}
