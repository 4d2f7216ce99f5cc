# Overview: Flask API routes for inventory snapshots; parses input and returns JSON responses.

from flask import Blueprint, request, current_app, g

from ..errors import PalletTrackError, ValidationError, error_response
from ..services import snapshot_service
from ..decorators import require_auth
from ..validation import coerce_int

snapshots_bp = Blueprint("snapshots", __name__, url_prefix="/api/snapshots")


@snapshots_bp.get("")
@require_auth
def list_snapshots_route():
    try:
        raw = request.args.get("limit")
        limit = coerce_int("limit", raw) if raw is not None and raw.strip() else None
        items = snapshot_service.list_snapshots(limit=limit if limit is not None else 50)
    except PalletTrackError as e:
        return error_response(e)
    return {"items": items, "count": len(items)}


@snapshots_bp.post("")
@require_auth
def create_snapshot_route():
    """
    Request body (all optional):
    {
        "notes": "Monthly count",
        "entries": [{"location_id": 1, "product_id": 2, "quantity": 12}]
    }

    Without entries the current inventory is captured.
    """
    payload = request.get_json(silent=True) or {}
    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        snapshot = snapshot_service.create_snapshot(
            g.current_user.id,
            notes=payload.get("notes"),
            entries=payload.get("entries"),
        )
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create snapshot")
        return {"error": "Internal server error"}, 500

    return snapshot.to_dict(include_entries=True), 201


@snapshots_bp.get("/<int:snapshot_id>")
@require_auth
def get_snapshot_route(snapshot_id: int):
    try:
        return snapshot_service.get_snapshot(snapshot_id)
    except PalletTrackError as e:
        return error_response(e)
