# Overview: Flask API routes for the storage location tree; parses input and returns JSON responses.

"""
Storage location routes.

Reads need a session; changes to the floor plan need an admin.
Tree rule violations come back as 409 with the reason.
"""
from flask import Blueprint, request, current_app

from ..errors import PalletTrackError, ValidationError, error_response
from ..models import StorageLocation
from ..services import location_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_location
from ..decorators import require_auth, require_admin

LOCATION_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "parent_id", "x", "y", "width", "height", "color", "capacity"},
    required_on_create={"name"},
)

locations_bp = Blueprint("locations", __name__, url_prefix="/api/locations")


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() == "true"


def _parent_filter():
    """Absent: all locations. "null" or empty: roots. Otherwise an id."""
    if "parent_id" not in request.args:
        return location_service.ALL
    raw = request.args.get("parent_id", "").strip()
    if raw in ("", "null", "none"):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("parent_id must be an integer or 'null'")


@locations_bp.get("")
@require_auth
def list_locations_route():
    """
    Query params:
    - parent_id: id, or "null" for root locations (omit for all)
    - include_children: "true" to embed direct children
    - include_inactive: "true" to include soft-deleted locations
    """
    try:
        items = location_service.list_locations(
            parent_id=_parent_filter(),
            include_children=_flag("include_children"),
            include_inactive=_flag("include_inactive"),
        )
    except PalletTrackError as e:
        return error_response(e)
    return {"items": items, "count": len(items)}


@locations_bp.post("")
@require_auth
@require_admin
def create_location_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=StorageLocation, payload=payload, policy=LOCATION_POLICY, partial=False)
        enforce_rules_location(patch)
        loc = location_service.create_location(**patch)
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create location")
        return {"error": "Internal server error"}, 500

    return {**loc.to_dict(), "child_count": 0}, 201


@locations_bp.put("/<int:location_id>")
@require_auth
@require_admin
def update_location_route(location_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=StorageLocation, payload=payload, policy=LOCATION_POLICY, partial=True)
        loc = location_service.update_location(location_id, patch)
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update location")
        return {"error": "Internal server error"}, 500

    return loc.to_dict(), 200


@locations_bp.delete("/<int:location_id>")
@require_auth
@require_admin
def delete_location_route(location_id: int):
    try:
        location_service.delete_location(location_id)
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete location")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200


@locations_bp.get("/<int:location_id>/rollup")
@require_auth
def location_rollup_route(location_id: int):
    """Aggregate capacity and stock over the leaves below a location."""
    try:
        return location_service.get_rollup(location_id)
    except PalletTrackError as e:
        return error_response(e)
