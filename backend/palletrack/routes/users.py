# Overview: Flask API routes for staff accounts (admin only).

from flask import Blueprint, request, current_app

from ..errors import PalletTrackError, ValidationError, error_response
from ..decorators import require_auth, require_admin
from ..services import auth_service, session_service

users_bp = Blueprint("users", __name__, url_prefix="/api/users")

USER_WRITABLE_FIELDS = {"name", "pin", "is_active", "is_admin"}


def _clean_user_payload(payload, *, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    for k in payload:
        if k not in USER_WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}")
    if not partial:
        missing = sorted(k for k in ("name", "pin") if payload.get(k) is None)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    for flag in ("is_active", "is_admin"):
        if flag in payload and not isinstance(payload[flag], bool):
            raise ValidationError(f"{flag} must be a boolean")
    return dict(payload)


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    users = auth_service.list_users(include_inactive=include_inactive)
    return {"items": [u.to_dict() for u in users], "count": len(users)}


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    """
    Create a staff account.

    Request body: {"name": "...", "pin": "1234", "is_admin": false}
    """
    try:
        data = _clean_user_payload(request.get_json(silent=True) or {}, partial=False)
        user = auth_service.create_user(data["name"], data["pin"], is_admin=data.get("is_admin", False))
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return {"error": "Internal server error"}, 500

    return user.to_dict(), 201


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    """
    Update name, pin, is_active or is_admin.

    Deactivating a user or changing their PIN revokes their open sessions.
    """
    try:
        patch = _clean_user_payload(request.get_json(silent=True) or {}, partial=True)
        user = auth_service.update_user(user_id, patch)
        if patch.get("is_active") is False:
            session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
        elif patch.get("pin") is not None:
            session_service.revoke_all_user_sessions(user.id, reason="PIN changed")
    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return {"error": "Internal server error"}, 500

    return user.to_dict()
