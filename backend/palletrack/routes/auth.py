# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/palletrack/routes/auth.py
"""
PIN Authentication API routes

SECURITY FEATURES:
- 4-digit PIN login, bcrypt-verified
- Login throttling per client address (PINs are easy to enumerate)
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import PalletTrackError, error_response
from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


@auth_bp.post("/pin")
def login_pin_route():
    """
    Authenticate user by PIN and create a session token.

    Request body:
    {
        "pin": "1234"   // required, exactly 4 digits
    }

    Token must be included in Authorization header for protected routes.

    SECURITY:
    - Checks for lockout before attempting authentication
    - Records failed attempts for throttling (keyed by client address)
    - Records successful logins for audit trail
    """
    try:
        data = request.get_json(silent=True) or {}
        pin = data.get("pin")

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr
        lockout_identifier = f"pin:{ip_address}"

        is_locked, seconds_remaining = login_throttle_service.is_locked(lockout_identifier)
        if is_locked:
            return jsonify({
                "error": "PIN login temporarily locked due to too many failed attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
                "retry_after_minutes": (seconds_remaining // 60) + 1,
            }), 429

        user = auth_service.authenticate_by_pin(pin)

        if not user:
            failed_count = login_throttle_service.record_failed_attempt(
                identifier=lockout_identifier,
                ip_address=ip_address,
                user_agent=user_agent,
                reason="Invalid PIN"
            )

            remaining = current_app.config["MAX_FAILED_PIN_ATTEMPTS"] - failed_count
            if remaining <= 0:
                return jsonify({
                    "error": "PIN login locked due to too many failed attempts",
                    "locked": True,
                    "retry_after_minutes": current_app.config["PIN_LOCKOUT_WINDOW_MINUTES"],
                }), 429
            elif remaining <= 3:
                return jsonify({
                    "error": "Invalid PIN",
                    "warning": f"{remaining} attempts remaining before lockout"
                }), 401
            else:
                return jsonify({"error": "Invalid PIN"}), 401

        login_throttle_service.record_successful_login(
            user_id=user.id,
            identifier=lockout_identifier,
            ip_address=ip_address,
            user_agent=user_agent
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "PIN login successful"
        }), 200

    except PalletTrackError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user by PIN")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user of the bearer session."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "session": g.session_context.session.to_dict(),
    }), 200
