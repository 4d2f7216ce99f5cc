
"""
Login Throttling Service

Four-digit PINs are easy to enumerate, so failed PIN logins are limited per
client address. After too many failures inside the window, PIN login is
locked for that address until the oldest failure ages out.

SECURITY FEATURES:
- Tracks every attempt in the login_attempts table
- Lockout after MAX_FAILED_PIN_ATTEMPTS failures within PIN_LOCKOUT_WINDOW_MINUTES
- Successful logins are recorded too, for auditing
"""

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import LoginAttempt
from palletrack.time_utils import utcnow


def _max_attempts() -> int:
    return current_app.config.get("MAX_FAILED_PIN_ATTEMPTS", 10)


def _window() -> timedelta:
    return timedelta(minutes=current_app.config.get("PIN_LOCKOUT_WINDOW_MINUTES", 15))


def _recent_failures(identifier: str):
    cutoff = utcnow() - _window()
    return db.session.query(LoginAttempt).filter(
        LoginAttempt.identifier == identifier,
        LoginAttempt.success.is_(False),
        LoginAttempt.occurred_at >= cutoff,
    )


def get_recent_failed_attempts(identifier: str) -> int:
    """Count failed PIN attempts for this identifier inside the lockout window."""
    return _recent_failures(identifier).count()


def is_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check whether PIN login is locked for this identifier.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    failures = _recent_failures(identifier).order_by(LoginAttempt.occurred_at.asc()).all()
    max_attempts = _max_attempts()
    if len(failures) < max_attempts:
        return False, None

    # Unlocks once enough failures have aged out of the window
    pivot = failures[len(failures) - max_attempts]
    unlock_at = pivot.occurred_at + _window()
    now = utcnow()
    if now >= unlock_at:
        return False, None
    return True, max(1, int((unlock_at - now).total_seconds()))


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid PIN"
) -> int:
    """
    Record a failed PIN attempt.

    Returns the number of recent failed attempts, this one included.
    """
    db.session.add(LoginAttempt(
        identifier=identifier,
        user_id=None,
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    ))
    db.session.commit()

    count = get_recent_failed_attempts(identifier)
    current_app.logger.warning("Failed PIN login from %s (%s recent failures)", identifier, count)
    return count


def record_successful_login(
    user_id: int,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None
) -> None:
    """
    Record a successful login.

    Old failures are kept; they age out of the window on their own.
    """
    db.session.add(LoginAttempt(
        identifier=identifier,
        user_id=user_id,
        success=True,
        reason=None,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    ))
    db.session.commit()


def get_lockout_status(identifier: str) -> dict:
    locked, seconds_remaining = is_locked(identifier)
    return {
        "locked": locked,
        "failed_attempts": get_recent_failed_attempts(identifier),
        "max_attempts": _max_attempts(),
        "seconds_until_unlock": seconds_remaining,
        "lockout_window_minutes": int(_window().total_seconds() / 60),
    }
