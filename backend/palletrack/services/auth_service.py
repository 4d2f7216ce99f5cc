# Overview: Service-layer operations for auth; PIN hashing, user management and PIN login.

"""
PIN Authentication Service

Every inventory change must be attributable to a user. Staff identify
themselves with a 4-digit PIN, so the PIN is both the credential and the
lookup key.

SECURITY NOTES:
- PINs hashed with bcrypt (cost factor from BCRYPT_ROUNDS)
- A PIN may belong to at most one active user
- Session tokens managed separately (see session_service.py)
- Throttling of failed attempts lives in login_throttle_service.py
"""

import bcrypt
from flask import current_app

from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..validation import validate_pin
from palletrack.time_utils import utcnow
from .transactions import atomic


def hash_pin(pin: str) -> str:
    """Validate the PIN format and hash it with bcrypt."""
    validate_pin(pin)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(pin.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_pin(pin: str, pin_hash: str | None) -> bool:
    """Timing-safe check of a PIN against its bcrypt hash."""
    if not pin_hash:
        return False
    try:
        return bcrypt.checkpw(pin.encode('utf-8'), pin_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database; treat as no match
        return False


def _find_active_user_by_pin(pin: str, exclude_user_id: int | None = None) -> User | None:
    candidates = db.session.query(User).filter(
        User.is_active.is_(True),
        User.pin_hash.isnot(None),
    )
    if exclude_user_id is not None:
        candidates = candidates.filter(User.id != exclude_user_id)

    for user in candidates.order_by(User.id.asc()).all():
        if verify_pin(pin, user.pin_hash):
            return user
    return None


def _ensure_pin_available(pin: str, exclude_user_id: int | None = None) -> None:
    if _find_active_user_by_pin(pin, exclude_user_id=exclude_user_id) is not None:
        raise ConflictError("PIN is already in use")


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def require_active_user(user_id) -> User:
    """
    Resolve the acting user of a write.

    Raises AuthenticationError when the id is missing, unknown or deactivated
    (for example after a database reset), so clients can prompt a re-login.
    """
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None or not user.is_active:
        raise AuthenticationError("User session invalid. Please log out and log in again.")
    return user


def list_users(include_inactive: bool = True) -> list[User]:
    q = db.session.query(User)
    if not include_inactive:
        q = q.filter(User.is_active.is_(True))
    return q.order_by(User.name.asc(), User.id.asc()).all()


def create_user(name: str, pin: str, is_admin: bool = False) -> User:
    """
    Create a staff account.

    Raises ValidationError for a blank name or malformed PIN and
    ConflictError if another active user already has the PIN.
    """
    if name is None or not str(name).strip():
        raise ValidationError("name cannot be blank")
    pin_hash = hash_pin(pin)
    _ensure_pin_available(pin)

    user = User(name=str(name).strip(), pin_hash=pin_hash, is_admin=bool(is_admin), is_active=True)
    with atomic("create user"):
        db.session.add(user)

    current_app.logger.info("User created id=%s admin=%s", user.id, user.is_admin)
    return user


def set_pin(user_id: int, pin: str) -> User:
    user = get_user(user_id)
    pin_hash = hash_pin(pin)
    _ensure_pin_available(pin, exclude_user_id=user.id)

    with atomic("set pin"):
        user.pin_hash = pin_hash
    return user


def update_user(user_id: int, patch: dict) -> User:
    """
    Apply name / pin / is_active / is_admin changes.

    Reactivating a user requires a new PIN in the same patch: the old PIN
    may have been handed to another active user in the meantime.
    """
    user = get_user(user_id)

    if patch.get("is_active") is True and not user.is_active and patch.get("pin") is None:
        raise ValidationError("A new PIN is required to reactivate a user")

    pin_hash = None
    if patch.get("pin") is not None:
        pin_hash = hash_pin(patch["pin"])
        _ensure_pin_available(patch["pin"], exclude_user_id=user.id)

    if "name" in patch and (patch["name"] is None or not str(patch["name"]).strip()):
        raise ValidationError("name cannot be blank")

    with atomic("update user"):
        if "name" in patch:
            user.name = str(patch["name"]).strip()
        if pin_hash is not None:
            user.pin_hash = pin_hash
        if "is_active" in patch:
            user.is_active = bool(patch["is_active"])
        if "is_admin" in patch:
            user.is_admin = bool(patch["is_admin"])
    return user


def authenticate_by_pin(pin) -> User | None:
    """
    Return the active user owning this PIN, or None.

    Raises ValidationError when the PIN is not exactly four digits.
    Updates last_login_at on success.
    """
    validate_pin(pin)
    user = _find_active_user_by_pin(pin)
    if user is None:
        return None

    with atomic("record login"):
        user.last_login_at = utcnow()
    return user
