# backend/palletrack/errors.py
"""
Domain error taxonomy.

Services raise these; routes translate them into HTTP responses.
Messages are meant for end users: no stack traces, no internal identifiers
beyond what the caller already sent.
"""
from __future__ import annotations


class PalletTrackError(Exception):
    """Base class for all domain errors."""

    http_status = 400


class ValidationError(PalletTrackError, ValueError):
    """400-level input problem."""


class ConflictError(PalletTrackError, ValueError):
    """409-level business rule conflict (e.g., duplicate sibling name)."""

    http_status = 409


class NotFoundError(PalletTrackError, LookupError):
    """Referenced entity does not exist (or is inactive)."""

    http_status = 404


class AuthenticationError(PalletTrackError):
    """
    The acting user is missing or no longer valid.

    Surfaced distinctly from generic failures so a client can prompt a
    re-login instead of retrying with a dangling session.
    """

    http_status = 401
    code = "USER_NOT_FOUND"


class PermissionDeniedError(PalletTrackError):
    """Authenticated, but not allowed to perform the operation."""

    http_status = 403


class PersistenceError(PalletTrackError):
    """Storage-layer failure. The unit of work has been rolled back."""

    http_status = 500


class HierarchyError(PalletTrackError):
    """Tree invariant violation. Raised before any mutation."""

    http_status = 409


class CycleError(HierarchyError):
    """New parent is the location itself or one of its descendants."""


class HasChildrenError(HierarchyError):
    """Location still has sub-locations."""


class InvalidOperationError(HierarchyError):
    """Operation not valid for the location's position in the tree."""


def error_response(exc: PalletTrackError) -> tuple[dict, int]:
    """Translate a domain error into the JSON body and status routes return."""
    if isinstance(exc, AuthenticationError):
        return {"error": exc.code, "message": str(exc)}, exc.http_status
    if isinstance(exc, PersistenceError):
        return {"error": "Could not save changes. Please try again."}, exc.http_status
    return {"error": str(exc)}, exc.http_status
