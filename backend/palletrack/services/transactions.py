# Overview: Unit-of-work helper; commits on success, rolls back and reports storage failures.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..extensions import db


@contextmanager
def atomic(operation: str):
    """
    Run the block as one transaction.

    Domain errors raised inside the block roll back and propagate unchanged.
    SQLAlchemy failures roll back, are logged, and surface as PersistenceError
    so callers never see driver messages.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed; transaction rolled back", operation)
        raise PersistenceError(f"Could not save changes ({operation})") from exc
    except Exception:
        db.session.rollback()
        raise
