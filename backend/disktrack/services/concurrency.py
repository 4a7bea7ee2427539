# Overview: Service-layer helpers for committing work and translating store faults.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError, InternalError


def commit_or_raise(*, conflict_message: str = "Serial number already exists") -> None:
    """
    Commit the current session, mapping store faults onto the error taxonomy.

    - IntegrityError (unique serial, unique back-reference) -> ConflictError
    - OperationalError (lock wait, timeout, lost connection) -> InternalError
    The session is rolled back before raising so the request can still
    read from it.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(conflict_message) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise InternalError("Database error") from exc


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, busy database) and StaleDataError.
    The final failure surfaces as InternalError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise InternalError("Database busy, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
