"""All-or-nothing execution of multi-row changes (order insert + stock deltas)."""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_api.config import settings
from inventory_api.database import SQLITE_BEGIN_OPTION
from inventory_api.exceptions import ConflictError, InventoryError, PartialFailureError, PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATEs for serialization failure and deadlock
_TRANSIENT_SQLSTATES = {"40001", "40P01"}


def is_transient(exc: OperationalError) -> bool:
    """Lock conflicts that a fresh attempt can resolve.

    SQLite reports an expired busy timeout as "database is locked";
    PostgreSQL uses SQLSTATE codes.
    """
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _TRANSIENT_SQLSTATES:
        return True
    return "database is locked" in str(orig)


def rollback(db: Session, action: str) -> None:
    try:
        db.rollback()
    except SQLAlchemyError as exc:
        logger.critical("Rollback failed during %s, manual intervention required: %s", action, exc)
        raise PartialFailureError(f"{action} failed and could not be rolled back") from exc


def begin_write(db: Session) -> None:
    """Start a write transaction, holding SQLite's write lock from the first statement.

    Concurrent writers then wait on the busy timeout instead of failing with a
    stale snapshot halfway through. Other backends ignore the option.
    """
    if db.in_transaction():
        # End the read transaction left open by earlier lookups in this session
        db.commit()
    db.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})


def run_atomic(db: Session, work: Callable[[], T], action: str) -> T:
    """Run ``work`` and commit it as one unit, retrying the whole unit on lock conflicts.

    ``work`` must be safe to call again from scratch: it is re-run after a
    rollback, so it should build its objects inside the call. Domain errors
    (``InventoryError``) roll back and propagate untouched; other storage
    failures become ``PersistenceError``.
    """
    attempts = settings.TRANSACTION_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            begin_write(db)
            result = work()
            db.commit()
            return result
        except InventoryError:
            rollback(db, action)
            raise
        except OperationalError as exc:
            rollback(db, action)
            if not is_transient(exc):
                logger.error("Storage error during %s: %s", action, exc)
                raise PersistenceError(f"{action} failed") from exc
            if attempt == attempts:
                raise ConflictError(f"Could not {action} due to concurrent updates, please retry") from exc
            logger.warning("Concurrent update during %s (attempt %d/%d), retrying", action, attempt, attempts)
            time.sleep(settings.TRANSACTION_RETRY_DELAY * attempt)
        except SQLAlchemyError as exc:
            rollback(db, action)
            logger.error("Storage error during %s: %s", action, exc)
            raise PersistenceError(f"{action} failed") from exc
    raise AssertionError("unreachable")
