# Overview: Transaction scope, row locks and retry for multi-statement writes.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, TransactionFailure

logger = logging.getLogger(__name__)

# Lock waits, deadlocks, pool exhaustion, optimistic-lock conflicts
RETRYABLE_ERRORS = (OperationalError, StaleDataError, PoolTimeoutError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_immediate() serializes
    writers there instead.
    """
    return query.with_for_update()


def begin_immediate(session) -> None:
    """Take the SQLite write lock up front so concurrent writers queue instead of racing."""
    if session.get_bind().dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))


def safe_rollback(session) -> None:
    """Roll back without masking the error that caused it."""
    try:
        session.rollback()
    except Exception:
        logger.exception("Rollback failed; original error is re-raised")


@contextmanager
def transaction_scope(session, *, immediate: bool = False):
    """
    One database transaction: commit on success, rollback on any exception.

    The session hands its connection back to the pool on commit and on
    rollback, so every exit path (success, business error, system error)
    releases the pooled connection.
    """
    try:
        if immediate:
            begin_immediate(session)
        yield session
        session.commit()
    except Exception:
        safe_rollback(session)
        raise


def run_with_retry(func, *, session, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a transactional operation with retry on concurrency-related failures.

    Retryable database errors are retried with exponential backoff and then
    surfaced as TransactionFailure(retryable=True). Constraint violations
    (a concurrent writer took the same unique key) become ConflictError.
    Other database errors become TransactionFailure immediately. Typed
    service errors propagate unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            safe_rollback(session)
            if attempt >= attempts - 1:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise TransactionFailure("Database is busy, please retry", retryable=True) from exc
            logger.warning("Retryable database error (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            safe_rollback(session)
            logger.warning("Constraint violated: %s", exc.orig)
            raise ConflictError("Conflicts with an existing record", {"constraint": str(exc.orig)}) from exc
        except SQLAlchemyError as exc:
            safe_rollback(session)
            logger.exception("Transaction failed")
            raise TransactionFailure("Database error; no changes were applied") from exc
