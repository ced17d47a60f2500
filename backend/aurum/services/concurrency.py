# Overview: Transaction scope and row locking shared by every balance-moving service.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..validation import AurumError, ConflictError, StorageError

_DEPTH_KEY = "aurum_atomic_depth"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; atomic() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def _sqlite_in_transaction(session) -> bool:
    dbapi_conn = session.connection().connection.dbapi_connection
    return bool(getattr(dbapi_conn, "in_transaction", False))


@contextmanager
def atomic():
    """
    One business event, all or nothing.

    Yields the session that every read, lock and write of the event must
    go through. Commits when the block exits cleanly, rolls back on any
    exception. Nested use joins the outer scope; only the outermost
    block commits.

    Store failures are translated: a constraint violation becomes
    ConflictError, anything else from SQLAlchemy becomes StorageError.
    Nothing is retried.
    """
    session = db.session
    depth = session.info.get(_DEPTH_KEY, 0)

    if depth:
        session.info[_DEPTH_KEY] = depth + 1
        try:
            yield session
        finally:
            session.info[_DEPTH_KEY] = depth
        return

    session.info[_DEPTH_KEY] = 1
    try:
        if db.engine.dialect.name == "sqlite" and not _sqlite_in_transaction(session):
            session.execute(text("BEGIN IMMEDIATE"))
        yield session
        session.commit()
    except AurumError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        current_app.logger.warning("Constraint violation, scope rolled back: %s", exc.orig)
        raise ConflictError("Conflicting write rejected by the store") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.error("Store failure, scope rolled back: %s", exc)
        raise StorageError("Storage unavailable, nothing was changed") from exc
    except BaseException:
        session.rollback()
        raise
    finally:
        session.info.pop(_DEPTH_KEY, None)
