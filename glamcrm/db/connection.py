"""
Database Connection Management
PostgreSQL connections for the lead store, with driver errors mapped onto the
Glam CRM error taxonomy:

    psycopg2.IntegrityError / DataError  -> ValidationError  (bad row, don't retry)
    any other psycopg2.Error             -> TransientIOError (network, locks, outages)
"""

import logging
from contextlib import contextmanager
from typing import Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from glamcrm.config import config
from glamcrm.errors import TransientIOError, ValidationError

logger = logging.getLogger(__name__)


def translate_db_error(exc: psycopg2.Error) -> Exception:
    """Map a driver error onto ValidationError or TransientIOError."""
    detail = str(exc).strip() or type(exc).__name__
    if isinstance(exc, (psycopg2.IntegrityError, psycopg2.DataError)):
        return ValidationError(f"Rejected by database: {detail}")
    return TransientIOError(f"Database unavailable: {detail}")


@contextmanager
def get_db_connection(dsn: Optional[str] = None):
    """
    Context manager for database connections.
    Commits on success, rolls back on error, always closes.

    Usage:
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM leads")
    """
    conn = None
    try:
        # Session timezone is the studio zone; timestamptz values read back on the local day
        conn = psycopg2.connect(
            dsn or config.DATABASE_URL,
            connect_timeout=config.DB_CONNECT_TIMEOUT,
            options=f"-c timezone={config.TIMEZONE}",
        )
        logger.debug("Database connection established")
        yield conn
        conn.commit()
        logger.debug("Transaction committed")
    except psycopg2.Error as e:
        if conn:
            conn.rollback()
        logger.error(f"Database error, transaction rolled back: {e}")
        raise translate_db_error(e) from e
    except Exception as e:
        if conn:
            conn.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
        raise
    finally:
        if conn:
            conn.close()
            logger.debug("Database connection closed")


@contextmanager
def get_db_cursor(dict_cursor=True, dsn: Optional[str] = None):
    """
    Context manager for a cursor. RealDictCursor by default, so rows unpack
    straight into the model dataclasses.

    Usage:
        with get_db_cursor() as cur:
            cur.execute("SELECT * FROM leads WHERE id = %s", ('l1',))
            row = cur.fetchone()
    """
    with get_db_connection(dsn) as conn:
        cursor_factory = RealDictCursor if dict_cursor else None
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
        finally:
            cur.close()
