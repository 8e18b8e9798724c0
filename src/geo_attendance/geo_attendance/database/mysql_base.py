from __future__ import annotations

import logging
import socket
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import (
    DuplicateKeyError,
    StorageError,
    StorageTimeoutError,
    StorageUnavailableError,
)
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# CR_SERVER_LOST / lock wait / statement timeout all mean "took too long".
TIMEOUT_ERRNOS = frozenset(
    {
        errorcode.CR_SERVER_LOST,
        errorcode.ER_LOCK_WAIT_TIMEOUT,
        3024,  # ER_QUERY_TIMEOUT
    }
)


def translate_error(exc: Exception) -> StorageError:
    """Map a connector exception onto the storage error taxonomy."""

    if isinstance(exc, mysql.connector.errors.IntegrityError) and exc.errno == errorcode.ER_DUP_ENTRY:
        return DuplicateKeyError(key=_duplicate_key_name(exc.msg))
    if isinstance(exc, socket.timeout):
        return StorageTimeoutError()
    errno = getattr(exc, "errno", None)
    if errno in TIMEOUT_ERRNOS or "timed out" in str(exc).lower():
        return StorageTimeoutError()
    return StorageUnavailableError()


def _duplicate_key_name(message: Optional[str]) -> Optional[str]:
    # "Duplicate entry 'x' for key 'attendance_records.uq_participant_session'"
    if not message or "for key" not in message:
        return None
    key = message.rsplit("for key", 1)[1].strip().strip("'\"")
    return key.rsplit(".", 1)[-1]


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True) -> Iterator[tuple[Any, Any]]:
    """Yield ``(conn, cursor)`` inside one transaction.

    Commits when the block finishes and rolls back on any exception, so a
    caller that fails or is interrupted half way leaves nothing behind.
    Connector errors are re-raised as StorageError subclasses.
    """

    try:
        conn = conn_factory.connect()
    except (mysql.connector.Error, socket.timeout, OSError) as exc:
        logger.error("Database connection failed: %s", exc)
        raise translate_error(exc) from exc

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except BaseException as exc:
        _safe_rollback(conn)
        if isinstance(exc, (mysql.connector.Error, socket.timeout)):
            translated = translate_error(exc)
            if not isinstance(translated, DuplicateKeyError):
                logger.error("Database operation failed: %s", exc)
            raise translated from exc
        raise
    finally:
        conn.close()


def _safe_rollback(conn) -> None:
    try:
        conn.rollback()
    except mysql.connector.Error:
        logger.warning("Rollback failed; connection will be discarded", exc_info=True)


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])
