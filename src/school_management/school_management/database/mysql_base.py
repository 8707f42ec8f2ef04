from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConflictError, DatabaseError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


def _wrap_driver_error(exc: mysql.connector.Error) -> Exception:
    if exc.errno == errorcode.ER_DUP_ENTRY:
        return ConflictError("Record already exists")
    logger.error("Database error %s: %s", exc.errno, exc.msg)
    return DatabaseError(f"Database operation failed: {exc.msg}")


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    shared = conn_factory.active_connection()
    if shared is not None:
        # Running inside DatabaseConnection.transaction(): the outer block commits.
        cur = shared.cursor(dictionary=dictionary)
        try:
            yield shared, cur
        except mysql.connector.Error as exc:
            raise _wrap_driver_error(exc) from exc
        finally:
            cur.close()
        return

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        conn.rollback()
        raise _wrap_driver_error(exc) from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


def load_json(value: Any, default: Any = None) -> Any:
    """JSON columns come back as str/bytes depending on connector build."""
    if value is None or value == "":
        return default
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    return json.loads(value)


def build_update(fields: dict, allowed: dict) -> tuple[str, list]:
    """Turn a partial-update dict into `col=%s, ...` plus params.

    `allowed` maps public field names to column names; unknown keys are ignored.
    """
    parts: list[str] = []
    params: list = []
    for key, value in fields.items():
        column = allowed.get(key)
        if not column:
            continue
        parts.append(f"{column}=%s")
        params.append(value.value if hasattr(value, "value") else value)
    return ", ".join(parts), params
