from __future__ import annotations

from typing import Any, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, load_json
from .repository import AuditRepository


class MySQLAuditRepository(AuditRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def record(
        self,
        *,
        user_id: Optional[int],
        school_id: Optional[int],
        action: str,
        entity_type: Optional[str],
        entity_id: Optional[int],
        old_values: Optional[dict[str, Any]],
        new_values: Optional[dict[str, Any]],
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_logs(user_id, school_id, action, entity_type, entity_id,
                                       old_values, new_values, ip_address, user_agent)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    user_id,
                    school_id,
                    action,
                    entity_type,
                    entity_id,
                    dump_json(old_values),
                    dump_json(new_values),
                    ip_address,
                    (user_agent or "")[:255] or None,
                ),
            )
            return int(cur.lastrowid)

    def list_for_school(self, school_id: int, *, limit: int = 100) -> Sequence[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.audit_id, a.action, a.entity_type, a.entity_id, a.old_values, a.new_values,
                       a.created_at, u.username
                FROM audit_logs a
                LEFT JOIN users u ON u.user_id = a.user_id
                WHERE a.school_id=%s
                ORDER BY a.created_at DESC, a.audit_id DESC
                LIMIT %s
                """,
                (school_id, int(limit)),
            )
            rows = fetchall(cur)
            for r in rows:
                r["old_values"] = load_json(r.get("old_values"))
                r["new_values"] = load_json(r.get("new_values"))
            return rows
