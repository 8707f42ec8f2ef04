"""Schema/seed helpers used by create_app() and scripts/."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)

DEMO_SCHOOL_CODE = "demo-school-DEMO01"


@dataclass(frozen=True)
class DBTarget:
    host: str
    port: int
    user: str
    password: str
    database: str


def _as_target(db_config: dict) -> DBTarget:
    return DBTarget(
        host=str(db_config.get("host", "localhost")),
        port=int(db_config.get("port", 3306)),
        user=str(db_config.get("user", "root")),
        password=str(db_config.get("password", "")),
        database=str(db_config.get("database", "school_management")),
    )


def _connect(target: DBTarget, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # schema.sql must work whatever DB_NAME is configured.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_comments(sql: str) -> str:
    return "\n".join(line for line in sql.splitlines() if not line.strip().startswith("--"))


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on ';' outside quoted strings."""
    buf: list[str] = []
    quote: str | None = None
    escape = False

    for ch in sql:
        buf.append(ch)
        if escape:
            escape = False
        elif ch == "\\":
            escape = True
        elif quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            buf.pop()
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: str | Path) -> int:
    sql = _strip_comments(_strip_create_db_and_use(Path(path).read_text(encoding="utf-8")))
    conn = _connect(_as_target(db_config))
    count = 0
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
            count += 1
        conn.commit()
    finally:
        conn.close()
    return count


def ensure_database_exists(db_config: dict) -> None:
    target = _as_target(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    count = _run_script(db_config, schema_path)
    logger.info("Applied %s statements from %s", count, schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    count = _run_script(db_config, seed_path)
    logger.info("Applied %s seed statements from %s", count, seed_path)


def ensure_demo_users(db_config: dict) -> None:
    """Demo school with one admin (onboarded, on trial) and one bursar."""
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor(dictionary=True)

        cur.execute("SELECT school_id FROM schools WHERE school_code=%s", (DEMO_SCHOOL_CODE,))
        row = cur.fetchone()
        if row:
            school_id = int(row["school_id"])
        else:
            cur.execute(
                """
                INSERT INTO schools (name, school_code, school_type, currency, timezone, email)
                VALUES (%s, %s, 'secondary', 'UGX', 'Africa/Kampala', %s)
                """,
                ("Demo Secondary School", DEMO_SCHOOL_CODE, "info@demo-school.test"),
            )
            school_id = int(cur.lastrowid)

        def upsert_user(full_name: str, username: str, email: str, password: str, role: str) -> None:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT user_id FROM users WHERE username=%s", (username,))
            if cur.fetchone():
                cur.execute(
                    """
                    UPDATE users
                    SET full_name=%s, email=%s, password_hash=%s, role=%s, school_id=%s, status='active'
                    WHERE username=%s
                    """,
                    (full_name, email, password_hash, role, school_id, username),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (school_id, full_name, username, email, password_hash, role, status,
                                       onboarding_completed, onboarding_completed_at)
                    VALUES (%s, %s, %s, %s, %s, %s, 'active', 1, NOW())
                    """,
                    (school_id, full_name, username, email, password_hash, role),
                )

        for method in ("Cash", "Mobile Money", "Bank Deposit"):
            cur.execute(
                "INSERT IGNORE INTO payment_methods (school_id, name) VALUES (%s, %s)",
                (school_id, method),
            )

        upsert_user("Demo Admin", "admin", "admin@demo-school.test", "admin1234", "admin")
        upsert_user("Demo Bursar", "bursar", "bursar@demo-school.test", "bursar1234", "bursar")

        cur.execute("SELECT user_id FROM users WHERE username='admin'")
        admin_id = int(cur.fetchone()["user_id"])
        cur.execute("SELECT trial_id FROM user_trials WHERE user_id=%s AND status='active'", (admin_id,))
        if not cur.fetchone():
            cur.execute(
                """
                INSERT INTO user_trials (user_id, start_date, end_date, status)
                VALUES (%s, NOW(), DATE_ADD(NOW(), INTERVAL 30 DAY), 'active')
                """,
                (admin_id,),
            )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(_as_target(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
