from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import mysql.connector
import pytest
from mysql.connector import errorcode

from src.school_management.school_management.core.enums import StudentStatus
from src.school_management.school_management.core.exceptions import ConflictError, DatabaseError
from src.school_management.school_management.database import connection as connection_module
from src.school_management.school_management.database.bootstrap import _strip_comments, iter_sql_statements
from src.school_management.school_management.database.connection import DBConfig, DatabaseConnection
from src.school_management.school_management.database.mysql_base import build_update, db_cursor


class RecordingCursor:
    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=None):
        self._conn.log.append(("exec", self._conn.name, sql))
        if self._conn.fail_with is not None:
            raise self._conn.fail_with

    def close(self):
        pass


class RecordingConnection:
    def __init__(self, name, log, fail_with=None):
        self.name = name
        self.log = log
        self.fail_with = fail_with

    def start_transaction(self):
        self.log.append(("begin", self.name))

    def cursor(self, dictionary=False):
        return RecordingCursor(self)

    def commit(self):
        self.log.append(("commit", self.name))

    def rollback(self):
        self.log.append(("rollback", self.name))

    def close(self):
        self.log.append(("close", self.name))


@pytest.fixture
def log():
    return []


@dataclass
class Recorder:
    database: DatabaseConnection
    opened: list = field(default_factory=list)
    fail_with: Optional[Exception] = None

    def active_connection(self):
        return self.database.active_connection()

    def transaction(self):
        return self.database.transaction()


@pytest.fixture
def db(monkeypatch, log):
    recorder = Recorder(DatabaseConnection(DBConfig(host="h", port=3306, user="u", password="p", database="d")))

    def fake_connect(**kwargs):
        conn = RecordingConnection(f"c{len(recorder.opened) + 1}", log, fail_with=recorder.fail_with)
        recorder.opened.append(conn)
        return conn

    monkeypatch.setattr(connection_module.mysql.connector, "connect", fake_connect)
    return recorder


def test_statements_in_a_transaction_share_one_connection_and_commit(db, log):
    with db.transaction():
        with db_cursor(db.database) as (_, cur):
            cur.execute("INSERT 1")
        with db_cursor(db.database) as (_, cur):
            cur.execute("INSERT 2")

    assert log == [
        ("begin", "c1"),
        ("exec", "c1", "INSERT 1"),
        ("exec", "c1", "INSERT 2"),
        ("commit", "c1"),
        ("close", "c1"),
    ]


def test_error_rolls_back_without_commit(db, log):
    with pytest.raises(RuntimeError):
        with db.transaction():
            with db_cursor(db.database) as (_, cur):
                cur.execute("INSERT 1")
            raise RuntimeError("allocation failed")

    assert ("commit", "c1") not in log
    assert log[-2:] == [("rollback", "c1"), ("close", "c1")]
    assert db.active_connection() is None


def test_nested_transaction_joins_the_outer_one(db, log):
    with db.transaction() as outer:
        with db.transaction() as inner:
            assert inner is outer
            with db_cursor(db.database) as (_, cur):
                cur.execute("UPDATE accounts")

    assert len(db.opened) == 1
    assert log.count(("commit", "c1")) == 1


def test_standalone_cursor_commits_its_own_connection(db, log):
    with db_cursor(db.database) as (_, cur):
        cur.execute("SELECT 1")

    assert log == [("exec", "c1", "SELECT 1"), ("commit", "c1"), ("close", "c1")]


def test_duplicate_entry_becomes_conflict(db, log):
    db.fail_with = mysql.connector.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)

    with pytest.raises(ConflictError):
        with db_cursor(db.database) as (_, cur):
            cur.execute("INSERT receipt")

    assert log[-2:] == [("rollback", "c1"), ("close", "c1")]


def test_duplicate_inside_transaction_rolls_back_everything(db, log):
    db.fail_with = mysql.connector.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)

    with pytest.raises(ConflictError):
        with db.transaction():
            with db_cursor(db.database) as (_, cur):
                cur.execute("INSERT payment")

    assert ("commit", "c1") not in log
    assert ("rollback", "c1") in log


def test_other_driver_errors_become_database_error(db):
    db.fail_with = mysql.connector.ProgrammingError(msg="bad column", errno=errorcode.ER_BAD_FIELD_ERROR)

    with pytest.raises(DatabaseError):
        with db_cursor(db.database) as (_, cur):
            cur.execute("SELECT nope")


def test_failed_connect_is_database_error(monkeypatch):
    def refuse(**kwargs):
        raise mysql.connector.InterfaceError(msg="Can't connect", errno=2003)

    monkeypatch.setattr(connection_module.mysql.connector, "connect", refuse)
    database = DatabaseConnection(DBConfig(host="h", port=3306, user="u", password="p", database="d"))

    with pytest.raises(DatabaseError):
        database.connect()


def test_sql_splitter_keeps_semicolons_inside_quotes():
    sql = "INSERT INTO plans (features) VALUES ('a;b');\nINSERT INTO t VALUES (\"x;y\");SELECT 1"

    assert list(iter_sql_statements(sql)) == [
        "INSERT INTO plans (features) VALUES ('a;b')",
        'INSERT INTO t VALUES ("x;y")',
        "SELECT 1",
    ]


def test_sql_splitter_handles_escaped_quotes_and_blank_statements():
    sql = "INSERT INTO t VALUES ('it\\'s;fine');;\n  ;"

    assert list(iter_sql_statements(sql)) == ["INSERT INTO t VALUES ('it\\'s;fine')"]


def test_comment_lines_are_dropped_before_splitting():
    sql = "-- plans; seeded below\nINSERT INTO plans VALUES (1);\n  -- trailing; note\n"

    assert list(iter_sql_statements(_strip_comments(sql))) == ["INSERT INTO plans VALUES (1)"]


def test_build_update_maps_known_fields_only():
    clause, params = build_update(
        {"first_name": "Amina", "status": StudentStatus.ACTIVE, "hacker": "x"},
        {"first_name": "first_name", "status": "status"},
    )

    assert clause == "first_name=%s, status=%s"
    assert params == ["Amina", "active"]
