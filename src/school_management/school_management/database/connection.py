from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

import mysql.connector

from ..core.exceptions import DatabaseError

logger = logging.getLogger(__name__)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str


class DatabaseConnection:
    """Singleton-like DB connection factory.

    Note: Outside a transaction we create short-lived connections per operation.
    Inside `transaction()` every repository call on the same thread shares one
    connection, so the whole block commits or rolls back together.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config
        self._local = threading.local()

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    def connect(self):
        try:
            return mysql.connector.connect(
                host=self._config.host,
                port=int(self._config.port),
                user=self._config.user,
                password=self._config.password,
                database=self._config.database,
            )
        except mysql.connector.Error as exc:
            logger.error("Could not connect to %s@%s/%s: %s", self._config.user, self._config.host, self._config.database, exc)
            raise DatabaseError("Database connection failed") from exc

    def active_connection(self):
        """Connection of the transaction running on this thread, if any."""
        return getattr(self._local, "conn", None)

    @contextmanager
    def transaction(self):
        # Nested blocks join the outer transaction.
        if self.active_connection() is not None:
            yield self.active_connection()
            return

        conn = self.connect()
        self._local.conn = conn
        try:
            conn.start_transaction()
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            logger.warning("Transaction rolled back", exc_info=True)
            raise
        finally:
            self._local.conn = None
            conn.close()
