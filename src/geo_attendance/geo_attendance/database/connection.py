from __future__ import annotations

from dataclasses import dataclass

import mysql.connector

from ..core.constants import DEFAULT_DB_TIMEOUT_SECONDS


@dataclass(frozen=True)
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    timeout_seconds: int = DEFAULT_DB_TIMEOUT_SECONDS

    @classmethod
    def from_mapping(cls, db_config: dict) -> "DBConfig":
        return cls(
            host=str(db_config.get("host", "localhost")),
            port=int(db_config.get("port", 3306)),
            user=str(db_config.get("user", "root")),
            password=str(db_config.get("password", "")),
            database=str(db_config.get("database", "geo_attendance")),
            timeout_seconds=int(db_config.get("timeout", DEFAULT_DB_TIMEOUT_SECONDS)),
        )


class DatabaseConnection:
    """DB connection factory owned by the application container.

    Note: We create short-lived connections per operation (safe for simple Flask apps).
    Each connection is bounded by ``timeout_seconds`` for connecting and for
    InnoDB row lock waits.
    """

    def __init__(self, config: DBConfig):
        self._config = config

    def connect(self):
        conn = mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            connection_timeout=self._config.timeout_seconds,
            autocommit=False,
        )
        cur = conn.cursor()
        try:
            cur.execute("SET SESSION innodb_lock_wait_timeout = %s", (self._config.timeout_seconds,))
        finally:
            cur.close()
        return conn
