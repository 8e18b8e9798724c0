from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, Optional

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

_QUOTES = "'\"`"


def _strip_create_db_and_use(sql: str) -> str:
    # The target database comes from DBConfig, not from schema.sql.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def iter_sql_statements(sql: str) -> Iterator[str]:
    """Split a schema file on top-level semicolons.

    Quoted strings and identifiers (', ", `) may contain semicolons.
    ``-- `` and ``#`` comments run to the end of the line and are dropped.
    """
    buf: list[str] = []
    quote: Optional[str] = None
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if quote:
            buf.append(ch)
            if ch == "\\" and quote != "`" and i + 1 < n:
                buf.append(sql[i + 1])
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue

        if ch == "#" or sql.startswith("--", i):
            newline = sql.find("\n", i)
            i = n if newline == -1 else newline
            continue

        if ch in _QUOTES:
            quote = ch
        elif ch == ";":
            statement = "".join(buf).strip()
            buf = []
            i += 1
            if statement:
                yield statement
            continue

        buf.append(ch)
        i += 1

    statement = "".join(buf).strip()
    if statement:
        yield statement


def _connect(config: DBConfig, *, with_database: bool = True):
    params = dict(
        host=config.host,
        port=config.port,
        user=config.user,
        password=config.password,
        connection_timeout=config.timeout_seconds,
    )
    if with_database:
        params["database"] = config.database
    return mysql.connector.connect(**params)


def ensure_database_exists(config: DBConfig) -> None:
    conn = _connect(config, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(config: DBConfig, *, schema_path: str | Path) -> int:
    """Create the database if needed and run every statement of schema_path.

    Returns the number of statements executed.
    """
    ensure_database_exists(config)
    sql = _strip_create_db_and_use(Path(schema_path).read_text(encoding="utf-8"))

    executed = 0
    conn = _connect(config)
    try:
        cur = conn.cursor()
        for statement in iter_sql_statements(sql):
            cur.execute(statement)
            executed += 1
        conn.commit()
    finally:
        conn.close()

    logger.info("Applied %d schema statements to %s@%s/%s", executed, config.user, config.host, config.database)
    return executed


def list_tables(config: DBConfig) -> list[str]:
    conn = _connect(config)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
