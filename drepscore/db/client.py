"""DoltDB access for the sync store.

Upserts run in worker threads (asyncio.to_thread), so each thread keeps its
own PyMySQL connection. Statements autocommit; a sync run is versioned as a
whole with DOLT_COMMIT once it finishes.
"""

import os
import threading
from contextlib import contextmanager
from typing import Any, Generator, Optional

import pymysql
from pymysql.cursors import DictCursor

_local = threading.local()


def connection_params() -> dict:
    """PyMySQL connect() kwargs from DOLT_HOST/PORT/USER/PASSWORD/DATABASE."""
    return {
        "host": os.environ.get("DOLT_HOST", "127.0.0.1"),
        "port": int(os.environ.get("DOLT_PORT", "3306")),
        "user": os.environ.get("DOLT_USER", "root"),
        "password": os.environ.get("DOLT_PASSWORD", ""),
        "database": os.environ.get("DOLT_DATABASE", "drepscore"),
        "autocommit": True,
        "charset": "utf8mb4",
        "cursorclass": DictCursor,
    }


def _connect() -> pymysql.Connection:
    conn = getattr(_local, "conn", None)
    if conn is not None:
        try:
            conn.ping(reconnect=True)
            return conn
        except pymysql.Error:
            _local.conn = None
    conn = pymysql.connect(**connection_params())
    _local.conn = conn
    return conn


@contextmanager
def cursor() -> Generator[Any, None, None]:
    with _connect().cursor() as cur:
        yield cur


def execute_query(sql: str, params: tuple | None = None, fetch: str = "all") -> list[dict] | dict | None:
    """
    Run one statement.

    fetch is 'all' (list of dict rows), 'one' (a row or None) or 'none'.
    """
    with cursor() as cur:
        cur.execute(sql, params or ())
        if fetch == "all":
            return cur.fetchall()
        if fetch == "one":
            return cur.fetchone()
        return None


def execute_many(sql: str, params_list: list[tuple]) -> int:
    with cursor() as cur:
        cur.executemany(sql, params_list)
        return cur.rowcount


def check_connection() -> Optional[str]:
    """None when DoltDB answers SELECT 1, else the driver error text."""
    try:
        with cursor() as cur:
            cur.execute("SELECT 1")
    except pymysql.Error as e:
        return str(e)
    return None


def dolt_commit(message: str) -> str | None:
    """
    Commit the working set as DOLT_AUTHOR.

    Returns:
        Commit hash, or None when nothing changed
    """
    author = os.environ.get("DOLT_AUTHOR", "drep-sync")
    email = os.environ.get("DOLT_EMAIL", "drep-sync@drepscore.local")
    with cursor() as cur:
        cur.execute("SELECT * FROM dolt_status")
        if not cur.fetchall():
            return None
        cur.execute("CALL DOLT_ADD('-A')")
        cur.execute("CALL DOLT_COMMIT('--author', %s, '-m', %s)", (f"{author} <{email}>", message))
        row = cur.fetchone()
        return row["hash"] if row else None
