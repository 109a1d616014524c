# orderdesk/db.py
import logging
import os
from contextlib import contextmanager
from psycopg_pool import ConnectionPool
from psycopg.rows import dict_row

DATABASE_URL = os.getenv("DATABASE_URL")
POOL_MIN = int(os.getenv("APP_POOL_MIN", "1"))
POOL_MAX = int(os.getenv("APP_POOL_MAX", "10"))

log = logging.getLogger(__name__)

_pool = None


def get_pool():
    """Open the shared pool on first use so importing the app never connects."""
    global _pool
    if _pool is None:
        if not DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not set")
        log.info("opening connection pool (min=%s, max=%s)", POOL_MIN, POOL_MAX)
        _pool = ConnectionPool(
            conninfo=DATABASE_URL,
            min_size=POOL_MIN,
            max_size=POOL_MAX,
            kwargs={"autocommit": False},  # transactions are committed explicitly
            open=True,
        )
    return _pool


def close_pool():
    global _pool
    if _pool is not None:
        _pool.close()
        _pool = None


@contextmanager
def get_conn():
    with get_pool().connection() as conn:
        yield conn

def fetch_all(conn, sql, params=None):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, params or ())
        return cur.fetchall()

def fetch_one(conn, sql, params=None):
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(sql, params or ())
        return cur.fetchone()

def execute(conn, sql, params=None):
    with conn.cursor() as cur:
        cur.execute(sql, params or ())
        return cur.rowcount
