import os
import psycopg
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator

# Anything that yields a psycopg connection for the duration of one gateway
# call. The default opens a fresh autocommit connection; a hosting layer with
# its own pool passes a factory that borrows from it instead.
ConnFactory = Callable[[], ContextManager[psycopg.Connection]]


def get_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL must be set")
    return url


@contextmanager
def get_conn() -> Iterator[psycopg.Connection]:
    conn = psycopg.connect(get_database_url(), autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


def fetchone_dict(cur) -> dict | None:
    row = cur.fetchone()
    if row is None:
        return None
    columns = [desc.name for desc in cur.description]
    return dict(zip(columns, row))


def fetchall_dicts(cur) -> list[dict]:
    rows = cur.fetchall()
    if not rows:
        return []
    columns = [desc.name for desc in cur.description]
    return [dict(zip(columns, r)) for r in rows]
