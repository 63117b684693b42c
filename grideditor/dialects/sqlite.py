"""SQLite dialect."""

import logging
import urllib.parse

from typing import ClassVar

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """Dialect for SQLite (scheme sqlite)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)

    def begin(self, raw) -> None:
        # sqlite3 only opens a transaction before DML, and a SAVEPOINT outside
        # one would commit on release
        if not raw.in_transaction:
            raw.execute("BEGIN")

    def connect(self, url: str):
        import sqlite3
        parsed = urllib.parse.urlparse(url)
        path = (parsed.path or "")[1:] or parsed.hostname or ":memory:"
        logger.debug("Connecting to SQLite database %s", path)
        conn = sqlite3.connect(path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn
