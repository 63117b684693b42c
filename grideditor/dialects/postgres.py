"""PostgreSQL dialect."""

import urllib.parse
from typing import ClassVar, Optional, Sequence

from .base import Dialect


class PostgresDialect(Dialect):
    """Dialect for PostgreSQL (schemes postgresql, postgres); keys come back through RETURNING."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("postgresql", "postgres")

    PARAMSTYLE: ClassVar[str] = "format"

    def insert_sql(self, table: str, columns: Sequence[str], primary_key: Optional[str]) -> str:
        sql = super().insert_sql(table, columns, primary_key)
        if primary_key is None:
            return sql
        return f"{sql} RETURNING {primary_key}"

    def fetch_generated_key(self, connection, cursor, table: str, primary_key: str) -> Optional[int]:
        row = cursor.fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def connect(self, url: str):
        import psycopg2  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        return psycopg2.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            dbname=(parsed.path or "")[1:] or None,
            port=parsed.port or 5432,
        )
