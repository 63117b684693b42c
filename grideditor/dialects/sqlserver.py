"""SQL Server dialect."""

import urllib.parse
from typing import ClassVar, Optional, Sequence

from .base import Dialect


class SqlserverDialect(Dialect):
    """Dialect for SQL Server (schemes mssql, sqlserver)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mssql", "sqlserver")

    PAGING_REQUIRES_ORDER: ClassVar[bool] = True

    def sql_limit(self, offset: Optional[int], limit: Optional[int]) -> str:
        if limit is None or limit < 0:
            return ""
        offset = max(offset or 0, 0)
        return f" OFFSET {int(offset)} ROW FETCH NEXT {int(limit)} ROWS ONLY"

    def insert_sql(self, table: str, columns: Sequence[str], primary_key: Optional[str]) -> str:
        if primary_key is None:
            return super().insert_sql(table, columns, primary_key)
        placeholders = ", ".join("?" for _ in columns)
        return f"INSERT INTO {table} ({', '.join(columns)}) OUTPUT INSERTED.{primary_key} VALUES ({placeholders})"

    def fetch_generated_key(self, connection, cursor, table: str, primary_key: str) -> Optional[int]:
        row = cursor.fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def savepoint_sql(self, name: str) -> str:
        return f"SAVE TRANSACTION {name}"

    def release_savepoint_sql(self, name: str) -> Optional[str]:
        return None

    def rollback_to_savepoint_sql(self, name: str) -> str:
        return f"ROLLBACK TRANSACTION {name}"

    def connect(self, url: str):
        import pyodbc  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        database = (parsed.path or "").lstrip("/") or None
        port = parsed.port or 1433
        server = parsed.hostname or "localhost"
        if port and port != 1433:
            server = f"{server},{port}"
        conn_str = (
            f"DRIVER={{ODBC Driver 17 for SQL Server}};"
            f"SERVER={server};"
            f"DATABASE={database or ''};"
            f"UID={parsed.username or ''};"
            f"PWD={parsed.password or ''}"
        )
        return pyodbc.connect(conn_str)
