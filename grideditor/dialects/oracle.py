"""Oracle (12c and later) dialect."""

import urllib.parse
from typing import ClassVar, Optional, Sequence

from .base import Dialect


class OracleDialect(Dialect):
    """Dialect for Oracle 12c+ (scheme oracle).

    Surrogate keys come from a ``<TABLE>_SEQ`` sequence; paging uses
    ``OFFSET ... FETCH``.
    """

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("oracle",)

    PARAMSTYLE: ClassVar[str] = "numeric"

    @staticmethod
    def sequence_name(table: str) -> str:
        return f"{table.upper()}_SEQ"

    def sql_limit(self, offset: Optional[int], limit: Optional[int]) -> str:
        if limit is None or limit < 0:
            return ""
        offset = max(offset or 0, 0)
        if offset == 0:
            return f" FETCH FIRST {int(limit)} ROWS ONLY"
        return f" OFFSET {int(offset)} ROW FETCH NEXT {int(limit)} ROWS ONLY"

    def insert_sql(self, table: str, columns: Sequence[str], primary_key: Optional[str]) -> str:
        if primary_key is None:
            return super().insert_sql(table, columns, primary_key)
        placeholders = ", ".join(["?"] * len(columns))
        column_list = ", ".join([primary_key, *columns])
        values = ", ".join(filter(None, [f"{self.sequence_name(table)}.NEXTVAL", placeholders]))
        return f"INSERT INTO {table} ({column_list}) VALUES ({values})"

    def fetch_generated_key(self, connection, cursor, table: str, primary_key: str) -> Optional[int]:
        row = connection.execute(f"SELECT {self.sequence_name(table)}.CURRVAL FROM DUAL").fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def release_savepoint_sql(self, name: str) -> Optional[str]:
        return None

    def connect(self, url: str):
        import oracledb  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        dsn = f"{parsed.hostname or 'localhost'}:{parsed.port or 1521}/{(parsed.path or '').lstrip('/')}"
        return oracledb.connect(user=parsed.username, password=parsed.password, dsn=dsn)
