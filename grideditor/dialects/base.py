"""Base Dialect type: paging, INSERT key capture, placeholder style and connect() per engine."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Sequence

from pydantic import BaseModel


def _replace_placeholders(sql: str, make) -> str:
    """Replace ``?`` placeholders outside quoted literals with ``make(index)``; escape ``%`` when asked."""
    out = []
    quote = None
    index = 0
    for char in sql:
        if quote:
            out.append(char)
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
            out.append(char)
        elif char == "?":
            index += 1
            out.append(make(index))
        else:
            out.append(char)
    return "".join(out)


class Dialect(BaseModel, ABC):
    """Base for database dialects; subclasses implement connect() for a given URL."""

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('sqlite',), ('mssql', 'sqlserver'))."""

    PARAMSTYLE: ClassVar[str] = "qmark"
    """DB-API paramstyle of the driver: 'qmark', 'format' or 'numeric'."""

    PAGING_REQUIRES_ORDER: ClassVar[bool] = False
    """True when OFFSET/FETCH is only valid after an ORDER BY clause."""

    def sql_limit(self, offset: Optional[int], limit: Optional[int]) -> str:
        """Paging clause (with leading space), or "" when ``limit`` is unset or negative."""
        if limit is None or limit < 0:
            return ""
        offset = max(offset or 0, 0)
        return f" LIMIT {int(limit)} OFFSET {int(offset)}"

    def insert_sql(self, table: str, columns: Sequence[str], primary_key: Optional[str]) -> str:
        """INSERT statement; ``primary_key`` is None for tables without a generated key."""
        placeholders = ", ".join("?" for _ in columns)
        return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"

    def fetch_generated_key(self, connection: Any, cursor: Any, table: str, primary_key: str) -> Optional[int]:
        """Key generated by the INSERT that just ran on ``cursor``."""
        key = getattr(cursor, "lastrowid", None)
        return int(key) if key is not None else None

    def begin(self, raw: Any) -> None:
        """Open a transaction on ``raw``; drivers that open one implicitly need nothing."""

    def savepoint_sql(self, name: str) -> str:
        return f"SAVEPOINT {name}"

    def release_savepoint_sql(self, name: str) -> Optional[str]:
        """None when the engine has no RELEASE (the savepoint ends with the transaction)."""
        return f"RELEASE SAVEPOINT {name}"

    def rollback_to_savepoint_sql(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {name}"

    def adapt_placeholders(self, sql: str) -> str:
        """Rewrite ``?`` placeholders for the driver's paramstyle."""
        if self.PARAMSTYLE == "qmark":
            return sql
        if self.PARAMSTYLE == "format":
            return _replace_placeholders(sql.replace("%", "%%"), lambda index: "%s")
        if self.PARAMSTYLE == "numeric":
            return _replace_placeholders(sql, lambda index: f":{index}")
        raise ValueError(f"Unsupported paramstyle: {self.PARAMSTYLE}")

    @abstractmethod
    def connect(self, url: str) -> Any:
        """Return a new raw driver connection for the given URL.

        The return value is engine-specific (e.g. sqlite3.Connection, pymysql.Connection).
        """
        ...  # pylint: disable=unnecessary-ellipsis
