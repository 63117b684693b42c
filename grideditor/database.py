"""Database access for the editor.

Every call runs in its own transaction (see
:class:`grideditor.transaction.TransactionManager`): a read and its counts
commit together, a batch of deletes commits or rolls back as a whole. Inside
an open transaction a call becomes a savepoint of it.
Rows come back as lists of text, the way the grid protocol carries them.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Iterable, Optional, Sequence

from .connection import _get_connection, get_dialect
from .constants import BINARYDATA
from .dialects import Dialect
from .errors import DatabaseError
from .expressions import Fragment
from .query import Query, QueryType
from .transaction import TransactionManager

logger = logging.getLogger(__name__)


def to_text(value: Any) -> str:
    """Protocol text for one database value."""
    if value is None:
        return ""
    if isinstance(value, datetime.datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, datetime.date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BINARYDATA
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Database:
    """Executes queries on the connection registered under ``name``."""

    def __init__(self, name: str = "default"):
        self.name = name
        self._dialect: Optional[Dialect] = None
        self._transactions = TransactionManager(lambda: _get_connection(name))

    @property
    def dialect(self) -> Dialect:
        if self._dialect is None:
            self._dialect = get_dialect(self.name)
        return self._dialect

    def transaction(self):
        return self._transactions.transaction()

    def close(self) -> None:
        self._transactions.close()

    # reads

    def _select(self, sql: str, values: Sequence[Any], counts: Iterable[Fragment] = ()) -> tuple[list[list[str]], list[int]]:
        totals = []
        try:
            with self.transaction() as t:
                rows = t.execute(sql, values).fetchall()
                for count in counts:
                    totals.append(int(t.execute(count.sql, count.values).fetchone()[0]))
        except Exception as error:
            logger.exception("Query failed: %s", sql)
            raise DatabaseError(str(error), sql) from error
        return [[to_text(value) for value in row] for row in rows], totals

    def execute_select(self, query: Query, with_counts: bool = False) -> list[list[str]]:
        """Rows of a SELECT query.

        With ``with_counts``, ``query.filtered_total`` and ``query.total`` are
        filled in the same transaction; without a WHERE clause both are the
        same count.
        """
        counts = []
        if with_counts:
            counts.append(query.count_fragment(filtered=True))
            if query.has_where:
                counts.append(query.count_fragment(filtered=False))
        fragment = query.fragment()
        rows, totals = self._select(fragment.sql, fragment.values, counts)
        if with_counts:
            query.filtered_total = totals[0]
            query.total = totals[-1]
        return rows

    def execute_raw_select(self, sql: str, values: Sequence[Any] = ()) -> list[list[str]]:
        """Rows of a hand-written SELECT, with ``?`` placeholders."""
        lowered = sql.lower()
        if "select" not in lowered or "from" not in lowered:
            raise ValueError(f"Not a SELECT statement: {sql}")
        rows, _ = self._select(sql, values)
        return rows

    def execute_count(self, sql: str, values: Sequence[Any] = ()) -> int:
        rows = self.execute_raw_select(sql, values)
        return int(rows[0][0]) if rows and rows[0] and rows[0][0] != "" else 0

    # writes

    def execute_insert_update(self, query: Query) -> bool:
        """Run an INSERT or UPDATE; returns False (and rolls back) when it fails.

        After an INSERT into a table with a generated key, the key is stored
        on ``query.generated_key``.
        """
        fragment = query.fragment()
        sql, values = fragment.sql, fragment.values
        try:
            with self.transaction() as t:
                cursor = t.execute(sql, values)
                if query.type is QueryType.INSERT and not query.is_link_table:
                    query.generated_key = self.dialect.fetch_generated_key(
                        t.connection, cursor, query.table, query.primary_key
                    )
        except Exception:
            logger.exception("Query failed: %s -- %r", sql, values)
            return False
        return True

    def execute_deletes(self, queries: Sequence[Query]) -> None:
        """Run DELETE queries as one transaction.

        Raises:
            DatabaseError: if any of them fails; none of them is kept.
        """
        fragments = [query.fragment() for query in queries]
        statements = [(fragment.sql, fragment.values) for fragment in fragments]
        if not statements:
            return
        current = None
        try:
            with self.transaction() as t:
                for sql, values in statements:
                    current = sql
                    t.execute(sql, values)
        except Exception as error:
            logger.exception("Delete batch failed at: %s", current)
            raise DatabaseError(str(error), current) from error


__all__ = ["Database", "to_text"]
