"""Joins between the editor's parent table and child tables.

A direct join is a one-to-one relation: the child row holds a key pointing
at the parent, and the child's fields are selected together with the parent
row.

A link join is a one-to-many relation through a link table. Its rows are
fetched once per request, ordered by parent id, into a :class:`JoinCache`;
:meth:`Join.resolve` then finds the run of rows belonging to a parent with
:func:`binary_search` and collects its neighbours on both sides.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field as PydanticField, model_validator

from .bindings import Bindings
from .column_type import ColumnType
from .errors import ConfigurationError, DatabaseError, InsufficientDataError
from .expressions import WhereCondition
from .field import Field
from .query import Query, QueryType

logger = logging.getLogger(__name__)


class JoinType(str, enum.Enum):
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    INNER = "INNER"
    OUTER = "OUTER"
    LEFT_OUTER = "LEFT OUTER"
    RIGHT_OUTER = "RIGHT OUTER"
    STRAIGHT = ""

    @property
    def keyword(self) -> str:
        """``" LEFT JOIN"``, ``" JOIN"`` for STRAIGHT."""
        return f" {self.value} JOIN" if self.value else " JOIN"


def _is_sorted(rows: Sequence[Sequence[str]]) -> bool:
    try:
        keys = [int(row[0]) for row in rows]
    except (ValueError, IndexError, TypeError):
        return False
    return all(a <= b for a, b in zip(keys, keys[1:]))


def binary_search(rows: Sequence[Sequence[str]], key: int, check_sorted: bool = False) -> int:
    """Index of a row whose first column equals ``key``, else ``-(insertion point + 1)``.

    Rows must be sorted ascending on their first (numeric) column. With
    ``check_sorted`` the order is verified first and ``ValueError`` is raised
    when it does not hold; otherwise unsorted rows give unreliable answers.
    """
    if check_sorted and not _is_sorted(rows):
        raise ValueError("rows are not sorted by their first column")
    low = 0
    high = len(rows) - 1
    while low <= high:
        mid = (low + high) // 2
        value = int(rows[mid][0])
        if value < key:
            low = mid + 1
        elif value > key:
            high = mid - 1
        else:
            return mid
    return -(low + 1)


class JoinCache(BaseModel):
    """Rows fetched for one link join during one request.

    ``rows`` is None when the fetch failed; ``query`` is the SQL that was run.
    """

    rows: Optional[list[list[str]]] = None
    query: str = ""
    upload_mode: bool = False
    is_sorted: bool = True

    @model_validator(mode="after")
    def _check_sorted(self) -> JoinCache:
        self.is_sorted = self.rows is None or _is_sorted(self.rows)
        return self


class Join(BaseModel):
    """Relation from ``parent_table`` to ``child_table``.

    Configure either ``parent_field``/``child_field`` (direct join, child key
    compared to the parent key) or ``parent_fields``/``child_fields`` plus
    ``link_table`` (link join). For a link join, ``parent_fields`` is
    ``(parent column, link column)`` and ``child_fields`` is
    ``(child column, link column)``.

    When ``alias`` is set, the child table is joined under that alias and
    every field is qualified by it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    parent_table: str
    child_table: str
    alias: Optional[str] = None
    type: JoinType = JoinType.STRAIGHT
    fields: tuple[Field, ...] = PydanticField(default_factory=tuple)

    parent_field: Optional[str] = None
    child_field: Optional[str] = None

    parent_fields: Optional[tuple[str, str]] = None
    child_fields: Optional[tuple[str, str]] = None
    link_table: Optional[str] = None

    operator: str = "="
    primary_key: str = "id"
    """Primary key of the child table."""
    can_read: bool = True
    can_write: bool = True
    exclude_on_select: bool = False
    exclude_on_output: bool = False

    @model_validator(mode="before")
    @classmethod
    def _alias_fields(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("alias"):
            data = dict(data)
            data["fields"] = tuple(
                field if field.alias == data["alias"] else field.with_alias(data["alias"])
                for field in data.get("fields", ())
            )
        return data

    @model_validator(mode="after")
    def _check_keys(self) -> Join:
        if self.link_table is not None:
            if not self.parent_fields or not self.child_fields:
                raise ConfigurationError(
                    f"Link join on `{self.link_table}` needs parent_fields and child_fields"
                )
        elif not self.parent_field or not self.child_field:
            raise ConfigurationError(
                f"Join from `{self.parent_table}` to `{self.child_table}` needs parent_field and child_field"
            )
        return self

    @property
    def is_link_table(self) -> bool:
        return self.link_table is not None

    @property
    def name(self) -> str:
        """Key of this join's values in output rows and request data."""
        return self.alias or self.child_table

    @property
    def writable_fields(self) -> list[Field]:
        return [field for field in self.fields if field.can_write]

    @property
    def sql_fragment(self) -> str:
        """The JOIN clause(s) appended after ``FROM parent``."""
        keyword = self.type.keyword
        operator = self.operator.strip()
        if self.is_link_table:
            parent_column, link_parent = self.parent_fields
            child_column, link_child = self.child_fields
            child = f"{self.child_table} {self.alias}" if self.alias else self.child_table
            return (
                f"{keyword} {self.link_table} ON {self.parent_table}.{parent_column} {operator} {self.link_table}.{link_parent}"
                f"{keyword} {child} ON {self.name}.{child_column} {operator} {self.link_table}.{link_child}"
            )
        if self.alias:
            return (
                f"{keyword} {self.child_table} {self.alias}"
                f" ON {self.parent_table}.{self.parent_field} {operator} {self.alias}.{self.child_field}"
            )
        return (
            f"{keyword} {self.child_table}"
            f" ON {self.parent_table}.{self.parent_field} {operator} {self.child_table}.{self.child_field}"
        )

    # reading

    def fetch_sql(self, parent_pk: str = "id", upload_mode: bool = False) -> str:
        if upload_mode:
            columns = f"{self.parent_table}.{parent_pk}, {self.name}.{self.primary_key}"
        else:
            columns = ", ".join([f"{self.parent_table}.{parent_pk}", *(f.select_sql for f in self.fields)])
        return (
            f"SELECT {columns} FROM {self.parent_table}{self.sql_fragment}"
            f" ORDER BY {self.parent_table}.{parent_pk}"
        )

    def fetch(self, db, parent_pk: str = "id", upload_mode: bool = False) -> JoinCache:
        """Fetch every link row of the parent table, ordered by parent id.

        A failed fetch yields a cache without rows; resolving against it
        raises :class:`InsufficientDataError`.
        """
        sql = self.fetch_sql(parent_pk, upload_mode)
        try:
            rows = db.execute_raw_select(sql)
        except DatabaseError:
            logger.exception("Fetching join `%s` failed", self.name)
            return JoinCache(rows=None, query=sql, upload_mode=upload_mode)
        return JoinCache(rows=rows, query=sql, upload_mode=upload_mode)

    def resolve(self, cache: Optional[JoinCache], id: Any, parent_pk: str = "id") -> list[dict[str, str]]:
        """Rows of ``cache`` belonging to parent ``id``, as mappings.

        Plain mode maps each join field name to its value; upload mode maps
        the child primary key name to the child id.
        """
        if cache is None or cache.rows is None:
            query = cache.query if cache is not None else self.fetch_sql(parent_pk)
            raise InsufficientDataError(
                f"Join `{self.name}` has no fetched rows: check the parent, child and link table names", query
            )
        if not cache.is_sorted:
            logger.warning("Rows of join `%s` are not sorted by parent id, results may be incomplete", self.name)
        rows = cache.rows
        key = int(id)
        index = binary_search(rows, key)
        if index < 0:
            return []
        matches = [rows[index]]
        for i in range(index - 1, -1, -1):
            if int(rows[i][0]) != key:
                break
            matches.append(rows[i])
        for i in range(index + 1, len(rows)):
            if int(rows[i][0]) != key:
                break
            matches.append(rows[i])
        if cache.upload_mode:
            return [{self.primary_key: row[1]} for row in matches]
        return [{field.name: value for field, value in zip(self.fields, row[1:])} for row in matches]

    def load_field_values(self, db, bindings: Bindings, id: Any) -> None:
        """Bind this join's fields from the child row whose primary key is ``id``."""
        if not self.fields:
            return
        columns = ", ".join(field.select_sql for field in self.fields)
        table = f"{self.child_table} {self.alias}" if self.alias else self.child_table
        sql = f"SELECT {columns} FROM {table} WHERE {self.name}.{self.primary_key} = ?"
        for row in db.execute_raw_select(sql, (id,)):
            for field, text in zip(self.fields, row):
                bindings.set_from_db(field, text)

    # writing

    def _link_key(self, column: str) -> Field:
        return Field(table=self.link_table, db=column, type=ColumnType.INT)

    def _child_key(self) -> Field:
        return Field(table=self.child_table, db=self.child_field, type=ColumnType.INT)

    def insert(self, db, bindings: Bindings, id: int, params) -> bool:
        """Write the join rows of a newly created (or replaced) parent ``id``."""
        if self.is_link_table:
            parent_key = self._link_key(self.parent_fields[1])
            child_key = self._link_key(self.child_fields[1])
            success = True
            for value in params.get_data_values(id, self.child_table):
                link_bindings = Bindings()
                link_bindings.set(parent_key, int(id))
                link_bindings.set_from_client(child_key, value)
                query = Query(
                    type=QueryType.INSERT,
                    table=self.link_table,
                    dialect=db.dialect,
                    fields=[parent_key, child_key],
                    is_link_table=True,
                    bindings=link_bindings,
                )
                success = db.execute_insert_update(query) and success
            return success
        foreign_key = self._child_key()
        bindings.set(foreign_key, int(id))
        query = Query(
            type=QueryType.INSERT,
            table=self.child_table,
            dialect=db.dialect,
            fields=[foreign_key, *self.writable_fields],
            primary_key=self.primary_key,
            bindings=bindings,
        )
        return db.execute_insert_update(query)

    def update(self, db, bindings: Bindings, id: int, params) -> bool:
        """Link joins are replaced (delete, then insert); direct joins are upserted.

        A replace is one unit: when the insert fails, the deleted links are
        restored and DatabaseError is raised.
        """
        if self.is_link_table:
            with db.transaction():
                self.delete(db, [id])
                if not self.insert(db, bindings, id, params):
                    raise DatabaseError(f"The links of row {id} in `{self.link_table}` could not be replaced")
            return True
        child_key = self._child_key()
        count = db.execute_count(
            f"SELECT COUNT(*) FROM {self.child_table} WHERE {child_key.qualified_name} = ?", (int(id),)
        )
        if count == 0:
            return self.insert(db, bindings, id, params)
        if not self.writable_fields:
            return True
        query = Query(
            type=QueryType.UPDATE,
            table=self.child_table,
            dialect=db.dialect,
            fields=self.writable_fields,
            where=[WhereCondition(field=child_key, value=int(id))],
            bindings=bindings,
        )
        return db.execute_insert_update(query)

    def delete(self, db, ids: Sequence[int]) -> None:
        """Delete the join rows of every parent in ``ids``, in one batch."""
        if self.is_link_table:
            table, key = self.link_table, self._link_key(self.parent_fields[1])
        else:
            table, key = self.child_table, self._child_key()
        queries = [
            Query(type=QueryType.DELETE, table=table, dialect=db.dialect, where=[WhereCondition(field=key, value=int(id))])
            for id in ids
        ]
        db.execute_deletes(queries)


__all__ = ["Join", "JoinType", "JoinCache", "binary_search"]
