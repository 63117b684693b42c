"""Query builder.

A :class:`Query` renders one SELECT, INSERT, UPDATE or DELETE statement. Text
and bound values are produced together from :class:`Fragment` pieces, so the
``?`` placeholders in :attr:`Query.sql` always line up with
:attr:`Query.values`.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field as PydanticField

from .bindings import Bindings
from .dialects import Dialect, SqliteDialect
from .errors import BindTypeError, ConfigurationError
from .expressions import Expression, Fragment, LogicOperator, Order, WhereConditionGroups
from .field import Field

logger = logging.getLogger(__name__)


class QueryType(str, enum.Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Query(BaseModel):
    """One SQL statement against ``table``, with the values bound to it.

    For SELECT, ``fields`` are followed by the fields of every attached join
    that is not ``exclude_on_select``. For INSERT and UPDATE, each field binds
    its database value from ``bindings``.
    """

    model_config = {"arbitrary_types_allowed": True}

    type: QueryType = QueryType.SELECT
    table: str
    alias: Optional[str] = None
    dialect: Dialect = PydanticField(default_factory=SqliteDialect)
    fields: list[Field] = PydanticField(default_factory=list)
    joins: list[Any] = PydanticField(default_factory=list)
    """:class:`grideditor.join.Join` instances rendered after FROM (SELECT only)."""
    where: list[Expression] = PydanticField(default_factory=list)
    """Flat conditions, joined by ``filter_operator``."""
    where_groups: Optional[WhereConditionGroups] = None
    """Grouped conditions; used instead of ``where`` when set."""
    filter_operator: LogicOperator = LogicOperator.AND
    orders: list[Order] = PydanticField(default_factory=list)
    offset: Optional[int] = None
    limit: Optional[int] = None
    primary_key: str = "id"
    is_link_table: bool = False
    """Link tables have no generated key: INSERT lists only their own columns."""
    bindings: Bindings = PydanticField(default_factory=Bindings)

    generated_key: Optional[int] = None
    """Filled by the database after an INSERT."""
    total: int = 0
    filtered_total: int = 0

    # descriptors

    @property
    def table_reference(self) -> str:
        return f"{self.table} {self.alias}" if self.alias else self.table

    @property
    def select_fields(self) -> list[Field]:
        """Own fields, then the fields of every selected join."""
        fields = list(self.fields)
        for join in self._selected_joins:
            fields.extend(join.fields)
        return fields

    @property
    def _selected_joins(self) -> list[Any]:
        return [join for join in self.joins if not join.exclude_on_select]

    @property
    def has_where(self) -> bool:
        if self.where_groups is not None and self.where_groups.groups:
            return True
        return bool(self.where)

    @property
    def has_paging(self) -> bool:
        return self.limit is not None and self.limit >= 0

    # fragments

    def _where_fragment(self) -> Fragment:
        if self.where_groups is not None and self.where_groups.groups:
            expression = self.where_groups
        elif self.where:
            expression = Fragment.join(self.where, separator=f" {self.filter_operator.value} ")
        else:
            return Fragment(text="")
        return Fragment(text=" WHERE " + expression.sql, params=expression.values)

    def _join_fragment(self) -> Fragment:
        return Fragment(text="".join(join.sql_fragment for join in self._selected_joins))

    def _order_fragment(self) -> Fragment:
        if self.orders:
            return Fragment.join(self.orders, separator=", ", prefix=" ORDER BY ")
        if self.has_paging and self.dialect.PAGING_REQUIRES_ORDER:
            return Fragment(text=f" ORDER BY {self.alias or self.table}.{self.primary_key}")
        return Fragment(text="")

    def _bound_fields(self) -> list[tuple[Field, Any]]:
        """Fields with their driver values; a field whose value cannot be bound is skipped."""
        bound = []
        for field in self.fields:
            try:
                bound.append((field, field.type.bind(self.bindings.get_db(field))))
            except BindTypeError as error:
                logger.warning("Skipping column %s in %s %s: %s", field.db, self.type.value, self.table, error)
        return bound

    def fragment(self) -> Fragment:
        """The statement and its bound values from one rendering."""
        if self.type is QueryType.SELECT:
            columns = ", ".join(field.select_sql for field in self.select_fields)
            return Fragment.join([
                Fragment(text=f"SELECT {columns} FROM {self.table_reference}"),
                self._join_fragment(),
                self._where_fragment(),
                self._order_fragment(),
                Fragment(text=self.sql_limit),
            ])
        if self.type is QueryType.INSERT:
            bound = self._bound_fields()
            primary_key = None if self.is_link_table else self.primary_key
            return Fragment(
                text=self.dialect.insert_sql(self.table, [field.db for field, _ in bound], primary_key),
                params=tuple(value for _, value in bound),
            )
        if self.type is QueryType.UPDATE:
            if not self.has_where:
                raise ConfigurationError(f"Refusing to render UPDATE on `{self.table}` without a WHERE clause")
            bound = self._bound_fields()
            if not bound:
                raise ConfigurationError(f"UPDATE on `{self.table}` has no column to set")
            assignments = Fragment(
                text=", ".join(f"{field.db} = ?" for field, _ in bound),
                params=tuple(value for _, value in bound),
            )
            return Fragment.join([
                Fragment(text=f"UPDATE {self.table} SET "),
                assignments,
                self._where_fragment(),
            ])
        if self.type is QueryType.DELETE:
            if not self.has_where:
                raise ConfigurationError(f"Refusing to render DELETE on `{self.table}` without a WHERE clause")
            return Fragment.join([Fragment(text=f"DELETE FROM {self.table}"), self._where_fragment()])
        raise ValueError(f"Unhandled query type {self.type!r}")

    # rendering

    @property
    def sql(self) -> str:
        return self.fragment().sql

    @property
    def values(self) -> tuple[Any, ...]:
        """Bound values in placeholder order: field values, then WHERE values."""
        return self.fragment().values

    @property
    def sql_limit(self) -> str:
        """Paging clause for the dialect; paging numbers are inlined, never bound."""
        if not self.has_paging:
            return ""
        return self.dialect.sql_limit(self.offset, self.limit)

    def count_fragment(self, filtered: bool = True) -> Fragment:
        """``SELECT COUNT(*)`` over the table; with joins and WHERE when ``filtered``."""
        head = Fragment(text=f"SELECT COUNT(*) FROM {self.table_reference}")
        if not filtered:
            return head
        return Fragment.join([head, self._join_fragment(), self._where_fragment()])

    def count_sql(self, filtered: bool = True) -> str:
        return self.count_fragment(filtered).sql

    def count_values(self, filtered: bool = True) -> tuple[Any, ...]:
        return self.count_fragment(filtered).values

    def __str__(self) -> str:
        return self.sql


__all__ = ["Query", "QueryType"]
