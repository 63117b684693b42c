"""Column descriptors.

A :class:`Field` maps a database column to the name the grid sees. It is
immutable and safe to share between requests; the values bound to it for one
request live in :class:`grideditor.bindings.Bindings`.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .column_type import ColumnType
from .date_format import DateFormat


class Field(BaseModel):
    """Immutable description of one column.

    Stored in ``Editor.fields`` and ``Join.fields``; identity (not equality)
    is what per-request bindings are keyed on.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    table: str
    """Owning table; empty for pseudo columns such as ``DT_RowId``."""
    db: str
    """Storage column name."""
    name: str = ""
    """Protocol-visible name; defaults to ``db``."""
    type: ColumnType = ColumnType.STRING
    alias: Optional[str] = None
    """Table alias used instead of ``table`` when qualifying the column."""
    function: Optional[str] = None
    """SQL expression selected in place of the column for DBFUNCTION fields."""
    can_read: bool = True
    can_write: bool = True
    exclude_on_output: bool = False
    validator: Optional[Any] = None
    """A :class:`grideditor.validation.Validator`, or None to accept anything."""
    date_format: Optional[DateFormat] = None
    substitute: Optional[Field] = None
    """Lookup descriptor this field's value is read through (see Editor create/edit)."""
    upload: Optional[Any] = None
    """A :class:`grideditor.upload.Upload` managing files referenced by this column."""

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if not data.get("name"):
                data["name"] = data.get("db", "")
            if data.get("type") in (ColumnType.DATE, ColumnType.DATE.value) and data.get("date_format") is None:
                data["date_format"] = DateFormat()
        return data

    @property
    def qualified_name(self) -> str:
        """``alias.db``, else ``table.db``, else ``db``."""
        if self.alias:
            return f"{self.alias}.{self.db}"
        if self.table:
            return f"{self.table}.{self.db}"
        return self.db

    @property
    def select_sql(self) -> str:
        """Expression used for this column in a SELECT list."""
        if self.type is ColumnType.DBFUNCTION and self.function:
            return self.function
        return self.qualified_name

    def with_alias(self, alias: Optional[str]) -> Field:
        """Return a copy qualified by ``alias`` (a new descriptor, with its own identity)."""
        return self.model_copy(update={"alias": alias})

    def __str__(self) -> str:
        return self.qualified_name


__all__ = ["Field"]
