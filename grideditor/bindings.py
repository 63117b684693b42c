"""Per-request value bindings for column descriptors."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from .column_type import ColumnType
from .field import Field

logger = logging.getLogger(__name__)


class Bindings:
    """Values bound to :class:`Field` descriptors for a single request.

    Entries are keyed by descriptor identity, so two equal-looking descriptors
    never share a value. For DATE fields both representations are stored
    together: the display value (what the client sees) and the database value
    (what gets bound to SQL).
    """

    def __init__(self):
        self._values: dict[int, tuple[Field, Any, Any]] = {}

    def __contains__(self, field: Field) -> bool:
        return id(field) in self._values

    def __len__(self) -> int:
        return len(self._values)

    def set(self, field: Field, value: Any, db_value: Any = None) -> None:
        """Bind an already converted value.

        ``db_value`` is only meaningful for DATE fields; other types bind
        ``value`` itself.
        """
        if field.type is not ColumnType.DATE:
            db_value = value
        self._values[id(field)] = (field, value, db_value)

    def set_from_client(self, field: Field, text: Optional[str]) -> bool:
        """Bind request text; returns False when nothing was bound.

        Empty input leaves the current binding untouched. Text that cannot be
        converted is logged and ignored.
        """
        if text is None or text == "":
            return False
        try:
            if field.type is ColumnType.DATE:
                self.set(field, text, field.date_format.format_to_sql(text))
            else:
                self.set(field, field.type.parse(text))
        except ValueError:
            logger.warning("Cannot bind %s from client value %r", field, text, exc_info=True)
            return False
        return True

    def set_from_db(self, field: Field, text: Optional[str]) -> bool:
        """Bind a value read back from the database; returns False when nothing was bound."""
        if text is None or text == "":
            return False
        try:
            if field.type is ColumnType.DATE:
                self.set(field, field.date_format.sql_to_format(text), text)
            else:
                self.set(field, field.type.parse(text))
        except ValueError:
            logger.warning("Cannot bind %s from database value %r", field, text, exc_info=True)
            return False
        return True

    def get(self, field: Field, default: Any = None) -> Any:
        """Client-side value (display format for dates)."""
        try:
            return self._values[id(field)][1]
        except KeyError:
            return default

    def get_db(self, field: Field, default: Any = None) -> Any:
        """Database-side value (storage format for dates)."""
        try:
            return self._values[id(field)][2]
        except KeyError:
            return default

    def text(self, field: Field) -> str:
        """Client-side value rendered as protocol text ("" when unbound)."""
        value = self.get(field)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def discard(self, fields: Iterable[Field]) -> None:
        for field in fields:
            self._values.pop(id(field), None)


__all__ = ["Bindings"]
