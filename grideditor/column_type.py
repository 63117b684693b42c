"""Column value types.

Every site that converts or binds a value dispatches on :class:`ColumnType`
and handles each member explicitly; an unknown member is an error, never a
silent fallthrough.
"""

from __future__ import annotations

import enum
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import BindTypeError


class ColumnType(str, enum.Enum):
    """Value type of a column descriptor."""

    STRING = "string"
    INT = "int"
    FLOAT = "float"
    DOUBLE = "double"
    LONG = "long"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DBFUNCTION = "dbfunction"
    FILE = "file"

    def parse(self, text: str) -> Any:
        """Convert request text to the Python value stored in the bindings.

        Raises:
            ValueError: if the text cannot be read as this type.
        """
        if self is ColumnType.STRING or self is ColumnType.DBFUNCTION:
            return text
        if self is ColumnType.INT or self is ColumnType.LONG:
            return int(text)
        if self is ColumnType.FLOAT or self is ColumnType.DOUBLE:
            return float(text)
        if self is ColumnType.DECIMAL:
            try:
                return Decimal(text)
            except InvalidOperation as error:
                raise ValueError(f"Invalid decimal: {text!r}") from error
        if self is ColumnType.BOOLEAN:
            return text.strip().lower() == "true"
        if self is ColumnType.DATE:
            # dates are converted by DateFormat, the raw text is kept
            return text
        if self is ColumnType.FILE:
            return text.encode("utf-8")
        raise ValueError(f"Unhandled column type {self!r}")

    def bind(self, value: Any) -> Any:
        """Return the driver parameter for ``value``.

        ``None`` always binds as SQL NULL. Numeric text is coerced for the
        integer and floating point types; booleans, longs and decimals must
        already carry the matching Python type.

        Raises:
            BindTypeError: if the runtime type does not match this column type.
        """
        if value is None:
            return None
        if self is ColumnType.STRING or self is ColumnType.DBFUNCTION or self is ColumnType.DATE:
            return str(value)
        if self is ColumnType.INT:
            return _coerce(self, int, value)
        if self is ColumnType.FLOAT or self is ColumnType.DOUBLE:
            return _coerce(self, float, value)
        if self is ColumnType.LONG:
            if isinstance(value, bool) or not isinstance(value, int):
                raise BindTypeError(f"{self.name} column cannot bind {type(value).__name__} value {value!r}")
            return value
        if self is ColumnType.DECIMAL:
            if not isinstance(value, Decimal):
                raise BindTypeError(f"{self.name} column cannot bind {type(value).__name__} value {value!r}")
            return value
        if self is ColumnType.BOOLEAN:
            if not isinstance(value, bool):
                raise BindTypeError(f"{self.name} column cannot bind {type(value).__name__} value {value!r}")
            return value
        if self is ColumnType.FILE:
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise BindTypeError(f"{self.name} column cannot bind {type(value).__name__} value")
            return bytes(value)
        raise ValueError(f"Unhandled column type {self!r}")


def _coerce(column_type: ColumnType, cast: type, value: Any) -> Any:
    if isinstance(value, bool):
        raise BindTypeError(f"{column_type.name} column cannot bind bool value {value!r}")
    try:
        return cast(value)
    except (TypeError, ValueError) as error:
        raise BindTypeError(f"{column_type.name} column cannot bind {value!r}") from error


__all__ = ["ColumnType"]
