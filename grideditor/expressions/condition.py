"""WHERE clause leaves."""

from __future__ import annotations

import enum
from typing import Any

from ._bases import Expression
from ..field import Field


NO_PLACEHOLDER_OPERATORS = ("IS NULL", "IS NOT NULL")


class LogicOperator(str, enum.Enum):
    """Logical operator joining conditions or condition groups."""

    AND = "AND"
    OR = "OR"


class WhereCondition(Expression):
    """``field OP ?`` with its value.

    ``IS NULL`` / ``IS NOT NULL`` take no value; ``BETWEEN`` takes a
    ``(low, high)`` pair and binds both ends.
    """

    field: Field
    value: Any = None
    operator: str = "="

    @property
    def _operator(self) -> str:
        return self.operator.strip().upper()

    @property
    def sql(self) -> str:
        operator = self._operator
        name = self.field.qualified_name
        if operator in NO_PLACEHOLDER_OPERATORS:
            return f"{name} {operator}"
        if operator == "BETWEEN":
            return f"{name} BETWEEN ? AND ?"
        return f"{name} {self.operator.strip()} ?"

    @property
    def values(self) -> tuple[Any, ...]:
        operator = self._operator
        if operator in NO_PLACEHOLDER_OPERATORS:
            return ()
        if operator == "BETWEEN":
            low, high = self.value
            return (self._bind(low), self._bind(high))
        return (self._bind(self.value),)

    def _bind(self, value: Any) -> Any:
        if isinstance(value, str) and self._operator in ("LIKE", "NOT LIKE"):
            return value
        return self.field.type.bind(value)
