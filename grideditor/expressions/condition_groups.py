"""Parenthesized groups of WHERE conditions."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import Field as PydanticField

from ._bases import Expression
from .condition import LogicOperator, WhereCondition


class WhereConditionGroup(Expression):
    """One condition, or two joined by AND/OR: ``(c1 OP c2)``."""

    first: WhereCondition
    operator: Optional[LogicOperator] = None
    second: Optional[WhereCondition] = None

    @property
    def conditions(self) -> list[WhereCondition]:
        if self.second is None:
            return [self.first]
        return [self.first, self.second]

    @property
    def sql(self) -> str:
        if self.second is None:
            return f"({self.first.sql})"
        operator = (self.operator or LogicOperator.AND).value
        return f"({self.first.sql} {operator} {self.second.sql})"

    @property
    def values(self) -> tuple[Any, ...]:
        return sum((c.values for c in self.conditions), ())


class WhereConditionGroups(Expression):
    """Sequence of groups joined by per-pair logical operators.

    Groups beyond the supplied operators are joined with AND.
    """

    groups: list[WhereConditionGroup] = PydanticField(default_factory=list)
    operators: list[LogicOperator] = PydanticField(default_factory=list)

    def add_group(
        self,
        first: WhereCondition,
        operator: Optional[LogicOperator] = None,
        second: Optional[WhereCondition] = None,
    ) -> WhereConditionGroups:
        """Append a group; returns self so calls can be chained."""
        self.groups.append(WhereConditionGroup(first=first, operator=operator, second=second))
        return self

    def add_operator(self, operator: LogicOperator) -> WhereConditionGroups:
        """Append the operator placed between the last group and the next one."""
        self.operators.append(LogicOperator(operator))
        return self

    @property
    def conditions(self) -> list[WhereCondition]:
        """Every leaf condition, in rendering order."""
        return [c for group in self.groups for c in group.conditions]

    @property
    def sql(self) -> str:
        parts = []
        for index, group in enumerate(self.groups):
            if index:
                operator = self.operators[index - 1] if index - 1 < len(self.operators) else LogicOperator.AND
                parts.append(operator.value)
            parts.append(group.sql)
        return " ".join(parts)

    @property
    def values(self) -> tuple[Any, ...]:
        return sum((group.values for group in self.groups), ())
