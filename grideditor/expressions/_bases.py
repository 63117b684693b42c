"""Base expression types: every SQL fragment carries its own bound values."""

from __future__ import annotations
from typing import Any, Tuple

from pydantic import BaseModel, Field as PydanticField


class Expression(BaseModel):
    """Base type for all SQL fragments.

    Subclasses implement the ``sql`` property. ``values`` returns the bound
    values in the same order as the ``?`` placeholders in ``sql``; the default
    is an empty tuple.
    """

    model_config = {"arbitrary_types_allowed": True}

    @property
    def sql(self) -> str:
        """SQL text for this fragment, with ``?`` for bound parameters."""
        raise NotImplementedError("Subclasses must implement `sql` property")

    @property
    def values(self) -> tuple[Any, ...]:
        """Bound values for placeholders in ``sql``, in order."""
        return ()

    def __and__(self, other: Expression):
        from .nary_operator import NaryOperatorExpression
        return NaryOperatorExpression(symbol="AND", arguments=(self, other))

    def __or__(self, other: Expression):
        from .nary_operator import NaryOperatorExpression
        return NaryOperatorExpression(symbol="OR", arguments=(self, other))


class Fragment(Expression):
    """Literal SQL text paired with the values its placeholders expect."""

    text: str
    params: Tuple[Any, ...] = PydanticField(default_factory=tuple)

    @property
    def sql(self) -> str:
        return self.text

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(self.params)

    @classmethod
    def join(cls, fragments, separator: str = "", prefix: str = "", suffix: str = "") -> Fragment:
        """Concatenate fragments, keeping text and values aligned."""
        fragments = list(fragments)
        return cls(
            text=prefix + separator.join(f.sql for f in fragments) + suffix,
            params=sum((f.values for f in fragments), ()),
        )


class ArgumentedExpression(Expression):
    """Base for expressions that have a symbol and a tuple of sub-expressions.

    ``values`` is the concatenation of the arguments' values, in order.
    """

    symbol: str
    arguments: Tuple[Any, ...] = PydanticField(default_factory=tuple)

    @staticmethod
    def _argument_to_sql(argument: Any) -> str:
        """Render one argument as SQL: expression's ``sql`` or ``?`` for literals."""
        if isinstance(argument, Expression):
            return argument.sql
        return "?"

    @staticmethod
    def _argument_to_values(argument: Any) -> tuple[Any, ...]:
        """Collect values for one argument: recurse into expressions, else ``(argument,)``."""
        if isinstance(argument, Expression):
            return argument.values
        return (argument,)

    @property
    def values(self) -> tuple[Any, ...]:
        """All literal values from arguments, in order (recursing into nested expressions)."""
        return sum(map(self._argument_to_values, self.arguments), ())
