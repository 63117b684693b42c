"""ORDER BY expression."""

from __future__ import annotations

from ._bases import Expression
from ..field import Field


class Order(Expression):
    """Sort on a column: ``column ASC`` or ``column DESC``."""

    field: Field
    desc: bool = False

    @property
    def sql(self) -> str:
        return self.field.select_sql + (" DESC" if self.desc else " ASC")
