"""SQL fragments: each one pairs its rendered text with its bound values."""

from ._bases import Expression, Fragment, ArgumentedExpression
from .nary_operator import NaryOperatorExpression
from .condition import LogicOperator, WhereCondition, NO_PLACEHOLDER_OPERATORS
from .condition_groups import WhereConditionGroup, WhereConditionGroups
from .order import Order

__all__ = [
    "Expression",
    "Fragment",
    "ArgumentedExpression",
    "NaryOperatorExpression",
    "LogicOperator",
    "WhereCondition",
    "NO_PLACEHOLDER_OPERATORS",
    "WhereConditionGroup",
    "WhereConditionGroups",
    "Order",
]
