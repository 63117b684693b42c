"""Tests for grideditor.expressions: fragments, WHERE conditions, condition groups and orders."""

import pytest

from grideditor.column_type import ColumnType
from grideditor.errors import BindTypeError
from grideditor.expressions import (
    Fragment,
    LogicOperator,
    NaryOperatorExpression,
    Order,
    WhereCondition,
    WhereConditionGroups,
)
from grideditor.field import Field


LASTNAME = Field(table="employees", db="LASTNAME")
AGE = Field(table="employees", db="AGE", type=ColumnType.INT)


def test_fragment_join_keeps_values_aligned():
    fragment = Fragment.join(
        [Fragment(text="a = ?", params=(1,)), Fragment(text="b = ?", params=("x",))],
        separator=" AND ",
        prefix="(",
        suffix=")",
    )
    assert fragment.sql == "(a = ? AND b = ?)"
    assert fragment.values == (1, "x")


def test_where_condition_binds_by_field_type():
    condition = WhereCondition(field=AGE, value="30", operator=">=")
    assert condition.sql == "employees.AGE >= ?"
    assert condition.values == (30,)


def test_where_condition_is_null_takes_no_value():
    condition = WhereCondition(field=LASTNAME, operator="is null")
    assert condition.sql == "employees.LASTNAME IS NULL"
    assert condition.values == ()


def test_where_condition_between_binds_both_ends():
    condition = WhereCondition(field=AGE, value=("20", 40), operator="BETWEEN")
    assert condition.sql == "employees.AGE BETWEEN ? AND ?"
    assert condition.values == (20, 40)


def test_where_condition_like_keeps_pattern():
    condition = WhereCondition(field=AGE, value="%3%", operator="LIKE")
    assert condition.sql == "employees.AGE LIKE ?"
    assert condition.values == ("%3%",)


def test_where_condition_bad_value_raises():
    with pytest.raises(BindTypeError):
        WhereCondition(field=AGE, value="thirty").values


def test_and_or_operators():
    expression = WhereCondition(field=LASTNAME, value="Smith") | WhereCondition(field=AGE, value=3)
    assert isinstance(expression, NaryOperatorExpression)
    assert expression.sql == "(employees.LASTNAME = ? OR employees.AGE = ?)"
    assert expression.values == ("Smith", 3)
    combined = expression & WhereCondition(field=AGE, value=4, operator="<>")
    assert combined.sql == "((employees.LASTNAME = ? OR employees.AGE = ?) AND employees.AGE <> ?)"
    assert combined.values == ("Smith", 3, 4)


def test_condition_groups():
    groups = WhereConditionGroups()
    groups.add_group(
        WhereCondition(field=LASTNAME, value="Smith"),
        LogicOperator.OR,
        WhereCondition(field=LASTNAME, value="Jones"),
    ).add_operator(LogicOperator.AND).add_group(WhereCondition(field=AGE, value=30, operator=">"))
    assert groups.sql == "(employees.LASTNAME = ? OR employees.LASTNAME = ?) AND (employees.AGE > ?)"
    assert groups.values == ("Smith", "Jones", 30)
    assert len(groups.conditions) == 3


def test_condition_groups_default_to_and():
    groups = WhereConditionGroups()
    groups.add_group(WhereCondition(field=AGE, value=1)).add_group(WhereCondition(field=AGE, value=2))
    assert groups.sql == "(employees.AGE = ?) AND (employees.AGE = ?)"


def test_order():
    assert Order(field=LASTNAME).sql == "employees.LASTNAME ASC"
    assert Order(field=LASTNAME, desc=True).sql == "employees.LASTNAME DESC"
    assert Order(field=LASTNAME).values == ()
