# relational_engine/ast/builders.py
"""
Shorthand constructors for building plans in code and tests.

Plain Python values passed where an expression is expected become literals;
use col() for column references.
"""

from typing import Any, Iterable, Optional

from relational_engine.ast.expression_ast import (
    AggregateCall, Between, BinaryOp, Case, ColumnRef, Comparison, Expression,
    FunctionCall, InList, IsNull, Like, Literal, LogicalOp, Not, SortKey, Star,
    SubqueryExpr, SubqueryMode, UnaryOp, WindowCall
)


def _expr(value: Any) -> Expression:
    return value if isinstance(value, Expression) else Literal(value)


def col(reference: str) -> ColumnRef:
    """col("salary") or col("e.salary")."""
    if "." in reference:
        table, name = reference.split(".", 1)
        return ColumnRef(name, table)
    return ColumnRef(reference)


def lit(value: Any) -> Literal:
    return Literal(value)


def star(table: Optional[str] = None) -> Star:
    return Star(table)


def eq(left, right):
    return Comparison("=", _expr(left), _expr(right))


def ne(left, right):
    return Comparison("<>", _expr(left), _expr(right))


def lt(left, right):
    return Comparison("<", _expr(left), _expr(right))


def le(left, right):
    return Comparison("<=", _expr(left), _expr(right))


def gt(left, right):
    return Comparison(">", _expr(left), _expr(right))


def ge(left, right):
    return Comparison(">=", _expr(left), _expr(right))


def add(left, right):
    return BinaryOp("+", _expr(left), _expr(right))


def sub(left, right):
    return BinaryOp("-", _expr(left), _expr(right))


def mul(left, right):
    return BinaryOp("*", _expr(left), _expr(right))


def div(left, right):
    return BinaryOp("/", _expr(left), _expr(right))


def concat(left, right):
    return BinaryOp("||", _expr(left), _expr(right))


def neg(operand):
    return UnaryOp("-", _expr(operand))


def and_(*operands):
    return LogicalOp("AND", tuple(_expr(o) for o in operands))


def or_(*operands):
    return LogicalOp("OR", tuple(_expr(o) for o in operands))


def not_(operand):
    return Not(_expr(operand))


def is_null(operand):
    return IsNull(_expr(operand))


def is_not_null(operand):
    return IsNull(_expr(operand), negated=True)


def like(operand, pattern, escape: Optional[str] = None):
    return Like(_expr(operand), _expr(pattern), escape=escape)


def not_like(operand, pattern, escape: Optional[str] = None):
    return Like(_expr(operand), _expr(pattern), negated=True, escape=escape)


def in_list(operand, items: Iterable[Any]):
    return InList(_expr(operand), tuple(_expr(i) for i in items))


def not_in_list(operand, items: Iterable[Any]):
    return InList(_expr(operand), tuple(_expr(i) for i in items), negated=True)


def between(operand, low, high):
    return Between(_expr(operand), _expr(low), _expr(high))


def case(*whens, else_=None, operand=None):
    return Case(tuple((_expr(c), _expr(r)) for c, r in whens),
                None if else_ is None else _expr(else_),
                None if operand is None else _expr(operand))


def func(name: str, *args):
    return FunctionCall(name, tuple(_expr(a) for a in args))


def count(arg=None, distinct: bool = False):
    """count() is COUNT(*)."""
    return AggregateCall("COUNT", None if arg is None else _expr(arg), distinct)


def sum_(arg, distinct: bool = False):
    return AggregateCall("SUM", _expr(arg), distinct)


def avg(arg, distinct: bool = False):
    return AggregateCall("AVG", _expr(arg), distinct)


def min_(arg):
    return AggregateCall("MIN", _expr(arg))


def max_(arg):
    return AggregateCall("MAX", _expr(arg))


def string_agg(arg, separator: str = ",", distinct: bool = False):
    return AggregateCall("STRING_AGG", _expr(arg), distinct, separator)


def asc(expr, nulls: Optional[str] = None) -> SortKey:
    return SortKey(_expr(expr), False, nulls)


def desc(expr, nulls: Optional[str] = None) -> SortKey:
    return SortKey(_expr(expr), True, nulls)


def _window(name, partition_by, order_by, argument=None):
    return WindowCall(name, tuple(_expr(p) for p in partition_by or ()),
                      tuple(k if isinstance(k, SortKey) else asc(k) for k in order_by or ()),
                      argument)


def row_number(partition_by=(), order_by=()):
    return _window("ROW_NUMBER", partition_by, order_by)


def rank(partition_by=(), order_by=()):
    return _window("RANK", partition_by, order_by)


def dense_rank(partition_by=(), order_by=()):
    return _window("DENSE_RANK", partition_by, order_by)


def percent_rank(partition_by=(), order_by=()):
    return _window("PERCENT_RANK", partition_by, order_by)


def cume_dist(partition_by=(), order_by=()):
    return _window("CUME_DIST", partition_by, order_by)


def ntile(buckets: int, partition_by=(), order_by=()):
    return _window("NTILE", partition_by, order_by, buckets)


def scalar_subquery(plan, correlation_columns=()):
    return SubqueryExpr(SubqueryMode.SCALAR, plan, tuple(correlation_columns))


def exists(plan, correlation_columns=()):
    return SubqueryExpr(SubqueryMode.EXISTS, plan, tuple(correlation_columns))


def not_exists(plan, correlation_columns=()):
    return SubqueryExpr(SubqueryMode.EXISTS, plan, tuple(correlation_columns), negated=True)


def in_subquery(operand, plan, correlation_columns=()):
    return SubqueryExpr(SubqueryMode.IN, plan, tuple(correlation_columns), _expr(operand))


def not_in_subquery(operand, plan, correlation_columns=()):
    return SubqueryExpr(SubqueryMode.IN, plan, tuple(correlation_columns), _expr(operand),
                        negated=True)
