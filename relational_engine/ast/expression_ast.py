# relational_engine/ast/expression_ast.py
"""
Scalar expression nodes.

Nodes are frozen dataclasses, so two structurally identical expressions
compare and hash equal. Query lowering relies on that to match a GROUP BY
expression or an ORDER BY expression against the select list. Sequence
fields are stored as tuples.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Callable, Optional, Tuple


def _freeze(node, *names):
    for name in names:
        value = getattr(node, name)
        if isinstance(value, list):
            object.__setattr__(node, name, tuple(value))


class Expression:
    """Base class for all expression nodes."""

    def children(self) -> Tuple["Expression", ...]:
        return ()


@dataclass(frozen=True)
class Literal(Expression):
    value: Any

    def __str__(self) -> str:
        if self.value is None:
            return "NULL"
        if isinstance(self.value, str):
            return "'" + self.value.replace("'", "''") + "'"
        if isinstance(self.value, bool):
            return "TRUE" if self.value else "FALSE"
        return str(self.value)


@dataclass(frozen=True)
class ColumnRef(Expression):
    name: str
    table: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.table}.{self.name}" if self.table else self.name


@dataclass(frozen=True)
class Star(Expression):
    """SELECT * or SELECT t.*; only valid as a projection item."""
    table: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.table}.*" if self.table else "*"


@dataclass(frozen=True)
class UnaryOp(Expression):
    op: str
    operand: Expression

    def children(self):
        return (self.operand,)

    def __str__(self) -> str:
        return f"{self.op}{self.operand}"


@dataclass(frozen=True)
class BinaryOp(Expression):
    """Arithmetic (+ - * / %) and text concatenation (||)."""
    op: str
    left: Expression
    right: Expression

    def children(self):
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class Comparison(Expression):
    op: str
    left: Expression
    right: Expression

    def __post_init__(self):
        if self.op == "!=":
            object.__setattr__(self, "op", "<>")

    def children(self):
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"{self.left} {self.op} {self.right}"


@dataclass(frozen=True)
class LogicalOp(Expression):
    """AND / OR over two or more operands."""
    op: str
    operands: Tuple[Expression, ...]

    def __post_init__(self):
        object.__setattr__(self, "op", self.op.upper())
        _freeze(self, "operands")

    def children(self):
        return self.operands

    def __str__(self) -> str:
        return "(" + f" {self.op} ".join(str(o) for o in self.operands) + ")"


@dataclass(frozen=True)
class Not(Expression):
    operand: Expression

    def children(self):
        return (self.operand,)

    def __str__(self) -> str:
        return f"NOT {self.operand}"


@dataclass(frozen=True)
class IsNull(Expression):
    operand: Expression
    negated: bool = False

    def children(self):
        return (self.operand,)

    def __str__(self) -> str:
        return f"{self.operand} IS {'NOT ' if self.negated else ''}NULL"


@dataclass(frozen=True)
class Like(Expression):
    operand: Expression
    pattern: Expression
    negated: bool = False
    escape: Optional[str] = None

    def children(self):
        return (self.operand, self.pattern)

    def __str__(self) -> str:
        return f"{self.operand} {'NOT ' if self.negated else ''}LIKE {self.pattern}"


@dataclass(frozen=True)
class InList(Expression):
    operand: Expression
    items: Tuple[Expression, ...]
    negated: bool = False

    def __post_init__(self):
        _freeze(self, "items")

    def children(self):
        return (self.operand,) + self.items

    def __str__(self) -> str:
        items = ", ".join(str(i) for i in self.items)
        return f"{self.operand} {'NOT ' if self.negated else ''}IN ({items})"


@dataclass(frozen=True)
class Between(Expression):
    operand: Expression
    low: Expression
    high: Expression
    negated: bool = False

    def children(self):
        return (self.operand, self.low, self.high)

    def __str__(self) -> str:
        return f"{self.operand} {'NOT ' if self.negated else ''}BETWEEN {self.low} AND {self.high}"


@dataclass(frozen=True)
class Case(Expression):
    """
    CASE expression. With operand set this is the simple form
    (CASE x WHEN 1 THEN ...), otherwise the searched form.
    """
    whens: Tuple[Tuple[Expression, Expression], ...]
    else_: Optional[Expression] = None
    operand: Optional[Expression] = None

    def __post_init__(self):
        object.__setattr__(self, "whens", tuple(tuple(w) for w in self.whens))

    def children(self):
        nodes = []
        if self.operand is not None:
            nodes.append(self.operand)
        for condition, result in self.whens:
            nodes.extend((condition, result))
        if self.else_ is not None:
            nodes.append(self.else_)
        return tuple(nodes)

    def __str__(self) -> str:
        parts = ["CASE"]
        if self.operand is not None:
            parts.append(str(self.operand))
        for condition, result in self.whens:
            parts.append(f"WHEN {condition} THEN {result}")
        if self.else_ is not None:
            parts.append(f"ELSE {self.else_}")
        parts.append("END")
        return " ".join(parts)


@dataclass(frozen=True)
class FunctionCall(Expression):
    name: str
    args: Tuple[Expression, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "name", self.name.upper())
        _freeze(self, "args")

    def children(self):
        return self.args

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class AggregateCall(Expression):
    """
    Aggregate function. arg is None for COUNT(*). separator is only used by
    STRING_AGG.
    """
    func: str
    arg: Optional[Expression] = None
    distinct: bool = False
    separator: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "func", self.func.upper())

    @property
    def is_count_star(self) -> bool:
        return self.func == "COUNT" and self.arg is None

    def children(self):
        return (self.arg,) if self.arg is not None else ()

    def __str__(self) -> str:
        if self.arg is None:
            return f"{self.func}(*)"
        inner = f"DISTINCT {self.arg}" if self.distinct else str(self.arg)
        if self.separator is not None:
            inner += f", {Literal(self.separator)}"
        return f"{self.func}({inner})"


class NullsPlacement(Enum):
    FIRST = "FIRST"
    LAST = "LAST"


@dataclass(frozen=True)
class SortKey:
    """One ORDER BY item. nulls overrides the engine's NULL ordering policy."""
    expr: Expression
    descending: bool = False
    nulls: Optional[NullsPlacement] = None

    def __post_init__(self):
        if isinstance(self.nulls, str):
            object.__setattr__(self, "nulls", NullsPlacement(self.nulls.upper()))

    def __str__(self) -> str:
        text = f"{self.expr} {'DESC' if self.descending else 'ASC'}"
        if self.nulls is not None:
            text += f" NULLS {self.nulls.value}"
        return text


@dataclass(frozen=True)
class WindowCall(Expression):
    """
    Ranking window function in a select list, e.g.
    RANK() OVER (PARTITION BY dept ORDER BY salary DESC).
    argument carries the bucket count of NTILE.
    """
    func: str
    partition_by: Tuple[Expression, ...] = ()
    order_by: Tuple[SortKey, ...] = ()
    argument: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "func", self.func.upper())
        _freeze(self, "partition_by", "order_by")

    def children(self):
        return self.partition_by + tuple(k.expr for k in self.order_by)

    def __str__(self) -> str:
        over = []
        if self.partition_by:
            over.append("PARTITION BY " + ", ".join(str(p) for p in self.partition_by))
        if self.order_by:
            over.append("ORDER BY " + ", ".join(str(k) for k in self.order_by))
        arg = "" if self.argument is None else str(self.argument)
        return f"{self.func}({arg}) OVER ({' '.join(over)})"


class SubqueryMode(Enum):
    SCALAR = "SCALAR"
    IN = "IN"
    EXISTS = "EXISTS"


@dataclass(frozen=True, eq=False)
class SubqueryExpr(Expression):
    """
    A nested plan used as an expression.

    SCALAR yields the single value of a one-row, one-column result; IN tests
    operand membership in the single result column; EXISTS tests for at
    least one row. negated turns IN/EXISTS into NOT IN/NOT EXISTS.

    correlation_columns names outer columns the inner plan depends on. A
    subquery with correlation columns (or with outer references found during
    validation) is re-evaluated once per outer row. Equality is identity.
    """
    mode: SubqueryMode
    plan: Any
    correlation_columns: Tuple[ColumnRef, ...] = ()
    operand: Optional[Expression] = None
    negated: bool = False

    def __post_init__(self):
        if isinstance(self.mode, str):
            object.__setattr__(self, "mode", SubqueryMode(self.mode.upper()))
        _freeze(self, "correlation_columns")

    def children(self):
        return (self.operand,) if self.operand is not None else ()

    def __str__(self) -> str:
        prefix = "NOT " if self.negated else ""
        if self.mode is SubqueryMode.SCALAR:
            return "(subquery)"
        if self.mode is SubqueryMode.EXISTS:
            return f"{prefix}EXISTS (subquery)"
        return f"{self.operand} {prefix}IN (subquery)"


def walk(expr: Expression):
    """Pre-order traversal that does not descend into subquery plans."""
    yield expr
    for child in expr.children():
        yield from walk(child)


def transform(expr: Expression, fn: Callable[[Expression], Optional[Expression]]) -> Expression:
    """
    Rebuild expr bottom-up where fn returns a replacement.

    fn is tried on each node first; when it returns None the node's
    children are transformed instead. Unchanged subtrees keep their
    identity, and subquery plans are never entered.
    """
    replacement = fn(expr)
    if replacement is not None:
        return replacement
    if isinstance(expr, SubqueryExpr):
        if expr.operand is None:
            return expr
        operand = transform(expr.operand, fn)
        if operand is expr.operand:
            return expr
        return replace(expr, operand=operand)

    changes = {}
    for f in fields(expr):
        value = getattr(expr, f.name)
        new_value = _transform_value(value, fn)
        if new_value is not value:
            changes[f.name] = new_value
    return replace(expr, **changes) if changes else expr


def _transform_value(value: Any, fn):
    if isinstance(value, Expression):
        return transform(value, fn)
    if isinstance(value, SortKey):
        new_expr = transform(value.expr, fn)
        return value if new_expr is value.expr else replace(value, expr=new_expr)
    if isinstance(value, tuple):
        items = tuple(_transform_value(v, fn) for v in value)
        if all(a is b for a, b in zip(items, value)):
            return value
        return items
    return value
