# relational_engine/ast/plan_nodes.py
"""
Query plan nodes consumed by the executor.

A plan is a tree of these nodes, produced by an external planner (or by
lowering a SelectQuery). The executor turns each node into an operator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from relational_engine.ast.expression_ast import (
    AggregateCall, Expression, SortKey, _freeze
)


class PlanNode:
    """Base class for all plan nodes."""

    def inputs(self) -> Tuple["PlanNode", ...]:
        return ()

    def label(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, eq=False)
class Scan(PlanNode):
    table_name: str
    alias: Optional[str] = None

    def label(self) -> str:
        if self.alias and self.alias != self.table_name:
            return f"Scan({self.table_name} AS {self.alias})"
        return f"Scan({self.table_name})"


@dataclass(frozen=True, eq=False)
class Values(PlanNode):
    """Inline relation. Columns are names, (name, SqlType) pairs or Columns."""
    columns: Tuple[Any, ...]
    rows: Tuple[Tuple[Any, ...], ...]
    alias: Optional[str] = None

    def __post_init__(self):
        _freeze(self, "columns")
        object.__setattr__(self, "rows", tuple(tuple(r) for r in self.rows))

    def label(self) -> str:
        return f"Values({len(self.rows)} rows)"


@dataclass(frozen=True, eq=False)
class Filter(PlanNode):
    predicate: Expression
    input: PlanNode

    def inputs(self):
        return (self.input,)

    def label(self) -> str:
        return f"Filter({self.predicate})"


@dataclass(frozen=True)
class ProjectItem:
    expr: Expression
    alias: Optional[str] = None


@dataclass(frozen=True, eq=False)
class Project(PlanNode):
    columns: Tuple[ProjectItem, ...]
    input: PlanNode

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(
            c if isinstance(c, ProjectItem) else ProjectItem(c) for c in self.columns))

    def inputs(self):
        return (self.input,)

    def label(self) -> str:
        items = ", ".join(f"{c.expr} AS {c.alias}" if c.alias else str(c.expr)
                          for c in self.columns)
        return f"Project({items})"


class JoinKind(Enum):
    CROSS = "CROSS"
    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"


@dataclass(frozen=True, eq=False)
class Join(PlanNode):
    kind: JoinKind
    predicate: Optional[Expression]
    left: PlanNode
    right: PlanNode

    def __post_init__(self):
        if isinstance(self.kind, str):
            object.__setattr__(self, "kind", JoinKind(self.kind.upper()))

    def inputs(self):
        return (self.left, self.right)

    def label(self) -> str:
        if self.predicate is None:
            return f"Join({self.kind.value})"
        return f"Join({self.kind.value} ON {self.predicate})"


@dataclass(frozen=True)
class GroupKey:
    expr: Expression
    alias: Optional[str] = None


@dataclass(frozen=True)
class AggregateSpec:
    call: AggregateCall
    alias: Optional[str] = None

    @property
    def output_name(self) -> str:
        return self.alias or str(self.call)


@dataclass(frozen=True, eq=False)
class GroupAggregate(PlanNode):
    keys: Tuple[GroupKey, ...]
    aggregates: Tuple[AggregateSpec, ...]
    input: PlanNode

    def __post_init__(self):
        object.__setattr__(self, "keys", tuple(
            k if isinstance(k, GroupKey) else GroupKey(k) for k in self.keys))
        object.__setattr__(self, "aggregates", tuple(
            a if isinstance(a, AggregateSpec) else AggregateSpec(a) for a in self.aggregates))

    def inputs(self):
        return (self.input,)

    def label(self) -> str:
        keys = ", ".join(str(k.expr) for k in self.keys) or "()"
        aggs = ", ".join(a.output_name for a in self.aggregates)
        return f"GroupAggregate(keys=[{keys}], aggregates=[{aggs}])"


@dataclass(frozen=True)
class WindowFunction:
    func: str
    alias: str
    argument: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "func", self.func.upper())


@dataclass(frozen=True, eq=False)
class Window(PlanNode):
    functions: Tuple[WindowFunction, ...]
    partition_by: Tuple[Expression, ...]
    order_by: Tuple[SortKey, ...]
    input: PlanNode

    def __post_init__(self):
        _freeze(self, "functions", "partition_by", "order_by")

    def inputs(self):
        return (self.input,)

    def label(self) -> str:
        funcs = ", ".join(f"{f.func} AS {f.alias}" for f in self.functions)
        return f"Window({funcs})"


class SetOpKind(Enum):
    UNION = "UNION"
    UNION_ALL = "UNION ALL"
    INTERSECT = "INTERSECT"
    EXCEPT = "EXCEPT"


@dataclass(frozen=True, eq=False)
class SetOp(PlanNode):
    kind: SetOpKind
    left: PlanNode
    right: PlanNode

    def __post_init__(self):
        if isinstance(self.kind, str):
            object.__setattr__(self, "kind", SetOpKind(self.kind.upper().replace("_", " ")))

    def inputs(self):
        return (self.left, self.right)

    def label(self) -> str:
        return f"SetOp({self.kind.value})"


@dataclass(frozen=True, eq=False)
class Distinct(PlanNode):
    input: PlanNode

    def inputs(self):
        return (self.input,)


@dataclass(frozen=True, eq=False)
class Sort(PlanNode):
    keys: Tuple[SortKey, ...]
    input: PlanNode

    def __post_init__(self):
        object.__setattr__(self, "keys", tuple(
            k if isinstance(k, SortKey) else SortKey(k) for k in self.keys))

    def inputs(self):
        return (self.input,)

    def label(self) -> str:
        return f"Sort({', '.join(str(k) for k in self.keys)})"


@dataclass(frozen=True, eq=False)
class Limit(PlanNode):
    count: Optional[int]
    offset: int
    input: PlanNode

    def inputs(self):
        return (self.input,)

    def label(self) -> str:
        return f"Limit({self.count}, offset={self.offset})"
