# relational_engine/ast/query_ast.py

from dataclasses import dataclass
from typing import Optional, Tuple

from relational_engine.ast.expression_ast import Expression, SortKey, _freeze
from relational_engine.ast.plan_nodes import PlanNode, ProjectItem


@dataclass(frozen=True, eq=False)
class SelectQuery(PlanNode):
    """
    A declarative SELECT block.

    The executor lowers it into Filter / GroupAggregate / Window / Project /
    Distinct / Sort / Limit nodes in the fixed logical phase order:
    FROM, WHERE, GROUP BY, HAVING, window functions, SELECT, DISTINCT,
    ORDER BY, LIMIT/OFFSET.

    Attributes:
        select: Projection items; aggregates and window calls may appear anywhere
        from_: Source plan (None selects from a single empty row)
        where: Row predicate; must not contain aggregates or window calls
        group_by: Grouping expressions
        having: Group predicate; may use aggregates and select aliases
        distinct: Deduplicate the projected rows
        order_by: Sort keys over select aliases, ordinals or input columns
        limit: Maximum row count (None for all)
        offset: Rows to skip before the limit applies
        alias: Qualifier for the output columns when used as a derived table
    """
    select: Tuple[ProjectItem, ...]
    from_: Optional[PlanNode] = None
    where: Optional[Expression] = None
    group_by: Tuple[Expression, ...] = ()
    having: Optional[Expression] = None
    distinct: bool = False
    order_by: Tuple[SortKey, ...] = ()
    limit: Optional[int] = None
    offset: int = 0
    alias: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "select", tuple(
            s if isinstance(s, ProjectItem) else ProjectItem(s) for s in self.select))
        object.__setattr__(self, "order_by", tuple(
            k if isinstance(k, SortKey) else SortKey(k) for k in self.order_by))
        _freeze(self, "group_by")

    def inputs(self):
        return (self.from_,) if self.from_ is not None else ()

    def label(self) -> str:
        return f"SelectQuery(alias={self.alias})" if self.alias else "SelectQuery"
