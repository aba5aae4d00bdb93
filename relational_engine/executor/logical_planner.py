# relational_engine/executor/logical_planner.py
"""
Lowering of a SelectQuery into plan nodes.

Clauses are applied in the fixed logical phase order:

    FROM -> WHERE -> GROUP BY -> HAVING -> window functions -> SELECT
         -> DISTINCT -> ORDER BY -> LIMIT / OFFSET

Aggregate calls found anywhere in the select list, HAVING or ORDER BY are
computed once by a GroupAggregate node and referenced by name afterwards;
window calls are computed by one Window node per distinct
(PARTITION BY, ORDER BY) specification. Projection is row-wise, so without
DISTINCT the sort runs on the pre-projection rows, which lets ORDER BY use
input columns that are not selected.
"""

from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from relational_engine.ast.expression_ast import (
    AggregateCall, ColumnRef, Expression, Literal, SortKey, Star, WindowCall,
    transform, walk
)
from relational_engine.ast.plan_nodes import (
    AggregateSpec, Distinct, Filter, GroupAggregate, GroupKey, Limit, PlanNode,
    Project, ProjectItem, Sort, Values, Window, WindowFunction
)
from relational_engine.ast.query_ast import SelectQuery
from relational_engine.errors import InvalidPlanError
from relational_engine.utils.logging_config import get_logger
from relational_engine.validator.expression_validator import contains_aggregate, contains_window

logger = get_logger(__name__)


def lower_select(query: SelectQuery) -> PlanNode:
    """Lower a SelectQuery into the equivalent tree of plan nodes."""
    return SelectLowering(query).lower()


class SelectLowering:

    def __init__(self, query: SelectQuery):
        self.query = query

    def lower(self) -> PlanNode:
        query = self.query
        self._check_clauses()

        node = query.from_ if query.from_ is not None else Values(columns=(), rows=((),))
        if query.where is not None:
            node = Filter(query.where, node)

        select = list(query.select)
        order_by = list(query.order_by)

        if self._is_grouped():
            node, select, order_by = self._lower_grouping(node, select, order_by)
        node, select, order_by = self._lower_windows(node, select, order_by)

        if query.distinct:
            order_by = [self._order_after_projection(key, select) for key in order_by]
            node = Distinct(Project(select, node))
            if order_by:
                node = Sort(order_by, node)
        else:
            order_by = [self._order_before_projection(key, select) for key in order_by]
            if order_by:
                node = Sort(order_by, node)
            node = Project(select, node)

        if query.limit is not None or query.offset:
            node = Limit(query.limit, query.offset, node)

        logger.debug(f"Lowered {query.label()} to {node.label()}")
        return node

    def _check_clauses(self) -> None:
        query = self.query
        if contains_aggregate(query.where) or contains_window(query.where):
            raise InvalidPlanError(
                "WHERE clause cannot contain aggregate or window functions",
                suggestion="Use HAVING to filter on aggregates")
        for expr in query.group_by:
            if contains_aggregate(expr) or contains_window(expr):
                raise InvalidPlanError(f"GROUP BY expression {expr} cannot contain aggregate or window functions")
        if contains_window(query.having):
            raise InvalidPlanError("HAVING clause cannot contain window functions")

    def _is_grouped(self) -> bool:
        query = self.query
        if query.group_by or query.having is not None:
            return True
        return (any(contains_aggregate(item.expr) for item in query.select)
                or any(contains_aggregate(key.expr) for key in query.order_by))

    # ------------------------------------------------------------------
    # GROUP BY / HAVING
    # ------------------------------------------------------------------

    def _lower_grouping(self, node: PlanNode, select: List[ProjectItem],
                        order_by: List[SortKey]) -> Tuple[PlanNode, List[ProjectItem], List[SortKey]]:
        query = self.query

        having = query.having
        if having is not None:
            aliased = {item.alias.lower(): item.expr for item in select
                       if item.alias and contains_aggregate(item.expr)}
            having = transform(having, lambda e: _aliased_aggregate(e, aliased))

        keys = []
        key_refs: Dict[Expression, ColumnRef] = {}
        for expr in query.group_by:
            if isinstance(expr, ColumnRef):
                keys.append(GroupKey(expr))
            else:
                name = str(expr)
                keys.append(GroupKey(expr, name))
                key_refs[expr] = ColumnRef(name)

        names: Dict[AggregateCall, str] = {}
        for item in select:
            if isinstance(item.expr, AggregateCall) and item.alias:
                names.setdefault(item.expr, item.alias)
        sources = [item.expr for item in select] + [key.expr for key in order_by]
        if having is not None:
            sources.append(having)
        for expr in sources:
            for sub in walk(expr):
                if isinstance(sub, AggregateCall) and sub not in names:
                    names[sub] = str(sub)

        def rewrite(expr: Expression) -> Optional[Expression]:
            if isinstance(expr, AggregateCall):
                return ColumnRef(names[expr])
            return key_refs.get(expr)

        node = GroupAggregate(keys, [AggregateSpec(call, name) for call, name in names.items()], node)
        if having is not None:
            node = Filter(transform(having, rewrite), node)

        select = [ProjectItem(transform(item.expr, rewrite), item.alias) for item in select]
        order_by = [replace(key, expr=transform(key.expr, rewrite)) for key in order_by]
        return node, select, order_by

    # ------------------------------------------------------------------
    # Window functions
    # ------------------------------------------------------------------

    def _lower_windows(self, node: PlanNode, select: List[ProjectItem],
                       order_by: List[SortKey]) -> Tuple[PlanNode, List[ProjectItem], List[SortKey]]:
        names: Dict[WindowCall, str] = {}
        for item in select:
            if isinstance(item.expr, WindowCall) and item.alias:
                names.setdefault(item.expr, item.alias)
        for expr in [item.expr for item in select] + [key.expr for key in order_by]:
            for sub in walk(expr):
                if isinstance(sub, WindowCall) and sub not in names:
                    names[sub] = str(sub)
        if not names:
            return node, select, order_by

        specs: Dict[tuple, List[WindowFunction]] = {}
        for call, name in names.items():
            specs.setdefault((call.partition_by, call.order_by), []).append(
                WindowFunction(call.func, name, call.argument))
        for (partition_by, window_order), functions in specs.items():
            node = Window(functions, partition_by, window_order, node)

        def rewrite(expr: Expression) -> Optional[Expression]:
            if isinstance(expr, WindowCall):
                return ColumnRef(names[expr])
            return None

        select = [ProjectItem(transform(item.expr, rewrite), item.alias) for item in select]
        order_by = [replace(key, expr=transform(key.expr, rewrite)) for key in order_by]
        return node, select, order_by

    # ------------------------------------------------------------------
    # ORDER BY resolution
    # ------------------------------------------------------------------

    def _order_before_projection(self, key: SortKey, select: List[ProjectItem]) -> SortKey:
        target = _select_target(key.expr, select)
        if target is None:
            return key
        return replace(key, expr=target.expr)

    def _order_after_projection(self, key: SortKey, select: List[ProjectItem]) -> SortKey:
        target = _select_target(key.expr, select)
        if target is None:
            target = next((item for item in select
                           if not isinstance(item.expr, Star) and item.expr == key.expr), None)
        if target is None:
            return key
        return replace(key, expr=_output_ref(target))


def _aliased_aggregate(expr: Expression, aliased: Dict[str, Expression]) -> Optional[Expression]:
    if isinstance(expr, ColumnRef) and expr.table is None:
        return aliased.get(expr.name.lower())
    return None


def _select_target(expr: Expression, select: List[ProjectItem]) -> Optional[ProjectItem]:
    """Select item an ORDER BY expression names by ordinal position or alias."""
    if isinstance(expr, Literal) and isinstance(expr.value, int) and not isinstance(expr.value, bool):
        position = expr.value
        if not 1 <= position <= len(select):
            raise InvalidPlanError(f"ORDER BY position {position} is not in the select list")
        item = select[position - 1]
        if isinstance(item.expr, Star):
            raise InvalidPlanError(f"ORDER BY position {position} refers to {item.expr}")
        return item
    if isinstance(expr, ColumnRef) and expr.table is None:
        for item in select:
            if item.alias and item.alias.lower() == expr.name.lower():
                return item
    return None


def _output_ref(item: ProjectItem) -> ColumnRef:
    if item.alias:
        return ColumnRef(item.alias)
    if isinstance(item.expr, ColumnRef):
        return item.expr
    return ColumnRef(str(item.expr))
