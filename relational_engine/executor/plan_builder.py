# relational_engine/executor/plan_builder.py
"""
Turns a plan tree into an operator tree.

Building is where static validation happens: every expression is checked
against the schema of its input before any row flows, output schemas are
derived, and subquery expressions are prepared (their inner plans built in
a scope that can see the enclosing queries). Errors raised here are
annotated with the plan node being built.
"""

from typing import List, Sequence, Tuple

from relational_engine.ast.expression_ast import ColumnRef, Star, SubqueryExpr, SubqueryMode
from relational_engine.ast.plan_nodes import (
    Distinct, Filter, GroupAggregate, Join, JoinKind, Limit, PlanNode, Project,
    ProjectItem, Scan, SetOp, Sort, Values, Window
)
from relational_engine.ast.query_ast import SelectQuery
from relational_engine.errors import (
    ArityMismatchError, CollaboratorFailureError, InvalidPlanError,
    QueryExecutionError, TypeMismatchError, UnknownColumnError
)
from relational_engine.executor.logical_planner import lower_select
from relational_engine.operators.aggregate import GroupAggregateOperator
from relational_engine.operators.base import Operator
from relational_engine.operators.filter import FilterOperator
from relational_engine.operators.join import JoinOperator
from relational_engine.operators.project import ProjectionItem, ProjectOperator
from relational_engine.operators.scan import ScanOperator
from relational_engine.operators.set_ops import DistinctOperator, SetOperator
from relational_engine.operators.sort_limit import LimitOperator, SortOperator
from relational_engine.operators.subquery import PreparedSubquery
from relational_engine.operators.window import WindowOperator
from relational_engine.semantic.type_system import SqlType, common_type
from relational_engine.storage.schema import Column, Schema
from relational_engine.storage.table import Table
from relational_engine.utils.logging_config import get_logger
from relational_engine.validator.expression_validator import (
    WINDOW_FUNCTIONS, ExpressionValidator, Scope
)

logger = get_logger(__name__)

Outer = Tuple[Schema, ...]


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class PlanBuilder:
    """Builds and validates operators for one execution context."""

    def __init__(self, context):
        self.context = context
        self.validator = ExpressionValidator(self._prepare_subquery)

    def build(self, node: PlanNode, outer: Outer = ()) -> Operator:
        """
        Build the operator for node.

        Args:
            node: Plan node
            outer: Schemas of enclosing queries, innermost first

        Raises:
            QueryExecutionError: Any static validation failure
        """
        if not isinstance(node, PlanNode):
            raise InvalidPlanError(f"Expected a plan node, got {type(node).__name__}")
        handler = getattr(self, f"_build_{type(node).__name__}", None)
        if handler is None:
            raise InvalidPlanError(f"Unsupported plan node {type(node).__name__}", plan_node=node)
        try:
            operator = handler(node, tuple(outer))
        except QueryExecutionError as e:
            e.annotate(node)
            raise
        logger.debug(f"Built {operator!r} with schema {operator.schema!r}")
        return operator

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def _build_Scan(self, node: Scan, outer: Outer) -> Operator:
        try:
            table = self.context.store.get_table(node.table_name)
        except QueryExecutionError:
            raise
        except Exception as e:
            raise CollaboratorFailureError(
                f"Table store failed while providing '{node.table_name}': {e}") from e

        qualifier = node.alias or node.table_name
        table = Table(table.schema.qualify(qualifier), table.rows, name=qualifier,
                      validate=self.context.config.validate_input_types)
        return ScanOperator(node, self.context, table.schema, table.rows)

    def _build_Values(self, node: Values, outer: Outer) -> Operator:
        table = Table.from_records(node.columns, node.rows, name=node.alias)
        return ScanOperator(node, self.context, table.schema, table.rows)

    # ------------------------------------------------------------------
    # Row-wise operators
    # ------------------------------------------------------------------

    def _build_Filter(self, node: Filter, outer: Outer) -> Operator:
        child = self.build(node.input, outer)
        self.validator.validate_predicate(node.predicate, Scope(child.schema, outer))
        return FilterOperator(node, self.context, child, node.predicate)

    def _build_Project(self, node: Project, outer: Outer) -> Operator:
        child = self.build(node.input, outer)
        items, columns = self._compile_projection(node.columns, Scope(child.schema, outer))
        return ProjectOperator(node, self.context, child, items, Schema(columns))

    def _compile_projection(self, project_items: Sequence[ProjectItem],
                            scope: Scope) -> Tuple[List[ProjectionItem], List[Column]]:
        source = scope.schema
        items: List[ProjectionItem] = []
        columns: List[Column] = []

        for item in project_items:
            expr = item.expr
            if isinstance(expr, Star):
                positions = [i for i, column in enumerate(source)
                             if expr.table is None or column.matches(column.name, expr.table)]
                if expr.table is not None and not positions:
                    raise UnknownColumnError(f"Relation '{expr.table}' in '{expr}' does not exist")
                items.extend(positions)
                columns.extend(source[i] for i in positions)
                continue

            sql_type = self.validator.validate(expr, scope)
            if isinstance(expr, ColumnRef):
                position = source.resolve(expr.name, expr.table)
                if position is not None:
                    items.append(position)
                    column = source[position]
                    columns.append(Column(item.alias, column.type) if item.alias else column)
                    continue
                items.append(expr)
                columns.append(Column(item.alias or expr.name, sql_type))
                continue

            items.append(expr)
            columns.append(Column(item.alias or str(expr), sql_type))
        return items, columns

    def _build_Join(self, node: Join, outer: Outer) -> Operator:
        left = self.build(node.left, outer)
        right = self.build(node.right, outer)
        if node.kind is JoinKind.CROSS and node.predicate is not None:
            raise InvalidPlanError("CROSS join does not take a predicate",
                                   suggestion="Use an INNER join for a join condition")
        if node.predicate is not None:
            scope = Scope(left.schema.concat(right.schema), outer)
            self.validator.validate_predicate(node.predicate, scope)
        return JoinOperator(node, self.context, left, right, node.predicate)

    # ------------------------------------------------------------------
    # Blocking operators
    # ------------------------------------------------------------------

    def _build_GroupAggregate(self, node: GroupAggregate, outer: Outer) -> Operator:
        child = self.build(node.input, outer)
        scope = Scope(child.schema, outer)
        columns = []

        for key in node.keys:
            sql_type = self.validator.validate(key.expr, scope)
            if key.alias:
                columns.append(Column(key.alias, sql_type))
            elif isinstance(key.expr, ColumnRef):
                position = child.schema.resolve(key.expr.name, key.expr.table)
                columns.append(child.schema[position] if position is not None
                               else Column(key.expr.name, sql_type))
            else:
                columns.append(Column(str(key.expr), sql_type))

        for spec in node.aggregates:
            columns.append(Column(spec.output_name, self.validator.aggregate_type(spec.call, scope)))

        schema = Schema(columns, grouped_source=child.schema)
        return GroupAggregateOperator(node, self.context, child, node.keys, node.aggregates, schema)

    def _build_Window(self, node: Window, outer: Outer) -> Operator:
        child = self.build(node.input, outer)
        scope = Scope(child.schema, outer)
        for expr in node.partition_by:
            self.validator.validate(expr, scope)
        for key in node.order_by:
            self.validator.validate(key.expr, scope)

        columns = []
        for function in node.functions:
            if function.func not in WINDOW_FUNCTIONS:
                raise InvalidPlanError(f"Unknown window function {function.func}")
            if function.func == "NTILE" and not (_is_count(function.argument) and function.argument > 0):
                raise InvalidPlanError(
                    f"NTILE requires a positive bucket count, got {function.argument!r}")
            sql_type = SqlType.DECIMAL if function.func in ("PERCENT_RANK", "CUME_DIST") else SqlType.INTEGER
            columns.append(Column(function.alias, sql_type))

        return WindowOperator(node, self.context, child, node.functions, node.partition_by,
                              node.order_by, child.schema.extend(columns))

    def _build_SetOp(self, node: SetOp, outer: Outer) -> Operator:
        left = self.build(node.left, outer)
        right = self.build(node.right, outer)
        if len(left.schema) != len(right.schema):
            raise ArityMismatchError(
                f"{node.kind.value} inputs have {len(left.schema)} and {len(right.schema)} columns")

        columns = []
        for position, (lcol, rcol) in enumerate(zip(left.schema, right.schema), start=1):
            sql_type = common_type(lcol.type, rcol.type)
            if sql_type is None:
                raise TypeMismatchError(
                    f"{node.kind.value} column {position} ('{lcol.name}') combines "
                    f"{lcol.type.value} with {rcol.type.value}")
            columns.append(Column(lcol.name, sql_type, lcol.table))
        return SetOperator(node, self.context, left, right, Schema(columns))

    def _build_Distinct(self, node: Distinct, outer: Outer) -> Operator:
        return DistinctOperator(node, self.context, self.build(node.input, outer))

    def _build_Sort(self, node: Sort, outer: Outer) -> Operator:
        child = self.build(node.input, outer)
        scope = Scope(child.schema, outer)
        for key in node.keys:
            self.validator.validate(key.expr, scope)
        return SortOperator(node, self.context, child, node.keys)

    def _build_Limit(self, node: Limit, outer: Outer) -> Operator:
        if node.count is not None and not _is_count(node.count):
            raise InvalidPlanError(f"LIMIT must be a non-negative integer, got {node.count!r}")
        offset = node.offset or 0
        if not _is_count(offset):
            raise InvalidPlanError(f"OFFSET must be a non-negative integer, got {node.offset!r}")
        child = self.build(node.input, outer)
        return LimitOperator(node, self.context, child, node.count, offset)

    def _build_SelectQuery(self, node: SelectQuery, outer: Outer) -> Operator:
        operator = self.build(lower_select(node), outer)
        if node.alias:
            operator.schema = operator.schema.qualify(node.alias)
        return operator

    # ------------------------------------------------------------------
    # Subqueries
    # ------------------------------------------------------------------

    def _prepare_subquery(self, expr: SubqueryExpr, scope: Scope) -> Schema:
        existing = self.context.subqueries.get(expr)
        if existing is not None:
            return existing.operator.schema

        prepared = PreparedSubquery(expr, self.context)
        nested = scope.nested()
        self.validator.push_frame(prepared)
        try:
            for ref in expr.correlation_columns:
                self.validator.resolve_outer(ref, nested)
            operator = self.build(expr.plan, nested)
        finally:
            self.validator.pop_frame()

        if expr.mode in (SubqueryMode.SCALAR, SubqueryMode.IN) and len(operator.schema) != 1:
            raise ArityMismatchError(
                f"{expr.mode.value} subquery must return exactly one column, "
                f"got {len(operator.schema)}")

        prepared.operator = operator
        self.context.subqueries.register(prepared)
        logger.debug(f"Prepared {'correlated' if prepared.correlated else 'uncorrelated'} "
                     f"{expr.mode.value} subquery")
        return operator.schema
