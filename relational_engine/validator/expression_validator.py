# relational_engine/validator/expression_validator.py
"""
Static validation of expressions against a schema before any row flows.

validate() checks that every column reference resolves, that aggregates
and window calls only appear where they are allowed, that operand types
are compatible where both sides have concrete declared types, and returns
the inferred result type of the expression. Operators use that type for
the columns they derive.

Column references that do not resolve locally are looked up in the
enclosing scopes. When one resolves there, the subquery frames it crosses
are marked correlated, which is how the executor decides which subqueries
must be re-evaluated per outer row.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from relational_engine.ast.expression_ast import (
    AggregateCall, Between, BinaryOp, Case, ColumnRef, Comparison, Expression,
    FunctionCall, InList, IsNull, Like, Literal, LogicalOp, Not, Star,
    SubqueryExpr, SubqueryMode, UnaryOp, WindowCall
)
from relational_engine.errors import (
    InvalidPlanError, InvalidProjectionError, TypeMismatchError, UnknownColumnError
)
from relational_engine.evaluator.scalar_evaluator import SCALAR_FUNCTIONS
from relational_engine.semantic.type_system import (
    SqlType, common_type, numeric_result_type, type_of
)
from relational_engine.storage.schema import Schema

STATISTICAL_FUNCTIONS = {
    'STDDEV', 'STDDEV_SAMP', 'STDDEV_POP', 'VARIANCE', 'VAR_SAMP', 'VAR_POP'
}

AGGREGATE_FUNCTIONS = {
    'COUNT', 'SUM', 'AVG', 'MIN', 'MAX', 'STRING_AGG'
} | STATISTICAL_FUNCTIONS

WINDOW_FUNCTIONS = {
    'ROW_NUMBER', 'RANK', 'DENSE_RANK', 'PERCENT_RANK', 'CUME_DIST', 'NTILE'
}

_LOOSE = (SqlType.NULL, SqlType.ANY)


@dataclass(frozen=True)
class Scope:
    """Schema visible to an expression plus the schemas of enclosing queries, innermost first."""
    schema: Schema
    outer: Tuple[Schema, ...] = ()

    def nested(self) -> Tuple[Schema, ...]:
        """Outer scopes seen by a subquery evaluated inside this scope."""
        return (self.schema,) + self.outer


def _is_concrete(sql_type: SqlType) -> bool:
    return sql_type not in _LOOSE


def _require(sql_type: SqlType, allowed, what: str, expr: Expression) -> None:
    if _is_concrete(sql_type) and sql_type not in allowed:
        names = "/".join(t.value for t in allowed)
        raise TypeMismatchError(f"{what} in '{expr}' requires {names}, got {sql_type.value}")


class ExpressionValidator:
    """
    Validates expressions and infers their types.

    Args:
        prepare_subquery: Callback that builds (and validates) the inner plan
            of a subquery expression in the given scope and returns its
            output schema
    """

    def __init__(self, prepare_subquery: Callable[[SubqueryExpr, Scope], Schema]):
        self.prepare_subquery = prepare_subquery
        self._frames: List[object] = []

    # ------------------------------------------------------------------
    # Correlation frames
    # ------------------------------------------------------------------

    def push_frame(self, frame) -> None:
        """Enter a subquery. frame must have a writable 'correlated' attribute."""
        self._frames.append(frame)

    def pop_frame(self) -> None:
        self._frames.pop()

    def _mark_correlated(self, depth: int) -> None:
        # A reference resolved at outer[depth] crosses depth + 1 subquery boundaries
        for j in range(min(depth + 1, len(self._frames))):
            self._frames[-1 - j].correlated = True

    # ------------------------------------------------------------------
    # Column resolution
    # ------------------------------------------------------------------

    def resolve_column(self, ref: ColumnRef, scope: Scope) -> SqlType:
        position = scope.schema.resolve(ref.name, ref.table)
        if position is not None:
            return scope.schema[position].type

        grouped = scope.schema.grouped_source
        if grouped is not None and grouped.find(ref.name, ref.table):
            raise InvalidProjectionError(
                f"Column '{ref}' must appear in the GROUP BY clause or be used in an aggregate function")

        return self.resolve_outer(ref, scope.outer)

    def resolve_outer(self, ref: ColumnRef, outer: Tuple[Schema, ...]) -> SqlType:
        for depth, schema in enumerate(outer):
            position = schema.resolve(ref.name, ref.table)
            if position is not None:
                self._mark_correlated(depth)
                return schema[position].type
            if schema.grouped_source is not None and schema.grouped_source.find(ref.name, ref.table):
                raise InvalidProjectionError(
                    f"Outer column '{ref}' must appear in the GROUP BY clause "
                    f"or be used in an aggregate function")
        raise UnknownColumnError(f"Column '{ref}' does not exist")

    # ------------------------------------------------------------------
    # Validation entry point
    # ------------------------------------------------------------------

    def validate(self, expr: Expression, scope: Scope, allow_aggregates: bool = False) -> SqlType:
        """
        Validate expr in scope and return its inferred type.

        Raises:
            UnknownColumnError, AmbiguousColumnError, InvalidProjectionError,
            TypeMismatchError, InvalidPlanError
        """
        handler = getattr(self, f"_validate_{type(expr).__name__}", None)
        if handler is None:
            raise InvalidPlanError(f"Unsupported expression node {type(expr).__name__}")
        return handler(expr, scope, allow_aggregates)

    def validate_predicate(self, expr: Expression, scope: Scope,
                           allow_aggregates: bool = False) -> None:
        sql_type = self.validate(expr, scope, allow_aggregates)
        _require(sql_type, (SqlType.BOOLEAN,), "Predicate", expr)

    def _validate_Literal(self, expr: Literal, scope, allow_aggregates):
        return type_of(expr.value)

    def _validate_ColumnRef(self, expr: ColumnRef, scope, allow_aggregates):
        return self.resolve_column(expr, scope)

    def _validate_Star(self, expr: Star, scope, allow_aggregates):
        raise InvalidPlanError(f"'{expr}' is only valid as a projection item")

    def _validate_UnaryOp(self, expr: UnaryOp, scope, allow_aggregates):
        operand = self.validate(expr.operand, scope, allow_aggregates)
        if expr.op not in ("-", "+"):
            raise InvalidPlanError(f"Unknown unary operator '{expr.op}'")
        _require(operand, (SqlType.INTEGER, SqlType.DECIMAL), f"Unary '{expr.op}'", expr)
        return operand

    def _validate_BinaryOp(self, expr: BinaryOp, scope, allow_aggregates):
        left = self.validate(expr.left, scope, allow_aggregates)
        right = self.validate(expr.right, scope, allow_aggregates)
        if expr.op == "||":
            _require(left, (SqlType.TEXT,), "Concatenation", expr)
            _require(right, (SqlType.TEXT,), "Concatenation", expr)
            return SqlType.TEXT
        if expr.op not in ("+", "-", "*", "/", "%"):
            raise InvalidPlanError(f"Unknown arithmetic operator '{expr.op}'")
        numeric = (SqlType.INTEGER, SqlType.DECIMAL)
        _require(left, numeric, f"Operator '{expr.op}'", expr)
        _require(right, numeric, f"Operator '{expr.op}'", expr)
        if SqlType.ANY in (left, right):
            return SqlType.ANY
        if SqlType.NULL in (left, right):
            return SqlType.NULL
        return numeric_result_type(expr.op, left, right)

    def _validate_Comparison(self, expr: Comparison, scope, allow_aggregates):
        left = self.validate(expr.left, scope, allow_aggregates)
        right = self.validate(expr.right, scope, allow_aggregates)
        if expr.op not in ("=", "<>", "<", "<=", ">", ">="):
            raise InvalidPlanError(f"Unknown comparison operator '{expr.op}'")
        if common_type(left, right) is None:
            raise TypeMismatchError(f"Cannot compare {left.value} with {right.value} in '{expr}'")
        return SqlType.BOOLEAN

    def _validate_LogicalOp(self, expr: LogicalOp, scope, allow_aggregates):
        if expr.op not in ("AND", "OR"):
            raise InvalidPlanError(f"Unknown logical operator '{expr.op}'")
        for operand in expr.operands:
            _require(self.validate(operand, scope, allow_aggregates),
                     (SqlType.BOOLEAN,), expr.op, expr)
        return SqlType.BOOLEAN

    def _validate_Not(self, expr: Not, scope, allow_aggregates):
        _require(self.validate(expr.operand, scope, allow_aggregates),
                 (SqlType.BOOLEAN,), "NOT", expr)
        return SqlType.BOOLEAN

    def _validate_IsNull(self, expr: IsNull, scope, allow_aggregates):
        self.validate(expr.operand, scope, allow_aggregates)
        return SqlType.BOOLEAN

    def _validate_Like(self, expr: Like, scope, allow_aggregates):
        _require(self.validate(expr.operand, scope, allow_aggregates), (SqlType.TEXT,), "LIKE", expr)
        _require(self.validate(expr.pattern, scope, allow_aggregates), (SqlType.TEXT,), "LIKE", expr)
        if expr.escape is not None and len(expr.escape) != 1:
            raise InvalidPlanError(f"LIKE escape must be a single character, got {expr.escape!r}")
        return SqlType.BOOLEAN

    def _validate_InList(self, expr: InList, scope, allow_aggregates):
        operand = self.validate(expr.operand, scope, allow_aggregates)
        for item in expr.items:
            item_type = self.validate(item, scope, allow_aggregates)
            if common_type(operand, item_type) is None:
                raise TypeMismatchError(
                    f"IN list item of type {item_type.value} does not match {operand.value} in '{expr}'")
        return SqlType.BOOLEAN

    def _validate_Between(self, expr: Between, scope, allow_aggregates):
        operand = self.validate(expr.operand, scope, allow_aggregates)
        for bound in (expr.low, expr.high):
            bound_type = self.validate(bound, scope, allow_aggregates)
            if common_type(operand, bound_type) is None:
                raise TypeMismatchError(
                    f"BETWEEN bound of type {bound_type.value} does not match {operand.value} in '{expr}'")
        return SqlType.BOOLEAN

    def _validate_Case(self, expr: Case, scope, allow_aggregates):
        subject = None
        if expr.operand is not None:
            subject = self.validate(expr.operand, scope, allow_aggregates)
        result_type = SqlType.NULL
        for condition, result in expr.whens:
            condition_type = self.validate(condition, scope, allow_aggregates)
            if subject is None:
                _require(condition_type, (SqlType.BOOLEAN,), "CASE WHEN", expr)
            elif common_type(subject, condition_type) is None:
                raise TypeMismatchError(f"CASE operand and WHEN value types differ in '{expr}'")
            result_type = self._widen(result_type, self.validate(result, scope, allow_aggregates), expr)
        if expr.else_ is not None:
            result_type = self._widen(result_type, self.validate(expr.else_, scope, allow_aggregates), expr)
        return result_type

    @staticmethod
    def _widen(current: SqlType, new: SqlType, expr: Expression) -> SqlType:
        widened = common_type(current, new)
        if widened is None:
            raise TypeMismatchError(
                f"Branches of '{expr}' have incompatible types {current.value} and {new.value}")
        return widened

    def _validate_FunctionCall(self, expr: FunctionCall, scope, allow_aggregates):
        if expr.name not in SCALAR_FUNCTIONS:
            raise InvalidPlanError(f"Unknown function {expr.name}")
        low, high = SCALAR_FUNCTIONS[expr.name]
        if len(expr.args) < low or (high is not None and len(expr.args) > high):
            raise InvalidPlanError(f"Wrong number of arguments for {expr.name}: {len(expr.args)}")

        arg_types = [self.validate(a, scope, allow_aggregates) for a in expr.args]
        first = arg_types[0]
        if expr.name in ("ABS", "ROUND"):
            _require(first, (SqlType.INTEGER, SqlType.DECIMAL), expr.name, expr)
            if len(arg_types) > 1:
                _require(arg_types[1], (SqlType.INTEGER,), f"{expr.name} precision", expr)
            return first
        if expr.name in ("UPPER", "LOWER"):
            _require(first, (SqlType.TEXT,), expr.name, expr)
            return SqlType.TEXT
        if expr.name == "LENGTH":
            _require(first, (SqlType.TEXT,), expr.name, expr)
            return SqlType.INTEGER
        if expr.name == "COALESCE":
            result_type = SqlType.NULL
            for arg_type in arg_types:
                result_type = self._widen(result_type, arg_type, expr)
            return result_type
        # NULLIF
        self._widen(first, arg_types[1], expr)
        return first

    def _validate_AggregateCall(self, expr: AggregateCall, scope, allow_aggregates):
        if not allow_aggregates:
            raise InvalidPlanError(
                f"Aggregate {expr} is not allowed here",
                suggestion="Aggregates belong in the select list, HAVING or ORDER BY of a grouped query")
        return self.aggregate_type(expr, scope)

    def aggregate_type(self, expr: AggregateCall, scope: Scope) -> SqlType:
        """Validate an aggregate's argument (no nesting) and return its result type."""
        if expr.func not in AGGREGATE_FUNCTIONS:
            raise InvalidPlanError(f"Unknown aggregate function {expr.func}")
        if expr.arg is None:
            if expr.func != "COUNT":
                raise InvalidPlanError(f"{expr.func}(*) is not valid; only COUNT accepts *")
            return SqlType.INTEGER

        arg_type = self.validate(expr.arg, scope, allow_aggregates=False)
        if expr.func == "COUNT":
            return SqlType.INTEGER
        if expr.func in ("SUM", "AVG") or expr.func in STATISTICAL_FUNCTIONS:
            _require(arg_type, (SqlType.INTEGER, SqlType.DECIMAL), expr.func, expr)
            if expr.func == "SUM" and arg_type in (SqlType.INTEGER, SqlType.ANY):
                return arg_type
            return SqlType.ANY if arg_type is SqlType.ANY else SqlType.DECIMAL
        if expr.func == "STRING_AGG":
            _require(arg_type, (SqlType.TEXT,), expr.func, expr)
            return SqlType.TEXT
        # MIN / MAX
        return arg_type

    def _validate_WindowCall(self, expr: WindowCall, scope, allow_aggregates):
        raise InvalidPlanError(
            f"Window function {expr} is not allowed here",
            suggestion="Window functions belong in the select list or ORDER BY")

    def _validate_SubqueryExpr(self, expr: SubqueryExpr, scope, allow_aggregates):
        if expr.operand is not None:
            operand_type = self.validate(expr.operand, scope, allow_aggregates)
        else:
            operand_type = None
        inner = self.prepare_subquery(expr, scope)
        if expr.mode is SubqueryMode.SCALAR:
            return inner[0].type
        if expr.mode is SubqueryMode.IN:
            if operand_type is None:
                raise InvalidPlanError("IN subquery requires an operand")
            if common_type(operand_type, inner[0].type) is None:
                raise TypeMismatchError(
                    f"IN subquery column of type {inner[0].type.value} does not match "
                    f"operand type {operand_type.value}")
        return SqlType.BOOLEAN


def contains_aggregate(expr: Optional[Expression]) -> bool:
    """True if expr has an aggregate call outside of nested subqueries."""
    if expr is None:
        return False
    if isinstance(expr, AggregateCall):
        return True
    return any(contains_aggregate(child) for child in expr.children())


def contains_window(expr: Optional[Expression]) -> bool:
    if expr is None:
        return False
    if isinstance(expr, WindowCall):
        return True
    return any(contains_window(child) for child in expr.children())
