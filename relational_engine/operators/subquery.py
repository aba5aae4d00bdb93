# relational_engine/operators/subquery.py
"""
Evaluation of subquery expressions.

Every SubqueryExpr in a plan is prepared once, when the plan is built: its
inner plan becomes an operator tree and static validation decides whether
it is correlated. At run time:

- an uncorrelated subquery is driven once per execution and its result is
  reused for every outer row;
- a correlated subquery is re-driven for every outer row, with that row
  bound in a BindingEnvironment chained to the environment of any query
  further out.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from relational_engine.ast.expression_ast import SubqueryExpr, SubqueryMode
from relational_engine.errors import InvalidPlanError, ScalarSubqueryCardinalityError
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.semantic.three_valued import not3
from relational_engine.semantic.type_system import hashable_key
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row
from relational_engine.utils.logging_config import get_logger

logger = get_logger(__name__)

_NOT_COMPUTED = object()


@dataclass
class MembershipSet:
    """Result column of an IN subquery, ready for membership tests."""
    keys: Set[tuple] = field(default_factory=set)
    has_null: bool = False
    empty: bool = True

    @classmethod
    def from_rows(cls, rows) -> "MembershipSet":
        result = cls()
        for row in rows:
            result.empty = False
            if row[0] is None:
                result.has_null = True
            else:
                result.keys.add(hashable_key(row[:1]))
        return result

    def test(self, value: Any) -> Optional[bool]:
        """IN semantics: TRUE on a match, unknown if unmatched with a NULL present."""
        if self.empty:
            return False
        if value is None:
            return None
        if hashable_key((value,)) in self.keys:
            return True
        return None if self.has_null else False


class PreparedSubquery:
    """
    One subquery expression with its inner operator tree.

    Attributes:
        expr: The subquery expression
        operator: Root operator of the inner plan (set once built)
        correlated: True when the inner plan references enclosing queries
        evaluations: How many times the inner plan was driven
    """

    def __init__(self, expr: SubqueryExpr, context):
        self.expr = expr
        self.context = context
        self.operator = None
        self.correlated = bool(expr.correlation_columns)
        self.evaluations = 0
        self._cached = _NOT_COMPUTED

    @property
    def mode(self) -> SubqueryMode:
        return self.expr.mode

    def evaluate(self, row: Row, schema: Schema, env: Optional[BindingEnvironment]) -> Any:
        if self.correlated:
            self.context.check_cancelled()
            result = self._run(BindingEnvironment(row, schema, env))
        else:
            if self._cached is _NOT_COMPUTED:
                self._cached = self._run(None)
                logger.debug(f"Cached uncorrelated {self.mode.value} subquery result")
            result = self._cached
        return self._apply(result, row, schema, env)

    def _run(self, env: Optional[BindingEnvironment]) -> Any:
        self.evaluations += 1
        stream = self.operator.rows(env)
        mode = self.mode

        if mode is SubqueryMode.EXISTS:
            return next(stream, None) is not None
        if mode is SubqueryMode.IN:
            return MembershipSet.from_rows(stream)

        rows: List[Row] = []
        for inner_row in stream:
            rows.append(inner_row)
            if len(rows) > 1:
                break
        if len(rows) != 1:
            qualifier = "more than one row" if rows else "no rows"
            raise ScalarSubqueryCardinalityError(
                f"Scalar subquery returned {qualifier}; exactly one row is required")
        return rows[0][0]

    def _apply(self, result: Any, row: Row, schema: Schema,
               env: Optional[BindingEnvironment]) -> Any:
        mode = self.mode
        if mode is SubqueryMode.SCALAR:
            return result
        if mode is SubqueryMode.EXISTS:
            return not result if self.expr.negated else result

        value = self.context.evaluator.evaluate(self.expr.operand, row, schema, env)
        outcome = result.test(value)
        return not3(outcome) if self.expr.negated else outcome


class SubqueryRunner:
    """Registry of prepared subqueries for one execution, keyed by expression identity."""

    def __init__(self):
        self._prepared: Dict[int, PreparedSubquery] = {}

    def register(self, prepared: PreparedSubquery) -> None:
        self._prepared[id(prepared.expr)] = prepared

    def get(self, expr: SubqueryExpr) -> Optional[PreparedSubquery]:
        return self._prepared.get(id(expr))

    def prepared(self) -> List[PreparedSubquery]:
        return list(self._prepared.values())

    def evaluate(self, expr: SubqueryExpr, row: Row, schema: Schema,
                 env: Optional[BindingEnvironment]) -> Any:
        prepared = self._prepared.get(id(expr))
        if prepared is None:
            raise InvalidPlanError(f"Subquery {expr} was not prepared before execution")
        return prepared.evaluate(row, schema, env)
