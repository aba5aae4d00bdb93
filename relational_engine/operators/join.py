# relational_engine/operators/join.py
"""
Nested-loop join.

The right input is materialized once per drive and the left input streams.
Output columns are always left columns followed by right columns. Row
order follows the preserved side: INNER, CROSS and LEFT emit in left-row
order; RIGHT emits in right-row order; FULL emits the LEFT join followed
by the right-only rows.
"""

from typing import Iterator, List, Optional

from relational_engine.ast.expression_ast import Expression
from relational_engine.ast.plan_nodes import JoinKind
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.operators.set_ops import deduplicate
from relational_engine.semantic.three_valued import is_true
from relational_engine.storage.table import Row
from relational_engine.utils.logging_config import get_logger

logger = get_logger(__name__)


class JoinOperator(Operator):

    def __init__(self, node, context, left: Operator, right: Operator,
                 predicate: Optional[Expression]):
        super().__init__(node, context, left.schema.concat(right.schema), [left, right])
        self.left = left
        self.right = right
        self.kind = node.kind
        self.predicate = predicate

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        right_rows = list(self.right.rows(env))

        if self.kind is JoinKind.RIGHT:
            left_rows = list(self.left.rows(env))
            yield from self._right_outer(right_rows, left_rows, env)
        elif self.kind is JoinKind.FULL:
            left_rows = list(self.left.rows(env))
            # Full outer join is the distinct union of the left and right outer joins
            yield from deduplicate(self._full(left_rows, right_rows, env))
        else:
            preserve = self.kind is JoinKind.LEFT
            yield from self._nested_loop(self.left.rows(env), right_rows, env, preserve)

    def _full(self, left_rows: List[Row], right_rows: List[Row], env) -> Iterator[Row]:
        yield from self._nested_loop(left_rows, right_rows, env, preserve=True)
        yield from self._right_outer(right_rows, left_rows, env)

    def _matches(self, combined: Row, ordinal: int, env) -> bool:
        if self.predicate is None:
            return True
        return is_true(self.evaluate_predicate(self.predicate, combined, self.schema, env, ordinal))

    def _nested_loop(self, left_rows, right_rows: List[Row], env, preserve: bool) -> Iterator[Row]:
        null_right = (None,) * len(self.right.schema)
        for ordinal, left_row in enumerate(left_rows):
            matched = False
            for right_row in right_rows:
                combined = left_row + right_row
                if self._matches(combined, ordinal, env):
                    matched = True
                    yield combined
            if preserve and not matched:
                yield left_row + null_right

    def _right_outer(self, right_rows: List[Row], left_rows: List[Row], env) -> Iterator[Row]:
        null_left = (None,) * len(self.left.schema)
        for ordinal, right_row in enumerate(right_rows):
            matched = False
            for left_row in left_rows:
                combined = left_row + right_row
                if self._matches(combined, ordinal, env):
                    matched = True
                    yield combined
            if not matched:
                yield null_left + right_row
