# relational_engine/operators/sort_limit.py

from functools import cmp_to_key
from itertools import islice
from typing import Iterator, Optional, Sequence

from relational_engine.ast.expression_ast import SortKey
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.operators.ordering import make_key_comparator
from relational_engine.storage.table import Row


class SortOperator(Operator):
    """
    Stable multi-key sort.

    Key values are evaluated once per row. Rows that tie on every key keep
    their input order.
    """

    def __init__(self, node, context, child: Operator, keys: Sequence[SortKey]):
        super().__init__(node, context, child.schema, [child])
        self.child = child
        self.keys = tuple(keys)
        self.comparator = make_key_comparator(self.keys, context.config.nulls_order)

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        schema = self.child.schema
        decorated = []
        for ordinal, row in enumerate(self.child.rows(env)):
            values = tuple(self.evaluate(key.expr, row, schema, env, ordinal) for key in self.keys)
            decorated.append((values, row))

        comparator = self.comparator
        decorated.sort(key=cmp_to_key(lambda a, b: comparator(a[0], b[0])))
        for _, row in decorated:
            yield row


class LimitOperator(Operator):
    """Skips offset rows, then passes at most count rows (all when count is None)."""

    def __init__(self, node, context, child: Operator, count: Optional[int], offset: int):
        super().__init__(node, context, child.schema, [child])
        self.child = child
        self.count = count
        self.offset = offset

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        stop = None if self.count is None else self.offset + self.count
        yield from islice(self.child.rows(env), self.offset, stop)
