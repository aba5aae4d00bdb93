# relational_engine/operators/set_ops.py
"""
Set operations and DISTINCT.

Rows are compared whole with NULL equal to NULL. Deduplication keeps the
first occurrence, so UNION output is ordered by first appearance across
left then right, and INTERSECT / EXCEPT follow left-row order.
"""

from itertools import chain
from typing import Iterable, Iterator, Optional

from relational_engine.ast.plan_nodes import SetOpKind
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.semantic.type_system import hashable_key
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row


def deduplicate(rows: Iterable[Row]) -> Iterator[Row]:
    """Drop repeated rows, keeping the first occurrence of each."""
    seen = set()
    for row in rows:
        key = hashable_key(row)
        if key not in seen:
            seen.add(key)
            yield row


def union(left: Iterable[Row], right: Iterable[Row]) -> Iterator[Row]:
    return deduplicate(chain(left, right))


def union_all(left: Iterable[Row], right: Iterable[Row]) -> Iterator[Row]:
    return chain(left, right)


def intersect(left: Iterable[Row], right: Iterable[Row]) -> Iterator[Row]:
    right_keys = {hashable_key(row) for row in right}
    return deduplicate(row for row in left if hashable_key(row) in right_keys)


def except_(left: Iterable[Row], right: Iterable[Row]) -> Iterator[Row]:
    right_keys = {hashable_key(row) for row in right}
    return deduplicate(row for row in left if hashable_key(row) not in right_keys)


SET_OPERATIONS = {
    SetOpKind.UNION: union,
    SetOpKind.UNION_ALL: union_all,
    SetOpKind.INTERSECT: intersect,
    SetOpKind.EXCEPT: except_,
}


class SetOperator(Operator):
    """Combines two inputs of equal arity; output names come from the left input."""

    def __init__(self, node, context, left: Operator, right: Operator, schema: Schema):
        super().__init__(node, context, schema, [left, right])
        self.left = left
        self.right = right
        self.combine = SET_OPERATIONS[node.kind]

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        yield from self.combine(self.left.rows(env), self.right.rows(env))


class DistinctOperator(Operator):

    def __init__(self, node, context, child: Operator):
        super().__init__(node, context, child.schema, [child])
        self.child = child

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        yield from deduplicate(self.child.rows(env))
