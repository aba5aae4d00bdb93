# relational_engine/operators/window.py
"""
Ranking window functions.

Input rows are partitioned by the evaluated PARTITION BY values (NULLs in
one partition) and stably sorted within each partition by the window
ORDER BY keys. Rows that compare equal on every ORDER BY key are peers.

Output order: partitions in order of first appearance in the input, and
within a partition the rows in window-sorted order. Each output row is the
input row with one value appended per window function.
"""

from functools import cmp_to_key
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from relational_engine.ast.expression_ast import Expression, SortKey
from relational_engine.ast.plan_nodes import WindowFunction
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.operators.ordering import KeyComparator, make_key_comparator
from relational_engine.semantic.type_system import hashable_key
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row

# (row, evaluated order-by values)
_Member = Tuple[Row, Tuple[Any, ...]]


def peer_groups(order_values: Sequence[Tuple[Any, ...]], comparator: KeyComparator) -> List[Tuple[int, int]]:
    """
    Split a sorted partition into runs of peers.

    Returns (start, end) index pairs, end exclusive. Without ORDER BY keys
    every row of the partition is a peer of every other.
    """
    groups = []
    start = 0
    for i in range(1, len(order_values) + 1):
        if i == len(order_values) or comparator(order_values[start], order_values[i]) != 0:
            groups.append((start, i))
            start = i
    return groups


def ntile_bucket(position: int, size: int, buckets: int) -> int:
    """1-based NTILE bucket of a 0-based position; earlier buckets take the remainder."""
    base, remainder = divmod(size, buckets)
    large = remainder * (base + 1)
    if position < large:
        return position // (base + 1) + 1
    return remainder + (position - large) // base + 1


def rank_partition(functions: Sequence[WindowFunction], size: int,
                   groups: List[Tuple[int, int]]) -> List[Tuple[Any, ...]]:
    """Window function values for each position of a sorted partition."""
    results: List[Tuple[Any, ...]] = []
    for dense, (start, end) in enumerate(groups, start=1):
        for position in range(start, end):
            values = []
            for function in functions:
                name = function.func
                if name == "ROW_NUMBER":
                    values.append(position + 1)
                elif name == "RANK":
                    values.append(start + 1)
                elif name == "DENSE_RANK":
                    values.append(dense)
                elif name == "PERCENT_RANK":
                    values.append(start / (size - 1) if size > 1 else 0.0)
                elif name == "CUME_DIST":
                    values.append(end / size)
                else:  # NTILE
                    values.append(ntile_bucket(position, size, function.argument))
            results.append(tuple(values))
    return results


class WindowOperator(Operator):

    def __init__(self, node, context, child: Operator, functions: Sequence[WindowFunction],
                 partition_by: Sequence[Expression], order_by: Sequence[SortKey],
                 schema: Schema):
        super().__init__(node, context, schema, [child])
        self.child = child
        self.functions = tuple(functions)
        self.partition_by = tuple(partition_by)
        self.order_by = tuple(order_by)
        self.comparator = make_key_comparator(self.order_by, context.config.nulls_order)

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        source = self.child.schema
        partitions: Dict[tuple, List[_Member]] = {}

        for ordinal, row in enumerate(self.child.rows(env)):
            partition = tuple(self.evaluate(e, row, source, env, ordinal) for e in self.partition_by)
            order_values = tuple(self.evaluate(k.expr, row, source, env, ordinal) for k in self.order_by)
            partitions.setdefault(hashable_key(partition), []).append((row, order_values))

        comparator = self.comparator
        for members in partitions.values():
            members.sort(key=cmp_to_key(lambda a, b: comparator(a[1], b[1])))
            groups = peer_groups([m[1] for m in members], comparator)
            ranks = rank_partition(self.functions, len(members), groups)
            for (row, _), extra in zip(members, ranks):
                yield row + extra
