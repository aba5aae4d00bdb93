# relational_engine/operators/ordering.py
"""
Comparison of evaluated ORDER BY key tuples.

NULL placement is never left to Python's defaults. Each key either names
its own placement (NULLS FIRST / NULLS LAST) or follows the engine-wide
NullsOrder policy: LOWEST puts NULL before every value ascending and after
every value descending; HIGHEST does the opposite. Two NULLs are peers.
"""

from typing import Any, Callable, Sequence

from relational_engine.ast.expression_ast import NullsPlacement, SortKey
from relational_engine.config.engine_config import NullsOrder
from relational_engine.semantic.type_system import compare_values

KeyComparator = Callable[[Sequence[Any], Sequence[Any]], int]


def nulls_first(key: SortKey, policy: NullsOrder) -> bool:
    if key.nulls is not None:
        return key.nulls is NullsPlacement.FIRST
    if policy is NullsOrder.LOWEST:
        return not key.descending
    return key.descending


def make_key_comparator(keys: Sequence[SortKey], policy: NullsOrder) -> KeyComparator:
    """
    Build a three-way comparator over tuples of evaluated sort key values.

    A result of 0 means the two rows are peers (ties) under every key.
    """
    placements = [(key.descending, nulls_first(key, policy)) for key in keys]

    def compare(left: Sequence[Any], right: Sequence[Any]) -> int:
        for a, b, (descending, null_first) in zip(left, right, placements):
            if a is None or b is None:
                if a is None and b is None:
                    continue
                a_first = (a is None) == null_first
                return -1 if a_first else 1
            result = compare_values(a, b)
            if result:
                return -result if descending else result
        return 0

    return compare
