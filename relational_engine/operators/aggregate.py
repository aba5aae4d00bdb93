# relational_engine/operators/aggregate.py
"""
Hash grouping with aggregate evaluation.

Rows are partitioned by the evaluated group key tuple, with NULL keys
grouped together. Groups are emitted in the order their first row was
seen. With no grouping keys the whole input forms one group, and exactly
one row is produced even for empty input (COUNT gives 0, the others NULL).

Each aggregate collects its argument values per group; the final value is
computed from that list once the input is exhausted.
"""

from functools import reduce
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np

from relational_engine.ast.expression_ast import AggregateCall
from relational_engine.ast.plan_nodes import AggregateSpec, GroupKey
from relational_engine.errors import InvalidPlanError, QueryExecutionError, TypeMismatchError
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.semantic.type_system import (
    SqlType, compare_values, hashable_key, type_of
)
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row
from relational_engine.utils.logging_config import get_logger
from relational_engine.validator.expression_validator import STATISTICAL_FUNCTIONS

logger = get_logger(__name__)


class _Group:
    __slots__ = ("key_values", "values")

    def __init__(self, key_values: Row, aggregate_count: int):
        self.key_values = key_values
        self.values: List[List[Any]] = [[] for _ in range(aggregate_count)]


class GroupAggregateOperator(Operator):

    def __init__(self, node, context, child: Operator, keys: Sequence[GroupKey],
                 aggregates: Sequence[AggregateSpec], schema: Schema):
        super().__init__(node, context, schema, [child])
        self.child = child
        self.keys = tuple(keys)
        self.aggregates = tuple(aggregates)

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        source = self.child.schema
        groups: Dict[tuple, _Group] = {}

        for ordinal, row in enumerate(self.child.rows(env)):
            key_values = tuple(self.evaluate(k.expr, row, source, env, ordinal) for k in self.keys)
            group_key = hashable_key(key_values)
            group = groups.get(group_key)
            if group is None:
                group = groups[group_key] = _Group(key_values, len(self.aggregates))

            for index, spec in enumerate(self.aggregates):
                call = spec.call
                if call.is_count_star:
                    group.values[index].append(True)
                else:
                    group.values[index].append(self.evaluate(call.arg, row, source, env, ordinal))

        if not groups and not self.keys:
            groups[()] = _Group((), len(self.aggregates))

        logger.debug(f"{self.node.label()}: {len(groups)} group(s)")
        for group in groups.values():
            try:
                results = tuple(self.compute(spec.call, values)
                                for spec, values in zip(self.aggregates, group.values))
            except QueryExecutionError as e:
                e.annotate(self.node)
                raise
            yield group.key_values + results

    # ------------------------------------------------------------------
    # Aggregate functions
    # ------------------------------------------------------------------

    def compute(self, call: AggregateCall, values: List[Any]) -> Any:
        """Final value of one aggregate over the argument values of one group."""
        if call.is_count_star:
            return len(values)

        values = [v for v in values if v is not None]
        if call.distinct:
            values = _distinct(values)

        func = call.func
        if func == "COUNT":
            return len(values)
        if not values:
            return None
        if func == "SUM":
            return self._evaluate_sum(values)
        if func == "AVG":
            return self.context.evaluator.arithmetic("/", self._evaluate_sum(values), len(values))
        if func in ("MIN", "MAX"):
            return _evaluate_min_max(func, values)
        if func == "STRING_AGG":
            return _evaluate_string_agg(values, call.separator)
        if func in STATISTICAL_FUNCTIONS:
            return _evaluate_statistical(func, values)
        raise InvalidPlanError(f"Unknown aggregate function {func}")

    def _evaluate_sum(self, values: List[Any]) -> Any:
        arithmetic = self.context.evaluator.arithmetic
        return reduce(lambda total, value: arithmetic("+", total, value), values)


def _distinct(values: List[Any]) -> List[Any]:
    seen = set()
    result = []
    for value in values:
        key = hashable_key((value,))
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


def _evaluate_min_max(func: str, values: List[Any]) -> Any:
    best = values[0]
    for value in values[1:]:
        order = compare_values(value, best)
        if (func == "MIN" and order < 0) or (func == "MAX" and order > 0):
            best = value
    return best


def _evaluate_string_agg(values: List[Any], separator: Optional[str]) -> str:
    for value in values:
        if type_of(value) is not SqlType.TEXT:
            raise TypeMismatchError(f"STRING_AGG requires TEXT values, got {value!r}")
    return (separator if separator is not None else ",").join(values)


def _evaluate_statistical(func: str, values: List[Any]) -> Optional[float]:
    """
    Variance / standard deviation.

    STDDEV and VARIANCE are the sample forms, undefined (NULL) for a single
    value; the _POP forms divide by n and give 0.0 for a single value.
    """
    for value in values:
        if not type_of(value).is_numeric:
            raise TypeMismatchError(f"{func} requires numeric values, got {value!r}")
    population = func.endswith("_POP")
    if len(values) < 2 and not population:
        return None
    data = np.asarray([float(v) for v in values], dtype=float)
    ddof = 0 if population else 1
    if func.startswith("VAR"):
        return float(np.var(data, ddof=ddof))
    return float(np.std(data, ddof=ddof))
