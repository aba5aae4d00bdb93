# relational_engine/operators/base.py
"""
Base class for pull-based operators.

Every operator exposes rows(env), a generator that produces the next row
or ends the stream. Leaf operators read a table; inner operators pull from
their children on demand. Blocking operators (sort, grouping, windows, set
operations) materialize their input inside the generator, so nothing is
computed until the executor starts pulling.

The same operator tree can be driven more than once. Correlated subqueries
rely on that: their inner tree is re-driven once per outer row with a new
binding environment.
"""

import abc
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence

from relational_engine.ast.expression_ast import Expression
from relational_engine.ast.plan_nodes import PlanNode
from relational_engine.errors import QueryExecutionError
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row


@dataclass
class StageStats:
    """Row counts of one operator, accumulated across every time it was driven."""
    label: str
    rows_out: int = 0
    invocations: int = 0


class Operator(abc.ABC):
    """
    A node of the physical operator tree.

    Attributes:
        node: The plan node this operator executes
        context: Per-execution context (config, evaluator, cancellation)
        children: Input operators
        schema: Output schema
        stats: Rows produced and number of times the operator was driven
    """

    def __init__(self, node: PlanNode, context, schema: Schema,
                 children: Sequence["Operator"] = ()):
        self.node = node
        self.context = context
        self.schema = schema
        self.children = tuple(children)
        self.stats = StageStats(node.label())

    def rows(self, env: Optional[BindingEnvironment] = None) -> Iterator[Row]:
        """Produce this operator's output rows."""
        self.stats.invocations += 1
        for row in self._produce(env):
            self.stats.rows_out += 1
            yield row

    @abc.abstractmethod
    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        ...

    def evaluate(self, expr: Expression, row: Row, schema: Schema,
                 env: Optional[BindingEnvironment], ordinal: Optional[int] = None) -> Any:
        """Evaluate expr, attaching this node and the row ordinal to any error."""
        try:
            return self.context.evaluator.evaluate(expr, row, schema, env)
        except QueryExecutionError as e:
            e.annotate(self.node, ordinal)
            raise

    def evaluate_predicate(self, expr: Expression, row: Row, schema: Schema,
                           env: Optional[BindingEnvironment], ordinal: Optional[int] = None):
        try:
            return self.context.evaluator.evaluate_predicate(expr, row, schema, env)
        except QueryExecutionError as e:
            e.annotate(self.node, ordinal)
            raise

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.node.label()})"
