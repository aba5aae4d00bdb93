# relational_engine/operators/project.py

from typing import Iterator, Optional, Sequence, Union

from relational_engine.ast.expression_ast import Expression
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row

# A compiled projection item: an input position (from * expansion) or an expression
ProjectionItem = Union[int, Expression]


class ProjectOperator(Operator):
    """
    Computes the output columns of every input row, preserving row order.

    Star items are expanded to input positions when the operator is built,
    so the output schema is fully known before any row flows.
    """

    def __init__(self, node, context, child: Operator, items: Sequence[ProjectionItem],
                 schema: Schema):
        super().__init__(node, context, schema, [child])
        self.child = child
        self.items = tuple(items)

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        source = self.child.schema
        items = self.items
        for ordinal, row in enumerate(self.child.rows(env)):
            yield tuple(
                row[item] if isinstance(item, int)
                else self.evaluate(item, row, source, env, ordinal)
                for item in items
            )
