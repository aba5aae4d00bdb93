# relational_engine/operators/scan.py

from typing import Iterator, Optional, Sequence

from relational_engine.ast.plan_nodes import PlanNode
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row


class ScanOperator(Operator):
    """
    Leaf operator over a materialized table (a Scan or an inline Values node).

    Rows are emitted in table order. The table snapshot is taken when the
    operator is built, so every re-drive sees the same rows.
    """

    def __init__(self, node: PlanNode, context, schema: Schema, table_rows: Sequence[Row]):
        super().__init__(node, context, schema)
        self.table_rows = table_rows

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        for row in self.table_rows:
            yield row
