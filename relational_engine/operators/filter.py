# relational_engine/operators/filter.py

from typing import Iterable, Iterator, Optional

from relational_engine.ast.expression_ast import Expression
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.operators.base import Operator
from relational_engine.semantic.three_valued import is_true
from relational_engine.storage.table import Row


class FilterOperator(Operator):
    """Keeps the rows whose predicate is TRUE; FALSE and unknown are dropped."""

    def __init__(self, node, context, child: Operator, predicate: Expression):
        super().__init__(node, context, child.schema, [child])
        self.child = child
        self.predicate = predicate

    def _produce(self, env: Optional[BindingEnvironment]) -> Iterator[Row]:
        yield from self.filter(self.child.rows(env), env)

    def filter(self, rows: Iterable[Row], env: Optional[BindingEnvironment] = None) -> Iterator[Row]:
        schema = self.child.schema
        for ordinal, row in enumerate(rows):
            if is_true(self.evaluate_predicate(self.predicate, row, schema, env, ordinal)):
                yield row
