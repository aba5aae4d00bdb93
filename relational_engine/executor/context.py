# relational_engine/executor/context.py

import threading
from dataclasses import dataclass, field
from typing import Optional

from relational_engine.config.engine_config import EngineConfig
from relational_engine.errors import QueryCancelledError
from relational_engine.evaluator.scalar_evaluator import ExpressionEvaluator
from relational_engine.operators.subquery import SubqueryRunner
from relational_engine.storage.table_store import TableSource


class CancellationToken:
    """
    Cooperative cancellation flag.

    cancel() may be called from any thread; the executor checks the flag
    between output rows and before each correlated subquery evaluation.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        if self._event.is_set():
            raise QueryCancelledError("Query was cancelled")


@dataclass
class ExecutionContext:
    """State shared by every operator of one execution."""
    store: TableSource
    config: EngineConfig = field(default_factory=EngineConfig)
    cancellation: Optional[CancellationToken] = None
    subqueries: SubqueryRunner = field(default_factory=SubqueryRunner)
    evaluator: ExpressionEvaluator = field(init=False)

    def __post_init__(self):
        self.evaluator = ExpressionEvaluator(self.config, self.subqueries)

    def check_cancelled(self) -> None:
        if self.cancellation is not None:
            self.cancellation.check()
