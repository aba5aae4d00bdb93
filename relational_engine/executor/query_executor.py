# relational_engine/executor/query_executor.py
"""
Query execution entry point.

execute() builds and validates the operator tree for a plan, drives it to
completion and returns the result table together with an execution report.
Each call gets its own context: uncorrelated subquery results are cached
for that execution only, and nothing outlives the call.
"""

from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from relational_engine.ast.plan_nodes import PlanNode
from relational_engine.config.engine_config import EngineConfig
from relational_engine.executor.context import CancellationToken, ExecutionContext
from relational_engine.executor.plan_builder import PlanBuilder
from relational_engine.executor.report import ExecutionReport, build_report
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row, Table
from relational_engine.storage.table_store import TableSource
from relational_engine.utils.formatting import format_table
from relational_engine.utils.logging_config import PerformanceTimer, get_logger

logger = get_logger(__name__)


@dataclass
class QueryResult:
    """Result rows of one execution plus its report."""
    table: Table
    report: ExecutionReport

    @property
    def schema(self) -> Schema:
        return self.table.schema

    @property
    def rows(self) -> List[Row]:
        return list(self.table.rows)

    @property
    def column_names(self) -> List[str]:
        return self.table.column_names

    def to_dataframe(self) -> pd.DataFrame:
        return self.table.to_dataframe()

    def format(self) -> str:
        """Aligned text rendering of the result table."""
        return format_table(self.to_dataframe())

    def __len__(self) -> int:
        return len(self.table)


class QueryExecutor:
    """
    Executes plans against a table store.

    Args:
        store: Source of base tables (a TableStore or any TableSource)
        config: Engine behavior settings
    """

    def __init__(self, store: TableSource, config: Optional[EngineConfig] = None):
        self.store = store
        self.config = config or EngineConfig()

    def execute(self, plan: PlanNode, cancellation: Optional[CancellationToken] = None) -> QueryResult:
        """
        Execute a plan.

        Args:
            plan: Root plan node (a SelectQuery is lowered first)
            cancellation: Optional token checked between output rows

        Returns:
            QueryResult with the result table and execution report

        Raises:
            QueryExecutionError: On any validation or execution failure; no
                partial result is returned
        """
        snapshot = getattr(self.store, "snapshot", None)
        store = snapshot() if callable(snapshot) else self.store
        context = ExecutionContext(store, self.config, cancellation)
        context.check_cancelled()

        rows: List[Row] = []
        with PerformanceTimer(f"query execution ({plan.label()})") as timer:
            root = PlanBuilder(context).build(plan)
            for row in root.rows():
                rows.append(row)
                context.check_cancelled()

        table = Table(root.schema, rows, validate=False)
        report = build_report(root, context, timer.duration, len(rows))
        logger.debug(f"Query produced {len(rows)} rows\n{report.summary()}")
        return QueryResult(table, report)


def execute(plan: PlanNode, store: TableSource, config: Optional[EngineConfig] = None,
            cancellation: Optional[CancellationToken] = None) -> QueryResult:
    """Execute plan against store with a one-off executor."""
    return QueryExecutor(store, config).execute(plan, cancellation)
