# relational_engine/executor/__init__.py

from .context import CancellationToken, ExecutionContext
from .logical_planner import lower_select
from .plan_builder import PlanBuilder
from .query_executor import QueryExecutor, QueryResult, execute
from .report import ExecutionReport, StageReport, SubqueryReport

__all__ = [
    'CancellationToken',
    'ExecutionContext',
    'ExecutionReport',
    'PlanBuilder',
    'QueryExecutor',
    'QueryResult',
    'StageReport',
    'SubqueryReport',
    'execute',
    'lower_select',
]
