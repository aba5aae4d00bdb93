# relational_engine/__init__.py
"""
In-memory relational query engine.

Executes plans made of scans, filters, projections, joins, grouping with
aggregates, ranking window functions, set operations, sorting and limits,
plus scalar, IN and EXISTS subqueries (correlated or not), under SQL
three-valued NULL logic. Base tables are registered from pandas DataFrames
or plain Python rows.

Example:
    >>> import pandas as pd
    >>> from relational_engine import TableStore, QueryExecutor, SelectQuery, Scan
    >>> from relational_engine.ast.builders import col, gt
    >>> store = TableStore()
    >>> table = store.register("t", pd.DataFrame({"a": [1, 2, 3]}))
    >>> result = QueryExecutor(store).execute(
    ...     SelectQuery(select=[col("a")], from_=Scan("t"), where=gt(col("a"), 1)))
    >>> result.rows
    [(2,), (3,)]
"""

from relational_engine.ast import *  # noqa: F401,F403
from relational_engine.ast import __all__ as _ast_all
from relational_engine.config import EngineConfig, NullsOrder
from relational_engine.errors import *  # noqa: F401,F403
from relational_engine.errors import __all__ as _errors_all
from relational_engine.executor import (
    CancellationToken, ExecutionReport, QueryExecutor, QueryResult, execute
)
from relational_engine.semantic import SqlType
from relational_engine.storage import Column, Schema, Table, TableSource, TableStore
from relational_engine.utils import format_table, setup_logging

__version__ = "0.1.0"

__all__ = list(_ast_all) + list(_errors_all) + [
    'EngineConfig',
    'NullsOrder',
    'CancellationToken',
    'ExecutionReport',
    'QueryExecutor',
    'QueryResult',
    'execute',
    'SqlType',
    'Column',
    'Schema',
    'Table',
    'TableSource',
    'TableStore',
    'format_table',
    'setup_logging',
]
