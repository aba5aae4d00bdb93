# relational_engine/ast/__init__.py

from .expression_ast import (
    Expression, Literal, ColumnRef, Star, UnaryOp, BinaryOp, Comparison,
    LogicalOp, Not, IsNull, Like, InList, Between, Case, FunctionCall,
    AggregateCall, WindowCall, SortKey, NullsPlacement, SubqueryExpr,
    SubqueryMode, transform, walk
)
from .plan_nodes import (
    PlanNode, Scan, Values, Filter, ProjectItem, Project, JoinKind, Join,
    GroupKey, AggregateSpec, GroupAggregate, WindowFunction, Window,
    SetOpKind, SetOp, Distinct, Sort, Limit
)
from .query_ast import SelectQuery

__all__ = [
    'Expression', 'Literal', 'ColumnRef', 'Star', 'UnaryOp', 'BinaryOp',
    'Comparison', 'LogicalOp', 'Not', 'IsNull', 'Like', 'InList', 'Between',
    'Case', 'FunctionCall', 'AggregateCall', 'WindowCall', 'SortKey',
    'NullsPlacement', 'SubqueryExpr', 'SubqueryMode', 'transform', 'walk',
    'PlanNode', 'Scan', 'Values', 'Filter', 'ProjectItem', 'Project',
    'JoinKind', 'Join', 'GroupKey', 'AggregateSpec', 'GroupAggregate',
    'WindowFunction', 'Window', 'SetOpKind', 'SetOp', 'Distinct', 'Sort',
    'Limit', 'SelectQuery',
]
