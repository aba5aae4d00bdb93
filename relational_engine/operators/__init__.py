# relational_engine/operators/__init__.py

from .aggregate import GroupAggregateOperator
from .base import Operator, StageStats
from .filter import FilterOperator
from .join import JoinOperator
from .ordering import make_key_comparator
from .project import ProjectOperator
from .scan import ScanOperator
from .set_ops import (
    DistinctOperator, SetOperator, deduplicate, except_, intersect, union, union_all
)
from .sort_limit import LimitOperator, SortOperator
from .subquery import MembershipSet, PreparedSubquery, SubqueryRunner
from .window import WindowOperator

__all__ = [
    'Operator',
    'StageStats',
    'ScanOperator',
    'FilterOperator',
    'ProjectOperator',
    'JoinOperator',
    'GroupAggregateOperator',
    'WindowOperator',
    'SetOperator',
    'DistinctOperator',
    'SortOperator',
    'LimitOperator',
    'PreparedSubquery',
    'SubqueryRunner',
    'MembershipSet',
    'make_key_comparator',
    'deduplicate',
    'union',
    'union_all',
    'intersect',
    'except_',
]
