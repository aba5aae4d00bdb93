# relational_engine/semantic/__init__.py

from .type_system import (
    SqlType, type_of, is_assignable, normalize_value, common_type,
    types_compatible, compare_values, numeric_result_type, hashable_key
)
from .three_valued import UNKNOWN, and3, or3, not3, is_true, check_truth

__all__ = [
    'SqlType',
    'type_of',
    'is_assignable',
    'normalize_value',
    'common_type',
    'types_compatible',
    'compare_values',
    'numeric_result_type',
    'hashable_key',
    'UNKNOWN',
    'and3',
    'or3',
    'not3',
    'is_true',
    'check_truth',
]
