# relational_engine/validator/__init__.py

from .expression_validator import (
    AGGREGATE_FUNCTIONS, STATISTICAL_FUNCTIONS, WINDOW_FUNCTIONS, ExpressionValidator,
    Scope, contains_aggregate, contains_window
)

__all__ = [
    'AGGREGATE_FUNCTIONS',
    'STATISTICAL_FUNCTIONS',
    'WINDOW_FUNCTIONS',
    'ExpressionValidator',
    'Scope',
    'contains_aggregate',
    'contains_window',
]
