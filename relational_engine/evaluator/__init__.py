# relational_engine/evaluator/__init__.py

from .environment import BindingEnvironment
from .scalar_evaluator import ExpressionEvaluator, SCALAR_FUNCTIONS

__all__ = ['BindingEnvironment', 'ExpressionEvaluator', 'SCALAR_FUNCTIONS']
