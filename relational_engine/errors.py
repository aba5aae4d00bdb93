# relational_engine/errors.py
"""
Error taxonomy for the relational query engine.

Every error raised while validating or executing a plan derives from
QueryExecutionError. Errors carry the plan node they were raised for and,
when the failure happened while a row was flowing, the ordinal position of
the offending row in the operator's input stream. Together with the plan and
the input snapshot this is enough to reproduce a failure.

All errors abort the whole query; there is no partial-result recovery.
"""

from typing import Any, Optional


class QueryExecutionError(Exception):
    """Base class for every engine error with plan/row context."""

    default_code = "QE_000"

    def __init__(self, message: str, plan_node: Any = None,
                 row_ordinal: Optional[int] = None,
                 error_code: Optional[str] = None,
                 suggestion: Optional[str] = None):
        self.message = message
        self.plan_node = plan_node
        self.row_ordinal = row_ordinal
        self.error_code = error_code or self.default_code
        self.suggestion = suggestion
        super().__init__(self._render())

    def _render(self) -> str:
        full_message = self.message
        if self.plan_node is not None:
            full_message = f"[{_describe_node(self.plan_node)}] {full_message}"
        if self.row_ordinal is not None:
            full_message += f" (row {self.row_ordinal})"
        if self.suggestion:
            full_message += f"\nSuggestion: {self.suggestion}"
        full_message += f"\nError Code: {self.error_code}"
        return full_message

    def annotate(self, plan_node: Any = None,
                 row_ordinal: Optional[int] = None) -> "QueryExecutionError":
        """
        Attach plan node and row position if they are not already known.

        The innermost operator that sees the error wins, so the context
        always points at the node where the row actually failed.
        """
        changed = False
        if self.plan_node is None and plan_node is not None:
            self.plan_node = plan_node
            changed = True
        if self.row_ordinal is None and row_ordinal is not None:
            self.row_ordinal = row_ordinal
            changed = True
        if changed:
            self.args = (self._render(),)
        return self

    def __str__(self) -> str:
        return self._render()


def _describe_node(node: Any) -> str:
    label = getattr(node, "label", None)
    if callable(label):
        return label()
    return type(node).__name__


class TypeMismatchError(QueryExecutionError):
    """Incompatible operand types in an expression or set operation."""
    default_code = "QE_TYPE"


class UnknownColumnError(QueryExecutionError):
    """A column reference resolves against neither the row nor the environment."""
    default_code = "QE_COLUMN"


class AmbiguousColumnError(QueryExecutionError):
    """An unqualified column name matches more than one column."""
    default_code = "QE_AMBIGUOUS"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("suggestion", "Qualify the column with its table name or alias")
        super().__init__(message, **kwargs)


class TableNotFoundError(QueryExecutionError):
    """The table store has no relation with the requested name."""
    default_code = "QE_TABLE"


class ColumnNotFoundError(QueryExecutionError):
    """The table store's relation has no column with the requested name."""
    default_code = "QE_STORE_COLUMN"


class InvalidProjectionError(QueryExecutionError):
    """A grouped query references a column that is neither grouped nor aggregated."""
    default_code = "QE_PROJECTION"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault(
            "suggestion",
            "Add the column to GROUP BY or wrap it in an aggregate function")
        super().__init__(message, **kwargs)


class ArityMismatchError(QueryExecutionError):
    """Column-count mismatch between set operation operands or subquery shape."""
    default_code = "QE_ARITY"


class ScalarSubqueryCardinalityError(QueryExecutionError):
    """A scalar subquery produced zero or more than one row."""
    default_code = "QE_SCALAR_SUBQUERY"


class CollaboratorFailureError(QueryExecutionError):
    """Opaque failure reported by an external collaborator such as the table store."""
    default_code = "QE_COLLABORATOR"


class InvalidPlanError(QueryExecutionError):
    """The plan is malformed (misplaced aggregate, negative limit, unknown function...)."""
    default_code = "QE_PLAN"


class DivisionByZeroError(QueryExecutionError):
    """Division or modulo by zero when the engine is configured to reject it."""
    default_code = "QE_DIV_ZERO"


class QueryCancelledError(QueryExecutionError):
    """The cooperative cancellation token was set while the query was running."""
    default_code = "QE_CANCELLED"


__all__ = [
    'QueryExecutionError',
    'TypeMismatchError',
    'UnknownColumnError',
    'AmbiguousColumnError',
    'TableNotFoundError',
    'ColumnNotFoundError',
    'InvalidProjectionError',
    'ArityMismatchError',
    'ScalarSubqueryCardinalityError',
    'CollaboratorFailureError',
    'InvalidPlanError',
    'DivisionByZeroError',
    'QueryCancelledError',
]
