# relational_engine/semantic/three_valued.py
"""
Three-valued logic.

A truth value is True, False or UNKNOWN. UNKNOWN is represented by None,
which is also the SQL NULL of a BOOLEAN column, so a NULL boolean column and
an unknown comparison result are the same thing. Nothing in the pipeline may
collapse UNKNOWN to False except the final retain/drop decision of a filter
or join predicate (is_true).
"""

from typing import Any, Optional

from relational_engine.errors import TypeMismatchError

UNKNOWN = None

Truth = Optional[bool]


def check_truth(value: Any, context: str = "boolean operand") -> Truth:
    if value is None or isinstance(value, bool):
        return value
    raise TypeMismatchError(f"Expected BOOLEAN for {context}, got {value!r}")


def and3(left: Truth, right: Truth) -> Truth:
    if left is False or right is False:
        return False
    if left is UNKNOWN or right is UNKNOWN:
        return UNKNOWN
    return True


def or3(left: Truth, right: Truth) -> Truth:
    if left is True or right is True:
        return True
    if left is UNKNOWN or right is UNKNOWN:
        return UNKNOWN
    return False


def not3(value: Truth) -> Truth:
    if value is UNKNOWN:
        return UNKNOWN
    return not value


def is_true(value: Truth) -> bool:
    """Retain decision for WHERE/HAVING/ON: only an exact True passes."""
    return value is True
