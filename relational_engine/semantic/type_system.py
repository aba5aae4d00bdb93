# relational_engine/semantic/type_system.py
"""
Value model and coercion rules.

Values are plain Python objects: int (INTEGER), float or decimal.Decimal
(DECIMAL), str (TEXT), bool (BOOLEAN), datetime.date/datetime/time (DATETIME)
and None (NULL). Every operator dispatches on the SqlType of its operands
through this module instead of relying on Python's implicit coercions, so
that e.g. True + 1 or 'a' < 1 are rejected instead of silently evaluated.

Coercion table (everything else is a TypeMismatchError):

    INTEGER  op INTEGER  -> INTEGER   ('/' yields DECIMAL)
    INTEGER  op DECIMAL  -> DECIMAL
    DECIMAL  op DECIMAL  -> DECIMAL   (float mixed with Decimal computes in float)
    TEXT     || TEXT     -> TEXT
    DATETIME cmp DATETIME             (a date is promoted to midnight)
"""

import datetime
import math
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import numpy as np
import pandas as pd

from relational_engine.errors import TypeMismatchError


class SqlType(Enum):
    """Declared column types."""
    INTEGER = "INTEGER"
    DECIMAL = "DECIMAL"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    DATETIME = "DATETIME"
    NULL = "NULL"   # type of a bare NULL literal, compatible with every type
    ANY = "ANY"     # dynamically typed derived column

    @property
    def is_numeric(self) -> bool:
        return self in (SqlType.INTEGER, SqlType.DECIMAL)


NUMERIC_TYPES = (SqlType.INTEGER, SqlType.DECIMAL)


def type_of(value: Any) -> SqlType:
    """Classify a runtime value. bool is checked before int on purpose."""
    if value is None:
        return SqlType.NULL
    if isinstance(value, bool):
        return SqlType.BOOLEAN
    if isinstance(value, int):
        return SqlType.INTEGER
    if isinstance(value, (float, Decimal)):
        return SqlType.DECIMAL
    if isinstance(value, str):
        return SqlType.TEXT
    if isinstance(value, (datetime.date, datetime.time)):
        return SqlType.DATETIME
    raise TypeMismatchError(
        f"Unsupported value {value!r} of Python type {type(value).__name__}")


def is_assignable(value: Any, declared: SqlType) -> bool:
    """True if value may be stored in a column of the declared type."""
    if value is None or declared is SqlType.ANY:
        return True
    actual = type_of(value)
    if actual is declared:
        return True
    return actual is SqlType.INTEGER and declared is SqlType.DECIMAL


def normalize_value(value: Any) -> Any:
    """
    Convert pandas/numpy scalars into plain Python values.

    NaN, NaT and pd.NA become None; numpy scalars become their Python
    equivalents; Timestamps become datetime objects.
    """
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, np.datetime64):
        if np.isnat(value):
            return None
        return pd.Timestamp(value).to_pydatetime()
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def common_type(left: SqlType, right: SqlType) -> Optional[SqlType]:
    """Widest type both sides coerce to, or None when incompatible."""
    if left is right:
        return left
    if left is SqlType.NULL:
        return right
    if right is SqlType.NULL:
        return left
    if SqlType.ANY in (left, right):
        return SqlType.ANY
    if left.is_numeric and right.is_numeric:
        return SqlType.DECIMAL
    return None


def types_compatible(left: SqlType, right: SqlType) -> bool:
    return common_type(left, right) is not None


def _comparison_family(sql_type: SqlType) -> SqlType:
    return SqlType.DECIMAL if sql_type.is_numeric else sql_type


def _promote_temporal(value: Any) -> Any:
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return datetime.datetime.combine(value, datetime.time())
    return value


def compare_values(left: Any, right: Any) -> int:
    """
    Three-way compare two non-NULL values: -1, 0 or 1.

    Raises:
        TypeMismatchError: If the operands belong to different type families
    """
    left_type = type_of(left)
    right_type = type_of(right)
    if _comparison_family(left_type) is not _comparison_family(right_type):
        raise TypeMismatchError(
            f"Cannot compare {left_type.value} {left!r} with {right_type.value} {right!r}")

    if left_type is SqlType.DATETIME:
        left = _promote_temporal(left)
        right = _promote_temporal(right)
    elif left_type.is_numeric:
        left, right = coerce_numeric_pair(left, right)

    try:
        if left < right:
            return -1
        if left > right:
            return 1
        return 0
    except TypeError as e:
        raise TypeMismatchError(f"Cannot compare {left!r} with {right!r}: {e}") from e


def numeric_result_type(op: str, left_type: SqlType, right_type: SqlType) -> SqlType:
    """Result type of an arithmetic operator per the coercion table."""
    if op == "/":
        return SqlType.DECIMAL
    if left_type is SqlType.INTEGER and right_type is SqlType.INTEGER:
        return SqlType.INTEGER
    return SqlType.DECIMAL


def coerce_numeric_pair(left: Any, right: Any):
    """Bring a float/Decimal pair onto float; leave everything else as-is."""
    if isinstance(left, float) and isinstance(right, Decimal):
        return left, float(right)
    if isinstance(left, Decimal) and isinstance(right, float):
        return float(left), right
    return left, right


def _key_component(value: Any) -> Any:
    if isinstance(value, bool):
        return (SqlType.BOOLEAN, value)
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return float(value)
    return _promote_temporal(value)


def hashable_key(values) -> tuple:
    """
    Tuple usable as a dict key for grouping and deduplication.

    Two keys are equal exactly when '=' holds between every pair of
    components, except that NULLs are equal to each other. Decimals are
    keyed on their float (or int, when integral) value, matching the float
    coercion compare_values applies to a float/Decimal pair. Booleans are
    tagged so TRUE and 1 stay apart. Dates are promoted so a date and the
    midnight datetime of the same day collapse together.
    """
    return tuple(_key_component(v) for v in values)
