# relational_engine/storage/table.py

from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from pandas.api import types as ptypes

from relational_engine.errors import ArityMismatchError, TypeMismatchError
from relational_engine.semantic.type_system import (
    SqlType, common_type, is_assignable, normalize_value, type_of
)
from relational_engine.storage.schema import Column, ColumnSpec, Schema
from relational_engine.utils.logging_config import get_logger

logger = get_logger(__name__)

Row = Tuple[Any, ...]


class Table:
    """
    An immutable relation: a Schema plus an ordered tuple of rows.

    Rows are tuples positionally aligned with the schema. When validate is
    set, every row is checked for arity and every value for assignability to
    its column's declared type.
    """

    def __init__(self, schema: Schema, rows: Sequence[Sequence[Any]] = (),
                 name: Optional[str] = None, validate: bool = True):
        self.schema = schema
        self.name = name
        self.rows: Tuple[Row, ...] = tuple(tuple(r) for r in rows)
        if validate:
            self._validate()

    def _validate(self) -> None:
        width = len(self.schema)
        for ordinal, row in enumerate(self.rows):
            if len(row) != width:
                raise ArityMismatchError(
                    f"Row has {len(row)} values but table '{self.name}' has {width} columns",
                    row_ordinal=ordinal)
            for value, column in zip(row, self.schema):
                if not is_assignable(value, column.type):
                    raise TypeMismatchError(
                        f"Value {value!r} is not assignable to column "
                        f"'{column.name}' of type {column.type.value}",
                        row_ordinal=ordinal)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def __repr__(self) -> str:
        return f"Table(name={self.name!r}, schema={self.schema!r}, rows={len(self.rows)})"

    @property
    def column_names(self) -> List[str]:
        return self.schema.names

    def column(self, name: str, table: Optional[str] = None) -> List[Any]:
        """All values of one column, in row order."""
        position = self.schema.resolve(name, table)
        if position is None:
            raise KeyError(name)
        return [row[position] for row in self.rows]

    def to_dicts(self) -> List[Dict[str, Any]]:
        names = _output_names(self.schema)
        return [dict(zip(names, row)) for row in self.rows]

    def qualified(self, alias: str) -> "Table":
        """The same rows under a schema qualified by alias."""
        return Table(self.schema.qualify(alias), self.rows, name=alias, validate=False)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_records(cls, columns: Sequence[ColumnSpec], rows: Sequence[Sequence[Any]],
                     name: Optional[str] = None) -> "Table":
        """
        Build a table from Python rows.

        Columns given without a type have it inferred from their non-NULL
        values.
        """
        normalized = [tuple(normalize_value(v) for v in row) for row in rows]
        resolved = []
        for position, spec in enumerate(columns):
            if isinstance(spec, str):
                values = [row[position] for row in normalized if position < len(row)]
                spec = Column(spec, _infer_column_type(spec, values))
            elif isinstance(spec, tuple):
                spec = Column(spec[0], spec[1])
            resolved.append(spec)
        schema = Schema(resolved)
        if name:
            schema = schema.qualify(name)
        return cls(schema, normalized, name=name)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, name: Optional[str] = None,
                       types: Optional[Mapping[str, SqlType]] = None) -> "Table":
        """
        Build a table from a DataFrame.

        Column types come from the dtype where it is unambiguous and from the
        values for object columns. numpy scalars, NaN and NaT are normalized
        to Python values and None.

        Args:
            df: Input DataFrame
            name: Relation name used to qualify the columns
            types: Optional explicit column types overriding inference
        """
        types = dict(types or {})
        columns = []
        data = []
        for col_name in df.columns:
            series = df[col_name]
            values = [normalize_value(v) for v in series.tolist()]
            data.append(values)
            sql_type = types.get(col_name) or _dtype_to_sql_type(str(col_name), series, values)
            columns.append(Column(str(col_name), sql_type, name))
        rows = list(zip(*data)) if data else [()] * len(df)
        logger.debug(f"Loaded table {name!r} from DataFrame with {len(rows)} rows")
        return cls(Schema(columns), rows, name=name)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Create a DataFrame while preserving None values and integer columns.

        Columns holding NULLs use object dtype so None is not turned into NaN;
        INTEGER columns without NULLs use the nullable Int64 dtype.
        """
        names = _output_names(self.schema)
        df_data = {}
        for position, (col_name, column) in enumerate(zip(names, self.schema)):
            values = [row[position] for row in self.rows]
            has_none = any(v is None for v in values)

            if has_none or not values:
                df_data[col_name] = pd.Series(values, dtype='object')
            elif column.type is SqlType.INTEGER:
                df_data[col_name] = pd.Series(values, dtype='Int64')
            else:
                df_data[col_name] = pd.Series(values)
        return pd.DataFrame(df_data, columns=names)


def _output_names(schema: Schema) -> List[str]:
    """Unique display names: plain names, qualified only where they collide."""
    counts: Dict[str, int] = {}
    for column in schema:
        counts[column.name] = counts.get(column.name, 0) + 1

    names = []
    seen = set()
    for column in schema:
        candidate = column.name if counts[column.name] == 1 else column.qualified_name
        base = candidate
        suffix = 1
        while candidate in seen:
            candidate = f"{base}_{suffix}"
            suffix += 1
        seen.add(candidate)
        names.append(candidate)
    return names


def _infer_column_type(col_name: str, values: Sequence[Any]) -> SqlType:
    inferred = SqlType.NULL
    for value in values:
        if value is None:
            continue
        widened = common_type(inferred, type_of(value))
        if widened is None:
            raise TypeMismatchError(
                f"Column '{col_name}' mixes {inferred.value} and {type_of(value).value} values")
        inferred = widened
    return SqlType.ANY if inferred is SqlType.NULL else inferred


def _dtype_to_sql_type(col_name: str, series: pd.Series, values: Sequence[Any]) -> SqlType:
    dtype = series.dtype
    if ptypes.is_bool_dtype(dtype):
        return SqlType.BOOLEAN
    if ptypes.is_integer_dtype(dtype):
        return SqlType.INTEGER
    if ptypes.is_float_dtype(dtype):
        return SqlType.DECIMAL
    if ptypes.is_datetime64_any_dtype(dtype):
        return SqlType.DATETIME
    return _infer_column_type(col_name, values)
