# relational_engine/storage/schema.py

from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from relational_engine.errors import AmbiguousColumnError
from relational_engine.semantic.type_system import SqlType


@dataclass(frozen=True)
class Column:
    """A named, typed column, optionally qualified by the relation it came from."""
    name: str
    type: SqlType = SqlType.ANY
    table: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.table}.{self.name}" if self.table else self.name

    def matches(self, name: str, table: Optional[str] = None) -> bool:
        if self.name.lower() != name.lower():
            return False
        if table is None:
            return True
        return self.table is not None and self.table.lower() == table.lower()


ColumnSpec = Union[Column, str, Tuple[str, SqlType]]


def _to_column(spec: ColumnSpec) -> Column:
    if isinstance(spec, Column):
        return spec
    if isinstance(spec, str):
        return Column(spec)
    name, sql_type = spec
    return Column(name, sql_type)


class Schema:
    """
    Ordered column list of a row stream.

    grouped_source is set on the output of a grouping operator and holds the
    schema the groups were formed from. Validation uses it to tell a column
    that does not exist at all (UnknownColumnError) from one that exists but
    was neither grouped nor aggregated (InvalidProjectionError).
    """

    def __init__(self, columns: Sequence[ColumnSpec],
                 grouped_source: Optional["Schema"] = None):
        self.columns: Tuple[Column, ...] = tuple(_to_column(c) for c in columns)
        self.grouped_source = grouped_source
        self._lookup: Dict[Tuple[str, Optional[str]], List[int]] = {}

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    def __getitem__(self, index: int) -> Column:
        return self.columns[index]

    def __eq__(self, other) -> bool:
        return isinstance(other, Schema) and self.columns == other.columns

    def __hash__(self) -> int:
        return hash(self.columns)

    def __repr__(self) -> str:
        cols = ", ".join(f"{c.qualified_name}:{c.type.value}" for c in self.columns)
        return f"Schema({cols})"

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def types(self) -> List[SqlType]:
        return [c.type for c in self.columns]

    def find(self, name: str, table: Optional[str] = None) -> List[int]:
        """All positions matching a (possibly qualified) column name."""
        key = (name.lower(), table.lower() if table else None)
        positions = self._lookup.get(key)
        if positions is None:
            positions = [i for i, c in enumerate(self.columns) if c.matches(name, table)]
            self._lookup[key] = positions
        return positions

    def resolve(self, name: str, table: Optional[str] = None) -> Optional[int]:
        """
        Position of a column reference, or None when it is not in this schema.

        Raises:
            AmbiguousColumnError: If more than one column matches
        """
        positions = self.find(name, table)
        if not positions:
            return None
        if len(positions) > 1:
            ref = f"{table}.{name}" if table else name
            raise AmbiguousColumnError(f"Column reference '{ref}' is ambiguous in {self!r}")
        return positions[0]

    def concat(self, other: "Schema") -> "Schema":
        return Schema(self.columns + other.columns)

    def qualify(self, table: str) -> "Schema":
        """Re-qualify every column with a relation name or alias."""
        return Schema([replace(c, table=table) for c in self.columns])

    def extend(self, columns: Sequence[ColumnSpec]) -> "Schema":
        return Schema(self.columns + tuple(_to_column(c) for c in columns),
                      grouped_source=self.grouped_source)
