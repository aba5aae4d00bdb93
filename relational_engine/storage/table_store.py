# relational_engine/storage/table_store.py

from typing import Dict, List, Mapping, Optional, Protocol, Union

import pandas as pd

from relational_engine.errors import ColumnNotFoundError, TableNotFoundError
from relational_engine.semantic.type_system import SqlType
from relational_engine.storage.table import Table
from relational_engine.utils.logging_config import get_logger

logger = get_logger(__name__)


class TableSource(Protocol):
    """What the executor needs from a storage collaborator."""

    def get_table(self, name: str) -> Table:
        ...

    def column_type(self, table: str, column: str) -> SqlType:
        ...


class TableStore:
    """
    In-memory table store holding named, immutable relations.

    Tables are registered from DataFrames or Table objects. Lookups are
    case-insensitive. snapshot() hands the executor a frozen view so
    concurrent registrations cannot change what a running query sees.
    """

    def __init__(self, tables: Optional[Mapping[str, Union[Table, pd.DataFrame]]] = None):
        self._tables: Dict[str, Table] = {}
        for name, data in (tables or {}).items():
            self.register(name, data)

    def register(self, name: str, data: Union[Table, pd.DataFrame],
                 types: Optional[Mapping[str, SqlType]] = None) -> Table:
        """
        Register (or replace) a relation.

        Args:
            name: Relation name
            data: A DataFrame or a Table
            types: Explicit column types for DataFrame input

        Returns:
            The stored Table, with columns qualified by name
        """
        if isinstance(data, pd.DataFrame):
            table = Table.from_dataframe(data, name=name, types=types)
        elif isinstance(data, Table):
            table = data.qualified(name)
        else:
            raise TypeError(f"Cannot register {type(data).__name__} as table '{name}'")
        self._tables[name.lower()] = table
        logger.debug(f"Registered table '{name}' ({len(table)} rows, {len(table.schema)} columns)")
        return table

    def drop(self, name: str) -> None:
        if self._tables.pop(name.lower(), None) is None:
            raise TableNotFoundError(f"Table '{name}' does not exist")

    def table_names(self) -> List[str]:
        return [t.name for t in self._tables.values()]

    def get_table(self, name: str) -> Table:
        try:
            return self._tables[name.lower()]
        except KeyError:
            raise TableNotFoundError(
                f"Table '{name}' does not exist",
                suggestion=f"Known tables: {', '.join(sorted(self.table_names())) or '(none)'}"
            ) from None

    def column_type(self, table: str, column: str) -> SqlType:
        schema = self.get_table(table).schema
        positions = schema.find(column)
        if not positions:
            raise ColumnNotFoundError(f"Table '{table}' has no column '{column}'")
        return schema[positions[0]].type

    def snapshot(self) -> "TableStore":
        """A store sharing the current (immutable) tables but not future registrations."""
        frozen = TableStore()
        frozen._tables = dict(self._tables)
        return frozen

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._tables

    def __len__(self) -> int:
        return len(self._tables)
