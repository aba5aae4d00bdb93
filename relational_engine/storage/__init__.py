# relational_engine/storage/__init__.py

from .schema import Column, Schema
from .table import Row, Table
from .table_store import TableSource, TableStore

__all__ = [
    'Column',
    'Schema',
    'Row',
    'Table',
    'TableSource',
    'TableStore',
]
