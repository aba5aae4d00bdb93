# relational_engine/evaluator/environment.py

from dataclasses import dataclass
from typing import Any, Optional

from relational_engine.errors import UnknownColumnError
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row


@dataclass(frozen=True)
class BindingEnvironment:
    """
    The current outer row of a correlated subquery.

    parent links to the environment of the next enclosing query, so a
    subquery nested two levels deep can still see the outermost row. An
    environment lives only while one outer row's inner evaluation runs.
    """
    row: Row
    schema: Schema
    parent: Optional["BindingEnvironment"] = None

    def lookup(self, name: str, table: Optional[str] = None) -> Any:
        """
        Value of a column reference in the nearest enclosing scope that has it.

        Raises:
            UnknownColumnError: If no enclosing scope defines the column
        """
        env = self
        while env is not None:
            position = env.schema.resolve(name, table)
            if position is not None:
                return env.row[position]
            env = env.parent
        ref = f"{table}.{name}" if table else name
        raise UnknownColumnError(f"Column '{ref}' does not exist in this or any enclosing scope")

    def depth(self) -> int:
        depth = 0
        env = self
        while env is not None:
            depth += 1
            env = env.parent
        return depth
