"""Database access contract and the uniqueness check for document ids."""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

from docsql.codec import encode_value
from docsql.where import create_where_clause


class NoRowsError(LookupError):
    """Raised by a pool when a single-row query finds no row."""

    def __init__(self, message: str = "sql: no rows in result set") -> None:
        super().__init__(message)


class DuplicateKeyError(Exception):
    """Raised when a document's _id is already present in the collection."""

    def __init__(self, message: str, id_value: Any = None) -> None:
        super().__init__(message)
        self.id_value = id_value


@runtime_checkable
class Pool(Protocol):
    """The operations the command handlers need from a database connection."""

    def query_row(self, sql: str, *args: Any) -> tuple[Any, ...]:
        """Return the first row of a query; raise NoRowsError when there is none."""
        ...

    def query(self, sql: str, *args: Any) -> Iterable[tuple[Any, ...]]:
        """Return all rows of a query."""
        ...

    def execute(self, sql: str, *args: Any) -> int:
        """Run a statement and return the number of rows it affected."""
        ...

    def namespace_exists(self, db: str, collection: str) -> bool:
        """Tell whether the schema and the collection both exist."""
        ...

    def create_namespace_if_not_exists(self, db: str, collection: str) -> None:
        """Create the schema and collection when they are missing."""
        ...


def is_id_unique(id_value: Any, db: str, collection: str, pool: Pool) -> bool:
    """Tell whether no document in the collection has the given _id."""
    sql = f'SELECT _id FROM "{db}"."{collection}" ' + create_where_clause({"_id": id_value})
    try:
        pool.query_row(sql + " LIMIT 1")
    except NoRowsError:
        return True
    return False


def _duplicate_message(id_value: Any, db: str, collection: str) -> str:
    rendered = encode_value(id_value).decode("utf-8")
    message = (
        f'E11000 duplicate key error collection: "{db}"."{collection}" '
        f"index: _id_ dup key: {{ _id: {rendered} }}"
    )
    if '{"oid":' in message:
        message = message.replace('{"oid":', "", 1).replace("}", "", 1)
    return message


def ensure_id_unique(id_value: Any, db: str, collection: str, pool: Pool) -> None:
    """Raise DuplicateKeyError if a document with the given _id already exists."""
    if not is_id_unique(id_value, db, collection, pool):
        raise DuplicateKeyError(_duplicate_message(id_value, db, collection), id_value)