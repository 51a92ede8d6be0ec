"""The delete command."""

from __future__ import annotations

import logging
from typing import Any

from docsql.codec import decode_document
from docsql.errors import ErrorCode, ProtocolError, ignored, unimplemented
from docsql.unique import NoRowsError, Pool
from docsql.update import get_update_value
from docsql.where import create_where_clause

Document = dict[str, Any]

_log = logging.getLogger(__name__)


def _command(document: Document) -> str:
    return next(iter(document), "")


def _limit(statement: Document) -> int:
    limit = statement.get("limit")
    if isinstance(limit, int) and not isinstance(limit, bool):
        return limit
    return 0


def _delete_one_where(pool: Pool, table: str, query: Document) -> str | None:
    """Return the WHERE clause that picks one matching document, or None if none match."""
    select = f'SELECT {{"_id": "_id"}} FROM {table}' + create_where_clause(query) + " LIMIT 1"
    try:
        row = pool.query_row(select)
    except NoRowsError:
        return None
    found = decode_document(row[0])
    return ' WHERE "_id" = ' + get_update_value(found.get("_id"))


def msg_delete(pool: Pool, document: Document) -> Document:
    """Delete the documents selected by each delete statement and report how many went."""
    unimplemented(document, "let", "writeConcern")
    ignored(document, _log, "ordered")

    collection = document[_command(document)]
    db = document["$db"]

    if not pool.namespace_exists(db, collection):
        return {"n": 0, "ok": 1.0}

    statements = document.get("deletes", [])
    if not isinstance(statements, list):
        raise ProtocolError(ErrorCode.BAD_VALUE, "deletes must be an array")

    table = f'"{db}"."{collection}"'
    deleted = 0
    for statement in statements:
        if not isinstance(statement, dict):
            raise ProtocolError(ErrorCode.BAD_VALUE, "each delete statement must be a document")
        unimplemented(statement, "collation", "hint")

        query = statement.get("q", {})
        if _limit(statement) != 0:
            where_sql = _delete_one_where(pool, table, query)
            if where_sql is None:
                continue
        else:
            where_sql = create_where_clause(query)

        try:
            affected = pool.execute(f"DELETE FROM {table}" + where_sql)
        except Exception as exc:
            raise ProtocolError(
                ErrorCode.NAMESPACE_NOT_FOUND, f"MsgDelete: ns not found: {exc}"
            ) from exc
        deleted += int(affected)

    return {"n": deleted, "ok": 1.0}