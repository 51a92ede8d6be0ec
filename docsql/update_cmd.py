"""The update command."""

from __future__ import annotations

import logging
from typing import Any

from docsql.codec import decode_document
from docsql.errors import ignored, unimplemented
from docsql.unique import NoRowsError, Pool
from docsql.update import get_update_value, update
from docsql.where import create_where_clause

_UNSUPPORTED = (
    "upsert",
    "writeConcern",
    "collation",
    "arrayFilter",
    "hint",
    "commented",
    "bypassDocumentValidation",
)


def _apply(pool: Pool, table: str, statement: dict[str, Any]) -> tuple[int, int]:
    """Run one update statement and return how many rows matched and changed."""
    where_sql = create_where_clause(statement["q"])
    # the second part keeps documents that already hold the new values out
    update_sql, not_where_sql = update(statement["u"])

    matched = int(pool.query_row(f"SELECT count(*) FROM {table}" + where_sql)[0])
    multi = statement.get("multi") is True

    if not multi:
        lookup = f'SELECT {{"_id": "_id"}} FROM {table}{where_sql}{not_where_sql} LIMIT 1'
        try:
            row = pool.query_row(lookup)
        except NoRowsError:
            return matched, 0
        target = decode_document(row[0]).get("_id")
        where_sql = 'WHERE "_id" = ' + get_update_value(target)
        not_where_sql = ""

    affected = pool.execute(f"UPDATE {table} {update_sql} {where_sql}{not_where_sql}")
    return matched, int(affected) if multi else 1


def msg_update(pool: Pool, document: dict[str, Any]) -> dict[str, Any]:
    """Apply each update statement and report matched and modified counts."""
    unimplemented(document, *_UNSUPPORTED)
    ignored(document, logging.getLogger(__name__), "ordered")

    db = document["$db"]
    collection = document["update"]
    statements = document.get("updates")
    if not isinstance(statements, list):
        raise ValueError("wrong use of update")

    if not pool.namespace_exists(db, collection):
        statements = []

    table = f'"{db}"."{collection}"'
    selected = updated = 0
    for statement in statements:
        matched, modified = _apply(pool, table, statement)
        selected += matched
        updated += modified

    return {"n": selected, "nModified": updated, "ok": 1.0}