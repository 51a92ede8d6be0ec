"""The insert command."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from docsql.codec import encode_document
from docsql.errors import ErrorCode, ProtocolError, ignored, unimplemented
from docsql.unique import Pool, ensure_id_unique

_UNSUPPORTED = ("writeConcern", "bypassDocumentValidation", "comment")


def _documents(command: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield the documents of an insert command, checking their shape."""
    docs = command.get("documents", [])
    if not isinstance(docs, list):
        raise ProtocolError(ErrorCode.BAD_VALUE, "documents must be an array")
    for doc in docs:
        if not isinstance(doc, dict):
            raise ProtocolError(ErrorCode.BAD_VALUE, "each inserted value must be a document")
        yield doc


def msg_insert(pool: Pool, document: dict[str, Any]) -> dict[str, Any]:
    """Insert the given documents, creating the collection when needed."""
    unimplemented(document, *_UNSUPPORTED)
    ignored(document, logging.getLogger(__name__), "ordered")

    db = document["$db"]
    collection = document[next(iter(document))]
    pool.create_namespace_if_not_exists(db, collection)

    statement = f'INSERT INTO "{db}"."{collection}" VALUES ($1)'
    inserted = 0
    for doc in _documents(document):
        ensure_id_unique(doc.get("_id"), db, collection, pool)
        pool.execute(statement, encode_document(doc))
        inserted += 1

    return {"n": inserted, "ok": 1.0}