"""The find and count commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from docsql.codec import decode_document
from docsql.errors import ErrorCode, ProtocolError, ignored, unimplemented
from docsql.projection import project_documents, projection
from docsql.unique import Pool
from docsql.where import create_where_clause

Document = dict[str, Any]

_log = logging.getLogger(__name__)

_UNIMPLEMENTED = (
    "skip",
    "returnKey",
    "showRecordId",
    "tailable",
    "oplogReplay",
    "noCursorTimeout",
    "awaitData",
    "allowPartialResults",
    "collation",
    "let",
    "hint",
    "maxTimeMS",
    "readConcern",
    "max",
    "min",
    "comment",
)

_IGNORED = ("singleBatch", "allowDiskUse", "batchSize")

_SHARDING_STATUS_COLLECTIONS = ("shards", "mongos", "version")

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass
class _Request:
    """What a find or count request is about."""

    db: str
    collection: str
    count: bool
    filter_doc: Document = field(default_factory=dict)
    exclusion: bool = False


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "document"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_print_sharding_status(document: Document) -> bool:
    return (
        document.get("$db") == "config"
        and document.get("find") in _SHARDING_STATUS_COLLECTIONS
    )


def _parse_request(document: Document) -> _Request:
    db = document.get("$db")
    if not isinstance(db, str):
        raise ValueError("database not found or wrong type")

    collection = document.get("find")
    if isinstance(collection, str):
        return _Request(db=db, collection=collection, count=False)

    collection = document.get("count")
    if not isinstance(collection, str):
        raise ValueError("Collection not given or wrong type")
    return _Request(db=db, collection=collection, count=True)


def _empty_response(request: _Request) -> Document:
    if request.count:
        return {"n": 0, "ok": 1.0}
    return _cursor_response(request, [])


def _cursor_response(request: _Request, batch: Any) -> Document:
    return {
        "cursor": {
            "firstBatch": batch,
            "id": 0,
            "ns": f"{request.db}.{request.collection}",
        },
        "ok": 1.0,
    }


def _as_document(value: Any) -> Document:
    return value if isinstance(value, dict) else {}


def _base_statement(document: Document, request: _Request) -> str:
    table = f'"{request.db}"."{request.collection}"'
    if not request.count:
        select_list, request.exclusion = projection(_as_document(document.get("projection")))
        request.filter_doc = _as_document(document.get("filter"))
        return f"SELECT {select_list} FROM {table}"

    request.filter_doc = _as_document(document.get("query"))
    return f"SELECT COUNT(*) FROM {table}"


def _sort_order(value: Any) -> int:
    if _is_int(value):
        return value
    if (
        isinstance(value, float)
        and value.is_integer()
        and _INT32_MIN <= value <= _INT32_MAX
    ):
        return int(value)
    raise ProtocolError(
        ErrorCode.SORT_BAD_VALUE, f"cannot use type {_type_name(value)} for sort"
    )


def _sort_key(key: str) -> str:
    if "." in key:
        return " " + ".".join(f'"{part}"' for part in key.split("."))
    return f'"{key}" '


def _order_by(document: Document) -> str:
    sort = _as_document(document.get("sort"))
    if not sort:
        return ""

    items = []
    for key, value in sort.items():
        order = _sort_order(value)
        if order == 1:
            direction = " ASC"
        elif order == -1:
            direction = " DESC"
        else:
            raise ProtocolError(ErrorCode.SORT_BAD_VALUE, f"cannot use value {value} for sort")
        items.append(_sort_key(key) + direction)
    return " ORDER BY " + ",".join(items)


def _limit(document: Document) -> str:
    limit = document.get("limit")
    if not _is_int(limit) or limit == 0:
        return ""
    if limit > 0:
        return f" LIMIT {limit} "
    raise ProtocolError(
        ErrorCode.NOT_IMPLEMENTED, "MsgFind: negative limit values are not supported"
    )


def _statement(document: Document, request: _Request) -> str:
    return (
        _base_statement(document, request)
        + create_where_clause(request.filter_doc)
        + _order_by(document)
        + _limit(document)
    )


def _system_response(document: Document, request: _Request) -> Document | None:
    """Answer the system collections some clients read on connect."""
    if not isinstance(document.get("find"), str):
        return None
    if request.collection == "system.js":
        return _cursor_response(request, {})
    if request.collection == "system.version":
        return _cursor_response(
            request, {"_id": "featureCompatibilityVersion", "version": "5.0"}
        )
    return None


def _count(rows: Iterable[tuple[Any, ...]]) -> int:
    count = 0
    for row in rows:
        count = int(row[0])
    return count


def msg_find_or_count(pool: Pool, document: Document) -> Document:
    """Find documents in a collection, or count those matching a query."""
    unimplemented(document, *_UNIMPLEMENTED)
    ignored(document, _log, *_IGNORED)

    if _is_print_sharding_status(document):
        raise ProtocolError(
            ErrorCode.COMMAND_NOT_FOUND, "no such command: printShardingStatus"
        )

    request = _parse_request(document)

    if not pool.namespace_exists(request.db, request.collection):
        return _empty_response(request)

    sql = _statement(document, request)

    special = _system_response(document, request)
    if special is not None:
        return special

    rows = pool.query(sql)

    if request.count:
        return {"n": _count(rows), "ok": 1.0}

    docs = [decode_document(row[0]) for row in rows]
    if request.exclusion:
        project_documents(docs, document["projection"])
    return _cursor_response(request, docs)