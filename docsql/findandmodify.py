"""The findAndModify command."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from docsql.codec import decode_document, encode_document
from docsql.errors import ErrorCode, ProtocolError, ignored, unimplemented
from docsql.unique import NoRowsError, Pool, ensure_id_unique
from docsql.update import update as update_sql_parts
from docsql.upsert import upsert
from docsql.where import create_where_clause

Document = dict[str, Any]

_log = logging.getLogger(__name__)

_UNIMPLEMENTED = ("arrayFilter", "commented", "let", "maxTimeMS")
_IGNORED = ("fields", "bypassDocumentValidation", "writeConcern", "collation", "hint")
_SUPPORTED_UPDATE_OPERATORS = frozenset({"$set", "$unset"})

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass
class _Params:
    """The parsed arguments of a findAndModify request."""

    db: str
    collection: str
    filter_doc: Document
    update: Document | None = None
    sort: Document = field(default_factory=dict)
    replace: bool = False
    remove: bool = False
    new: bool = False
    upsert: bool = False
    upsert_doc: Document | None = None
    doc_id: Any = None

    @property
    def table(self) -> str:
        return f'"{self.db}"."{self.collection}"'


def _is_replacement(update_doc: Document) -> bool:
    """Tell whether an update document replaces the whole document."""
    for key in update_doc:
        if key.startswith("$"):
            if key.lower() not in _SUPPORTED_UPDATE_OPERATORS:
                raise ValueError(f"{key} is not supported in update document")
            return False
    return True


def _parse_params(document: Document) -> _Params:
    db = document.get("$db")
    if not isinstance(db, str):
        raise ValueError("key $db not found in document")

    command = next(iter(document), "")
    collection = document.get(command)
    if not isinstance(collection, str):
        raise ValueError(f"key {command} not found in document")

    filter_doc = document.get("query")
    if not isinstance(filter_doc, dict):
        raise ValueError('key "query" not found in document')

    params = _Params(db=db, collection=collection, filter_doc=filter_doc)

    if "update" in document:
        update_doc = document["update"]
        if not isinstance(update_doc, dict):
            raise ProtocolError(ErrorCode.BAD_VALUE, 'argument "update" must be an object')
        params.update = update_doc
        params.replace = _is_replacement(update_doc)

    if "remove" in document:
        remove = document["remove"]
        if not isinstance(remove, bool):
            raise ProtocolError(
                ErrorCode.BAD_VALUE, 'argument "remove" only supported as boolean'
            )
        params.remove = remove

    if params.update is not None and params.remove:
        raise ValueError('argument "update" cannot be specified when "remove" is true')

    if "sort" in document:
        sort = document["sort"]
        if not isinstance(sort, dict):
            raise ProtocolError(
                ErrorCode.BAD_VALUE,
                f"expected sort to be document but got {sort} as {type(sort).__name__}",
            )
        params.sort = sort

    params.new = document.get("new") is True
    params.upsert = document.get("upsert") is True

    fields = document.get("fields")
    if isinstance(fields, dict) and fields:
        raise ProtocolError(
            ErrorCode.NOT_IMPLEMENTED, 'argument "fields" is not implemented yet'
        )

    return params


def _sort_order(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer() and _INT32_MIN <= value <= _INT32_MAX:
        return int(value)
    raise ProtocolError(
        ErrorCode.SORT_BAD_VALUE, f"cannot use type {type(value).__name__} for sort"
    )


def _order_by(sort: Document) -> str:
    if not sort:
        return ""
    items = []
    for key, value in sort.items():
        if "." in key:
            column = " " + ".".join(f'"{part}"' for part in key.split("."))
        else:
            column = f'"{key}" '
        order = _sort_order(value)
        if order == 1:
            direction = " ASC"
        elif order == -1:
            direction = " DESC"
        else:
            raise ProtocolError(ErrorCode.SORT_BAD_VALUE, f"cannot use value {value} for sort")
        items.append(column + direction)
    return " ORDER BY " + ",".join(items)


def _by_id(params: _Params) -> str:
    return create_where_clause({"_id": params.doc_id})


def _find_document(pool: Pool, params: _Params) -> Document | None:
    if not pool.namespace_exists(params.db, params.collection):
        if params.upsert:
            pool.create_namespace_if_not_exists(params.db, params.collection)
        return None

    sql = (
        f"SELECT * FROM {params.table}"
        + create_where_clause(params.filter_doc)
        + _order_by(params.sort)
        + " LIMIT 1"
    )
    try:
        row = pool.query_row(sql)
    except NoRowsError:
        return None

    doc = decode_document(row[0])
    if "_id" not in doc:
        raise ValueError("found document has no _id")
    params.doc_id = doc["_id"]
    return doc


def _find_new_document(pool: Pool, params: _Params) -> Document:
    row = pool.query_row(f"SELECT * FROM {params.table}" + _by_id(params) + " LIMIT 1")
    return decode_document(row[0])


def _remove_document(pool: Pool, params: _Params) -> None:
    pool.execute(f"DELETE FROM {params.table}" + _by_id(params))


def _update_document(pool: Pool, params: _Params) -> None:
    assert params.update is not None
    set_sql, _ = update_sql_parts(params.update)
    pool.execute(f"UPDATE {params.table}" + set_sql + _by_id(params))


def _insert(pool: Pool, params: _Params, doc: Document) -> None:
    pool.execute(f"INSERT INTO {params.table} VALUES ($1)", encode_document(doc))


def _replace_document(pool: Pool, params: _Params) -> None:
    _remove_document(pool, params)

    replacement = dict(params.update or {})
    if "_id" in replacement:
        ensure_id_unique(replacement["_id"], params.db, params.collection, pool)
        params.doc_id = replacement["_id"]
    replacement["_id"] = params.doc_id
    _insert(pool, params, replacement)


def _upsert_document(pool: Pool, params: _Params) -> None:
    doc = params.upsert_doc
    if doc is None or "_id" not in doc:
        raise ValueError("upsert document contains no object id")
    ensure_id_unique(doc["_id"], params.db, params.collection, pool)
    if params.new:
        params.doc_id = doc["_id"]
    _insert(pool, params, doc)


def _modify_document(pool: Pool, params: _Params) -> None:
    if params.doc_id is None:
        params.upsert_doc = upsert(
            dict(params.update or {}), params.filter_doc, params.replace
        )
        _upsert_document(pool, params)
    elif params.remove:
        _remove_document(pool, params)
    elif params.replace:
        _replace_document(pool, params)
    elif params.update is not None:
        _update_document(pool, params)
    else:
        raise ProtocolError(ErrorCode.BAD_VALUE, "Usage of findAndModify seems incorrect")


def msg_find_and_modify(pool: Pool, document: Document) -> Document:
    """Find one document and update, replace or remove it, upserting when asked."""
    unimplemented(document, *_UNIMPLEMENTED)
    ignored(document, _log, *_IGNORED)

    params = _parse_params(document)
    doc = _find_document(pool, params)

    if doc is None and not params.upsert:
        if params.remove:
            return {"lastErrorObject": {"n": 0}, "ok": 1.0}
        return {
            "lastErrorObject": {"n": 0, "updatedExisting": False},
            "value": None,
            "ok": 1.0,
        }

    _modify_document(pool, params)

    if params.new and not params.remove:
        doc = _find_new_document(pool, params)

    if params.remove:
        return {"lastErrorObject": {"n": 1}, "value": doc, "ok": 1.0}
    if doc is None:
        return {
            "lastErrorObject": {"n": 0, "updatedExisting": False},
            "value": {} if params.sort else None,
            "ok": 1.0,
        }
    return {
        "lastErrorObject": {"n": 1, "updatedExisting": True},
        "value": doc,
        "ok": 1.0,
    }