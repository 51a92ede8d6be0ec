"""Building the document to insert when an update finds nothing to modify."""

from __future__ import annotations

from typing import Any

from docsql.objectid import generate_object_id

Document = dict[str, Any]


def _same(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


def _from_filter(filter_doc: Document) -> Document:
    return {
        key: value
        for key, value in filter_doc.items()
        if not key.startswith("$") and not isinstance(value, dict) and "." not in key
    }


def _apply_set(update_doc: Document, doc: Document) -> Document:
    set_doc = update_doc.get("$set")
    if not isinstance(set_doc, dict):
        return doc

    for key, value in set_doc.items():
        if key.startswith("$") or "." in key:
            continue
        if key in doc:
            if _same(value, doc[key]):
                continue
            raise ValueError(
                f"Key-value pair {key}:{doc[key]} from query document is not equal "
                f"to same key-value pair {key}:{value} in update document"
            )
        doc[key] = value

    return doc


def upsert(update_doc: Document, filter_doc: Document, replace: bool) -> Document:
    """Return the document to insert for an upsert.

    With replace the update document itself is used; otherwise plain fields of
    the filter are merged with the fields of ``$set``. An ``_id`` is generated
    when missing.
    """
    if replace:
        doc = update_doc
    else:
        doc = _apply_set(update_doc, _from_filter(filter_doc))

    if "_id" not in doc:
        doc["_id"] = generate_object_id()

    return doc