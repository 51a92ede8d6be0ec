"""Projection of query results: SQL for inclusion, in-memory removal for exclusion."""

from __future__ import annotations

import re
from typing import Any

from docsql.errors import ErrorCode, ProtocolError, unimplemented

Document = dict[str, Any]

_UNIMPLEMENTED = ("$", "$elemMatch", "$meta", "$slice", "$comment", "$rand")
_INDEX = re.compile(r"[+-]?[0-9]+")
_NESTED_MSG = "Projection on nested documents is not implemented, yet."


def _is_flag(value: Any) -> bool:
    return isinstance(value, (bool, int, float))


def _included(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return value != 0


def projection(projection: Document) -> tuple[str, bool]:
    """Return the SQL select list and whether the projection is an exclusion."""
    unimplemented(projection, *_UNIMPLEMENTED)

    if not projection:
        return "*", False

    if is_projection_inclusion(projection):
        return inclusion_projection(projection), False
    return "*", True


def is_projection_inclusion(projection: Document) -> bool:
    """Tell whether a projection includes fields; raise on mixed projections."""
    inclusion = False
    exclusion = False
    for key, value in projection.items():
        if key == "_id":
            if not _is_flag(value):
                raise ValueError(f"unsupported operation {key} {value!r} ({type(value).__name__})")
            # _id may be mixed freely with other fields
            if len(projection) != 1:
                continue

        if not _is_flag(value):
            raise ValueError("Only $set and $unset are supported for update operations")

        if _included(value):
            if exclusion:
                raise ProtocolError(
                    ErrorCode.PROJECTION_IN_EX,
                    f"Cannot do inclusion on field {key} in exclusion projection",
                )
            if "." in key:
                raise ValueError(_NESTED_MSG)
            inclusion = True
        else:
            if inclusion:
                raise ProtocolError(
                    ErrorCode.PROJECTION_EX_IN,
                    f"Cannot do exclusion on field {key} in inclusion projection",
                )
            exclusion = True

    return inclusion


def inclusion_projection(projection: Document) -> str:
    """Build the JSON projection used in the SELECT list for an inclusion."""
    id_part = '"_id": "_id"'
    if "_id" in projection:
        value = projection["_id"]
        include_id = _is_flag(value) and _included(value)
    else:
        include_id = True

    fields = [f'"{key}": "{key}"' for key in projection if key != "_id"]
    if include_id:
        if not fields and "_id" in projection:
            return "{" + id_part + "}"
        return "{" + id_part + ", " + ", ".join(fields) + "}"
    return "{" + ", ".join(fields) + "}"


def project_documents(docs: list[Any], projection: Document) -> None:
    """Apply an exclusion projection to every retrieved document in place."""
    for doc in docs:
        if not isinstance(doc, dict):
            raise ValueError("Array of retrieved documents contains a type not being types.Document")
        project_document(doc, projection)


def _parse_index(part: str) -> int | None:
    return int(part) if _INDEX.fullmatch(part) else None


def _remove_path(doc: Document, path: str) -> None:
    container: Any = None
    key: Any = None
    current: Any = doc
    for part in path.split("."):
        if isinstance(current, dict):
            if current.get(part) is None:
                return
            container, key = current, part
        elif isinstance(current, list):
            index = _parse_index(part)
            if index is None or not 0 <= index < len(current):
                return
            container, key = current, index
        else:
            return
        current = container[key]
    del container[key]


def project_document(doc: Document, projection: Document) -> None:
    """Remove the fields named by an exclusion projection from a document."""
    for field, value in projection.items():
        if "." in field:
            _remove_path(doc, field)
            continue
        if field == "_id" and _is_flag(value):
            if not _included(value):
                doc.pop(field, None)
            continue
        doc.pop(field, None)