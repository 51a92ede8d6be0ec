"""Translation of update documents ($set and $unset) into SQL."""

from __future__ import annotations

import re
from typing import Any

from docsql.errors import ErrorCode, ProtocolError, unimplemented
from docsql.objectid import ObjectID
from docsql.where import create_where_clause, prepare_array_for_sql, where_value

Document = dict[str, Any]

_UNIMPLEMENTED = (
    "$currentDate",
    "$inc",
    "$min",
    "$max",
    "$mul",
    "$rename",
    "$setOnInsert",
    "$",
    "$[]",
    "$[<identifier>]",
    "$addToSet",
    "$pop",
    "$pull",
    "$push",
    "$pullAll",
    "$each",
    "$position",
    "$slice",
    "$sort",
    "$bit",
    "$addFields",
    "$project",
    "$replaceRoot",
    "$replaceWith",
)

_INDEX = re.compile(r"[+-]?[0-9]+")
_ARRAY_IN_FILTER = "value array not supported in filter"
_IMMUTABLE_ID = "performing an update on the path '_id' would modify the immutable field '_id'"
_SCALARS = (str, bool, int, float, ObjectID)


def update(update_doc: Document) -> tuple[str, str]:
    """Return the SET/UNSET part of an UPDATE and the extra condition it needs.

    The extra condition keeps documents that already hold the new values out of
    the update.
    """
    unimplemented(update_doc, *_UNIMPLEMENTED)

    set_doc = update_doc.get("$set")
    set_sql = is_unset_sql = ""
    if isinstance(set_doc, dict):
        set_sql, is_unset_sql = _assignments(set_doc, True)

    unset_doc = update_doc.get("$unset")
    unset_sql = is_set_sql = ""
    if isinstance(unset_doc, dict):
        unset_sql, is_set_sql = _assignments(unset_doc, False)

    if is_unset_sql and is_set_sql:
        unchanged = _unchanged_condition(set_doc)
        return (
            set_sql + ", " + unset_sql,
            f" AND ( NOT ( {unchanged}) OR ({is_unset_sql} ) OR ( {is_set_sql} ))",
        )
    if is_unset_sql:
        unchanged = _unchanged_condition(set_doc)
        return set_sql, f" AND ( NOT ( {unchanged}) OR ({is_unset_sql} )) "
    if is_set_sql:
        return unset_sql, f" AND ( {is_set_sql} )"
    raise ProtocolError(ErrorCode.COMMAND_NOT_FOUND, "no such command: replaceOne")


def _unchanged_condition(set_doc: Document) -> str:
    try:
        where_sql = create_where_clause(set_doc)
    except ProtocolError as exc:
        if _ARRAY_IN_FILTER in exc.message:
            raise ProtocolError(
                ErrorCode.NOT_IMPLEMENTED, "cannot update a field with array"
            ) from exc
        raise
    return where_sql.replace("WHERE", "", 1)


def _assignments(doc: Document, is_set: bool) -> tuple[str, str]:
    """Return the SET or UNSET list and the condition telling whether it applies."""
    targets = []
    conditions = []
    for key, value in doc.items():
        if key.lower() == "_id":
            raise ValueError(_IMMUTABLE_ID)
        update_key = _update_key(key)
        if is_set:
            targets.append(f"{update_key} = {get_update_value(value)}")
            conditions.append(f"{update_key} IS UNSET")
        else:
            targets.append(update_key)
            conditions.append(f"{update_key} IS SET")

    prefix = " SET " if is_set else " UNSET "
    return prefix + ", ".join(targets), " OR ".join(conditions)


def _update_key(key: str) -> str:
    if "." not in key:
        return f'"{key}"'

    out = []
    after_index = False
    for position, part in enumerate(key.split(".")):
        if _INDEX.fullmatch(part):
            if after_index:
                raise ProtocolError(
                    ErrorCode.NOT_IMPLEMENTED,
                    "not yet supporting indexing on an array inside of an array",
                )
            out.append(f"[{int(part) + 1}]")
            after_index = True
            continue
        if position != 0:
            out.append(".")
        out.append(f'"{part}"')
        after_index = False
    return "".join(out)


def get_update_value(value: Any) -> str:
    """Return the SQL form of a value assigned by an update."""
    if value is None or isinstance(value, _SCALARS):
        return where_value(value)[0]
    if isinstance(value, list):
        return prepare_array_for_sql(value)
    if isinstance(value, dict):
        return _update_document(value)
    raise ValueError(f"Value: {type(value).__name__} is not supported for update")


def _update_document(doc: Document) -> str:
    parts = []
    for key, value in doc.items():
        if value is None:
            sql = " NULL "
        elif isinstance(value, _SCALARS):
            sql = where_value(value)[0]
        elif isinstance(value, list):
            sql = prepare_array_for_sql(value)
        elif isinstance(value, dict):
            sql = _update_document(value)
        else:
            raise ProtocolError(
                ErrorCode.BAD_VALUE,
                f"{type(value).__name__} is not supported within an object for filtering",
            )
        parts.append(f'"{key}": {sql}')
    return "{" + ", ".join(parts) + "}"