"""Translation of query filters into SQL WHERE clauses."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from docsql.errors import ErrorCode, ProtocolError
from docsql.objectid import ObjectID

Document = dict[str, Any]

_INDEX = re.compile(r"[+-]?[0-9]+")

_LOGIC_OPERATORS = {
    "$and": " AND ",
    "$or": " OR ",
    "$nor": " AND NOT (",
}

_FIELD_OPERATORS = {
    "$gt": " > ",
    "$gte": " >= ",
    "$lt": " < ",
    "$lte": " <= ",
    "$eq": " = ",
    "$ne": " <> ",
    "$exists": " IS ",
    "$size": "CARDINALITY",
    "$all": "all",
    "$elemmatch": "elemMatch",
    "$not": " NOT ",
    "$regex": " LIKE ",
}


@dataclass(frozen=True)
class Regex:
    """A regular expression value with its option letters."""

    pattern: str
    options: str = ""


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


def _bool_sql(value: bool) -> str:
    return f"to_json_boolean({'true' if value else 'false'})"


def _object_id_sql(oid: ObjectID) -> str:
    text = oid.to_json().replace('"', "'")
    return text.replace("'", '"', 2)


def _parse_index(part: str) -> int | None:
    return int(part) if _INDEX.fullmatch(part) else None


def create_where_clause(filter_doc: Document) -> str:
    """Build the WHERE clause for a filter document; empty filters give ''."""
    parts = []
    for position, (key, value) in enumerate(filter_doc.items()):
        parts.append(" WHERE " if position == 0 else " AND ")
        parts.append(_where_pair(key, value, False))
    return "".join(parts)


def _where_pair(key: str, value: Any, nor: bool) -> str:
    if key.startswith("$"):
        return _logic_expression(key, value, nor)

    if isinstance(value, dict) and value and next(iter(value)).startswith("$"):
        return _field_expression(key, value, nor)

    value_sql, sign = where_value(value)
    key_sql = where_key(key)
    pair = key_sql + sign + value_sql
    if nor:
        pair = f"({pair} AND {key_sql} IS SET)"
    return pair


def where_key(key: str) -> str:
    """Turn a dotted field path into its SQL form; numeric parts become indexes."""
    if "." not in key:
        return f'"{key}"'

    out = []
    after_index = False
    for position, part in enumerate(key.split(".")):
        index = _parse_index(part)
        if index is not None:
            if after_index:
                raise ProtocolError(
                    ErrorCode.NOT_IMPLEMENTED,
                    "not yet supporting indexing on an array inside of an array",
                )
            if index < 0:
                raise ValueError("negative array index is not allowed")
            out.append(f"[{index + 1}]")
            after_index = True
            continue
        if position != 0:
            out.append(".")
        out.append(f'"{part}"')
        after_index = False
    return "".join(out)


def where_value(value: Any) -> tuple[str, str]:
    """Return the SQL form of a filter value and the comparison sign to use."""
    if value is None:
        return "NULL", " IS "
    if isinstance(value, Regex):
        return regex(value), " LIKE "
    if isinstance(value, bool):
        sql = _bool_sql(value)
    elif isinstance(value, int):
        sql = str(value)
    elif isinstance(value, float):
        sql = f"{value:f}"
    elif isinstance(value, str):
        sql = f"'{value}'"
    elif isinstance(value, ObjectID):
        sql = _object_id_sql(value)
    elif isinstance(value, dict):
        sql = where_document(value)
    else:
        raise ProtocolError(
            ErrorCode.BAD_VALUE, f"value {_type_name(value)} not supported in filter"
        )
    return sql, " = "


def where_document(doc: Document) -> str:
    """Return the SQL object literal for a document used as a filter value."""
    parts = []
    for key, value in doc.items():
        if value is None:
            sql = " NULL "
        elif isinstance(value, bool):
            sql = _bool_sql(value)
        elif isinstance(value, int):
            sql = str(value)
        elif isinstance(value, float):
            sql = f"{value:f}"
        elif isinstance(value, str):
            sql = f"'{value}'"
        elif isinstance(value, ObjectID):
            sql = _object_id_sql(value)
        elif isinstance(value, list):
            sql = prepare_array_for_sql(value)
        elif isinstance(value, dict):
            sql = where_document(value)
        else:
            raise ProtocolError(
                ErrorCode.BAD_VALUE,
                "the document used in filter contains a datatype not yet supported: "
                + _type_name(value),
            )
        parts.append(f'"{key}": {sql}')
    return "{" + ", ".join(parts) + "}"


def prepare_array_for_sql(array: list[Any]) -> str:
    """Return the SQL array literal for an array value."""
    parts = []
    for value in array:
        if value is None or isinstance(value, (str, bool, int, float, ObjectID)):
            parts.append(where_value(value)[0])
        elif isinstance(value, list):
            parts.append(prepare_array_for_sql(value))
        elif isinstance(value, dict):
            parts.append(where_document(value))
        else:
            raise ProtocolError(
                ErrorCode.BAD_VALUE,
                "The array used in filter contains a datatype not yet supported: "
                + _type_name(value),
            )
    return "[" + ", ".join(parts) + "]"


def logic_expression(key: str, value: Any) -> str:
    """Translate $and, $or and $nor into SQL."""
    return _logic_expression(key, value, False)


def _logic_expression(key: str, value: Any, nor: bool) -> str:
    lower_key = key.lower()
    joiner = _LOGIC_OPERATORS.get(lower_key)
    if joiner is None:
        if lower_key == "$not":
            raise ValueError(
                f"unknown top level: {key}. If you are trying to negate an entire "
                "expression, use $nor"
            )
        raise ProtocolError(
            ErrorCode.NOT_IMPLEMENTED, f"support for {key} is not implemented yet"
        )

    local_nor = lower_key == "$nor"
    nor = nor or local_nor

    if not isinstance(value, list):
        raise ProtocolError(ErrorCode.BAD_VALUE, f"{lower_key} must be an array")
    if len(value) < 2 and not nor:
        raise ValueError("need minimum two expressions")

    parts = ["("]
    for position, expr in enumerate(value):
        if not isinstance(expr, dict):
            raise ValueError(
                "Found in array of logicExpression no document but instead the datatype: "
                + _type_name(expr)
            )
        if position == 0 and local_nor:
            parts.append(" NOT (")
        if position != 0:
            parts.append(joiner)
        parts.append(" AND ".join(_where_pair(k, v, nor) for k, v in expr.items()))
        if local_nor:
            parts.append(")")
    parts.append(")")
    return "".join(parts)


def field_expression(key: str, value: Any) -> str:
    """Translate {field: {$operator: value}} into SQL."""
    return _field_expression(key, value, False)


def _field_expression(key: str, value: Any, nor: bool) -> str:
    key_sql = where_key(key)

    if not isinstance(value, dict):
        raise ProtocolError(
            ErrorCode.BAD_VALUE,
            "In use of field expression a document was expected. Got instead: "
            + _type_name(value),
        )

    def wrap(clause: str) -> str:
        return f"({clause} AND {key_sql} IS SET)" if nor else clause

    clauses = []
    for operator, operand in value.items():
        lower = operator.lower()
        sql_operator = _FIELD_OPERATORS.get(lower)
        if sql_operator is None:
            raise ProtocolError(
                ErrorCode.NOT_IMPLEMENTED, f"support for {operator} is not implemented yet"
            )

        if lower == "$exists":
            if not isinstance(operand, bool):
                raise ValueError("$exists only works with boolean")
            clauses.append(wrap(key_sql + " IS " + ("SET" if operand else "UNSET")))
        elif lower == "$size":
            value_sql, sign = where_value(operand)
            clauses.append(wrap(f"{sql_operator}({key_sql}){sign}{value_sql}"))
        elif lower in ("$all", "$elemmatch"):
            clauses.append(_filter_array(key_sql, sql_operator, operand, nor))
        elif lower == "$not":
            try:
                inner = _field_expression(key, operand, nor)
            except (ProtocolError, ValueError) as exc:
                raise ProtocolError(ErrorCode.BAD_VALUE, "wrong use of $not") from exc
            clauses.append(f"({sql_operator}{inner} OR {key_sql} IS UNSET) ")
        elif lower == "$ne":
            value_sql, sign = where_value(operand)
            op = " IS NOT " if sign == " IS " else sql_operator
            clauses.append(wrap(f"({key_sql}{op}{value_sql} OR {key_sql} IS UNSET)"))
        elif lower == "$regex":
            clauses.append(wrap(key_sql + sql_operator + regex(operand)))
        else:
            value_sql, sign = where_value(operand)
            op = sign if sign == " IS " else sql_operator
            clauses.append(wrap(key_sql + op + value_sql))

    return " AND ".join(clauses)


def filter_array(field: str, array_operator: str, filters: Any) -> str:
    """Translate $all and $elemMatch into FOR ANY expressions."""
    return _filter_array(field, array_operator, filters, False)


def _strip_is_set(sql: str) -> str:
    if " IS SET" in sql:
        return sql.split(" AND ")[0].replace("(", "", 1)
    return sql


def _filter_array(field: str, array_operator: str, filters: Any, nor: bool) -> str:
    operator = array_operator.lower()

    if isinstance(filters, dict):
        if operator == "all":
            raise ProtocolError(ErrorCode.BAD_VALUE, "$all needs an array")
        conditions = []
        for name, value in filters.items():
            if "$" in name:
                sql = _where_pair("element", {name: value}, nor)
                if name.lower() == "$not":
                    sql = sql.split("OR")[0].replace("(", "", 1)
            else:
                sql = _where_pair("element." + name, value, nor)
                if isinstance(value, dict) and "$not" in value:
                    at = sql.rfind("UNSET")
                    if at != -1:
                        sql = sql[:at] + "NULL" + sql[at + len("UNSET"):]
            conditions.append(_strip_is_set(sql))
        head = f'FOR ANY "element" IN {field} SATISFIES ' if conditions else ""
        return head + " AND ".join(conditions) + " END "

    if isinstance(filters, list):
        if operator == "elemmatch":
            raise ProtocolError(ErrorCode.BAD_VALUE, "$elemMatch needs an object")
        return " AND ".join(
            f'FOR ANY "element" IN {field} SATISFIES "element" = {where_value(v)[0]} END '
            for v in filters
        )

    raise ProtocolError(
        ErrorCode.BAD_VALUE,
        "If $all: Expected array. If $elemMatch: Expected document. Got instead: "
        + _type_name(filters),
    )


def regex(value: Any) -> str:
    """Translate a regular expression into a SQL LIKE pattern."""
    if isinstance(value, Regex):
        if value.options:
            raise ProtocolError(
                ErrorCode.NOT_IMPLEMENTED,
                "The use of $options with regular expressions is not supported",
            )
        value = value.pattern

    if not isinstance(value, str):
        raise ProtocolError(
            ErrorCode.BAD_VALUE,
            "Expected either a JavaScript regular expression objects (i.e. /pattern/) "
            "or string containing a pattern. Got instead type " + _type_name(value),
        )

    if "(?i)" in value or "(?-i)" in value:
        raise ProtocolError(
            ErrorCode.NOT_IMPLEMENTED,
            "The use of (?i) and (?-i) with regular expressions is not supported",
        )

    out: list[str] = []
    escape = False
    dot = False
    last = len(value) - 1
    for i, s in enumerate(value):
        if i == 0:
            if s == "^":
                continue
            if s == ".":
                dot = True
                continue
            if s in "%_":
                out.append("%^" + s)
                escape = True
                continue
            out.append("%" + s)
            continue

        if dot and s != "*" and i == 1:
            out.append("%_")
            if s == ".":
                continue
            dot = False

        if i == last:
            if dot and s != "*":
                out.append("_")
                if s == ".":
                    out.append("_%")
                    continue
                dot = False
            if s == "$":
                continue
            if s == "*" and dot:
                out.append("%%")
                continue
            if s == ".":
                out.append("_%")
                continue
            if s in "%_":
                out.append("^" + s + "%")
                escape = True
                continue
            out.append(s + "%")
            continue

        if dot and s != "*":
            out.append("_")
            if s == ".":
                continue
            dot = False

        if s == ".":
            dot = True
        elif s == "*" and dot:
            out.append("%")
            dot = False
        elif s in "%_":
            out.append("^" + s)
            escape = True
        else:
            out.append(s)

    sql = "'" + "".join(out) + "'"
    if escape:
        sql += " ESCAPE '^' "
    return sql