"""JSON encoding of stored documents."""

from __future__ import annotations

import json
import re
from typing import Any

from docsql.objectid import ObjectID

Document = dict[str, Any]

_HEX_ID = re.compile(r"[0-9a-fA-F]{24}")


def _object_hook(obj: dict[str, Any]) -> Any:
    if len(obj) == 1:
        oid = obj.get("oid")
        if isinstance(oid, str) and _HEX_ID.fullmatch(oid):
            return ObjectID.from_hex(oid)
    return obj


def _default(value: Any) -> Any:
    if isinstance(value, ObjectID):
        return {"oid": value.hex}
    raise TypeError(f"{type(value).__name__} cannot be stored")


def decode_document(data: bytes | str) -> Document:
    """Decode a stored JSON document, turning {"oid": ...} into ObjectIDs."""
    value = json.loads(data, object_hook=_object_hook)
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {type(value).__name__}")
    return value


def encode_value(value: Any) -> bytes:
    """Encode a value as compact JSON in the stored form."""
    text = json.dumps(
        value,
        default=_default,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def encode_document(doc: Document) -> bytes:
    """Encode a document as compact JSON in the stored form."""
    if not isinstance(doc, dict):
        raise TypeError(f"expected a document, got {type(doc).__name__}")
    return encode_value(doc)