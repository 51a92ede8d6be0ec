import re

import pytest

from docsql.objectid import ObjectID
from docsql.upsert import upsert


def test_update_with_upsert():
    update_doc = {"$set": {"name": "test", "type": "normal", "number": 123}}
    doc = upsert(update_doc, {"name": "test"}, False)
    assert isinstance(doc.pop("_id"), ObjectID)
    assert doc == {"name": "test", "type": "normal", "number": 123}


def test_replace_with_upsert():
    doc = upsert({"type": "normal", "number": 123}, {"name": "test"}, True)
    assert isinstance(doc.pop("_id"), ObjectID)
    assert doc == {"type": "normal", "number": 123}


def test_conflicting_values():
    update_doc = {"$set": {"name": "testing", "type": "normal", "number": 123}}
    expected = (
        "Key-value pair name:test from query document is not equal to same "
        "key-value pair name:testing in update document"
    )
    with pytest.raises(ValueError, match=re.escape(expected)):
        upsert(update_doc, {"name": "test"}, False)


def test_existing_id_kept():
    doc = upsert({"$set": {"a": 1}}, {"_id": 7}, False)
    assert doc == {"_id": 7, "a": 1}


def test_filter_operators_and_nested_skipped():
    filter_doc = {"$or": [], "sub": {"$gt": 1}, "a.b": 1, "plain": "x"}
    doc = upsert({"$unset": {"q": ""}}, filter_doc, False)
    doc.pop("_id")
    assert doc == {"plain": "x"}