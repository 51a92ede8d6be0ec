import pytest

from docsql.errors import ErrorCode, ProtocolError
from docsql.objectid import ObjectID
from docsql.where import (
    Regex,
    create_where_clause,
    field_expression,
    filter_array,
    logic_expression,
    prepare_array_for_sql,
    regex,
    where_document,
    where_key,
    where_value,
)

OID = ObjectID(bytes([98, 226, 189, 84, 81, 6, 131, 249, 192, 187, 13, 107]))
OID_SQL = "{\"oid\":'62e2bd54510683f9c0bb0d6b'}"


def test_where_equal():
    filter_doc = {
        "equal_string": "string",
        "equal_int32": 1,
        "equal_int64": 123123123123,
        "equal_bool": True,
        "equal_eq": {"$eq": "equal"},
        "equal_document": {"field": 123},
        "equal_float64": 123.123,
        "equal_objId": OID,
    }
    expected = (
        " WHERE \"equal_string\" = 'string' AND \"equal_int32\" = 1 AND "
        "\"equal_int64\" = 123123123123 AND \"equal_bool\" = to_json_boolean(true) AND "
        "\"equal_eq\" = 'equal' AND \"equal_document\" = {\"field\": 123} AND "
        "\"equal_float64\" = 123.123000 AND \"equal_objId\" = " + OID_SQL
    )
    assert create_where_clause(filter_doc) == expected


def test_where_comparison():
    filter_doc = {"greaterThan_int32": {"$gt": 12}, "lessThan_int64": {"$lt": 123123}}
    assert (
        create_where_clause(filter_doc)
        == ' WHERE "greaterThan_int32" > 12 AND "lessThan_int64" < 123123'
    )


def test_where_logic_expression():
    filter_doc = {"$or": [{"field": "new"}, {"field2": True}]}
    assert (
        create_where_clause(filter_doc)
        == " WHERE (\"field\" = 'new' OR \"field2\" = to_json_boolean(true))"
    )


def test_where_empty_filter():
    assert create_where_clause({}) == ""


def test_where_double_array_index_error():
    with pytest.raises(ProtocolError) as info:
        create_where_clause({"array.1.2": 1})
    assert info.value.code == ErrorCode.NOT_IMPLEMENTED
    assert "not yet supporting indexing on an array inside of an array" in str(info.value)


def test_where_array_value_error():
    with pytest.raises(ProtocolError) as info:
        create_where_clause({"array.1": [32]})
    assert info.value.code == ErrorCode.BAD_VALUE
    assert "not supported in filter" in str(info.value)


@pytest.mark.parametrize(
    "key, expected",
    [
        ("oneField", '"oneField"'),
        ("oneField.twoField.threeField", '"oneField"."twoField"."threeField"'),
        ("array.0", '"array"[1]'),
        ("oneField.array.0.twoField", '"oneField"."array"[1]."twoField"'),
    ],
)
def test_where_key(key, expected):
    assert where_key(key) == expected


def test_where_key_negative_index():
    with pytest.raises(ValueError, match="negative array index is not allowed"):
        where_key("array.-1")


def test_where_key_double_index():
    with pytest.raises(ProtocolError) as info:
        where_key("array.0.1")
    assert str(info.value) == (
        "NotImplemented (238): not yet supporting indexing on an array inside of an array"
    )


@pytest.mark.parametrize(
    "value, sql, sign",
    [
        ("string", "'string'", " = "),
        (123, "123", " = "),
        (123.123, "123.123000", " = "),
        (True, "to_json_boolean(true)", " = "),
        (None, "NULL", " IS "),
        (Regex("pattern"), "'%pattern%'", " LIKE "),
        (Regex("^pattern$"), "'pattern'", " LIKE "),
        (Regex("^pa_tt_ern$"), "'pa^_tt^_ern' ESCAPE '^' ", " LIKE "),
        (Regex("^pa_t.t_er.*n$"), "'pa^_t_t^_er%n' ESCAPE '^' ", " LIKE "),
        (Regex("...pa_t.t_er.*n$"), "'%___pa^_t_t^_er%n' ESCAPE '^' ", " LIKE "),
        (Regex("pa_t.t_er.*n..."), "'%pa^_t_t^_er%n___%' ESCAPE '^' ", " LIKE "),
        (Regex("pa_t...t_er.*n"), "'%pa^_t___t^_er%n%' ESCAPE '^' ", " LIKE "),
        (Regex("_pa_t...t_er.*n%"), "'%^_pa^_t___t^_er%n^%%' ESCAPE '^' ", " LIKE "),
        (OID, OID_SQL, " = "),
        (
            {
                "bool": True,
                "int32": 0,
                "int64": 223372036854775807,
                "objectID": OID,
                "string": "foo",
                "null": None,
            },
            "{\"bool\": to_json_boolean(true), \"int32\": 0, \"int64\": 223372036854775807, "
            "\"objectID\": " + OID_SQL + ", \"string\": 'foo', \"null\":  NULL }",
            " = ",
        ),
    ],
)
def test_where_value(value, sql, sign):
    assert where_value(value) == (sql, sign)


@pytest.mark.parametrize(
    "value, message",
    [
        (Regex("_pa_t...t_er.*n%", "m"), "The use of $options with regular expressions is not supported"),
        (Regex("patt(?i)ern"), "The use of (?i) and (?-i) with regular expressions is not supported"),
        (Regex("pat(?-i)tern"), "The use of (?i) and (?-i) with regular expressions is not supported"),
    ],
)
def test_where_value_regex_errors(value, message):
    with pytest.raises(ProtocolError) as info:
        where_value(value)
    assert info.value.code == ErrorCode.NOT_IMPLEMENTED
    assert message in str(info.value)


def test_where_value_type_error():
    with pytest.raises(ProtocolError) as info:
        where_value(b"hello")
    assert str(info.value) == "BadValue (2): value bytes not supported in filter"


def test_where_document_all_types():
    doc = {
        "int32": 0,
        "int64": 9090123123,
        "float64": 898.341123,
        "string": "normal string",
        "bool": True,
        "nil": None,
        "objID": OID,
        "array": [543, "string"],
        "document": {"field": "name", "bool": True},
    }
    expected = (
        "{\"int32\": 0, \"int64\": 9090123123, \"float64\": 898.341123, "
        "\"string\": 'normal string', \"bool\": to_json_boolean(true), \"nil\":  NULL , "
        "\"objID\": " + OID_SQL + ", \"array\": [543, 'string'], "
        "\"document\": {\"field\": 'name', \"bool\": to_json_boolean(true)}}"
    )
    assert where_document(doc) == expected


def test_where_document_unsupported_type():
    with pytest.raises(ProtocolError) as info:
        where_document({"binary": b"hello"})
    assert "the document used in filter contains a datatype not yet supported" in str(info.value)


def test_prepare_array_all_types():
    array = [12, 123123, "string", 321.321, OID, None, {"field": 123}, False, [123, "new_array"]]
    expected = (
        "[12, 123123, 'string', 321.321000, " + OID_SQL
        + ", NULL, {\"field\": 123}, to_json_boolean(false), [123, 'new_array']]"
    )
    assert prepare_array_for_sql(array) == expected


def test_prepare_array_unsupported_type():
    with pytest.raises(ProtocolError) as info:
        prepare_array_for_sql([b"hello"])
    assert "The array used in filter contains a datatype not yet supported" in str(info.value)


@pytest.mark.parametrize(
    "key, value, expected",
    [
        ("$and", [{"field1": 123}, {"field2": "string"}], "(\"field1\" = 123 AND \"field2\" = 'string')"),
        ("$or", [{"field1": 123}, {"field2": "string"}], "(\"field1\" = 123 OR \"field2\" = 'string')"),
        (
            "$nor",
            [{"field1": 123}, {"field2": "string"}],
            "( NOT ((\"field1\" = 123 AND \"field1\" IS SET)) AND NOT "
            "((\"field2\" = 'string' AND \"field2\" IS SET)))",
        ),
        (
            "$nor",
            [{"array_field": {"$elemMatch": {"field": {"new": "doc"}}}}],
            "( NOT (FOR ANY \"element\" IN \"array_field\" SATISFIES "
            "\"element\".\"field\" = {\"new\": 'doc'} END ))",
        ),
    ],
)
def test_logic_expression(key, value, expected):
    assert logic_expression(key, value) == expected


def test_nor_does_not_leak_into_later_calls():
    logic_expression("$nor", [{"a": 1}])
    assert create_where_clause({"a": 1}) == ' WHERE "a" = 1'


def test_logic_expression_not_implemented():
    with pytest.raises(ProtocolError) as info:
        logic_expression("$text", "Long text")
    assert info.value.code == ErrorCode.NOT_IMPLEMENTED
    assert "support for $text is not implemented yet" in str(info.value)


def test_logic_expression_not_at_top_level():
    with pytest.raises(ValueError) as info:
        logic_expression("$not", {"field": "string"})
    assert str(info.value) == (
        "unknown top level: $not. If you are trying to negate an entire expression, use $nor"
    )


def test_logic_expression_needs_two_expressions():
    with pytest.raises(ValueError, match="need minimum two expressions"):
        logic_expression("$and", [{"field1": 123}])


def test_logic_expression_wrong_element_type():
    with pytest.raises(ValueError) as info:
        logic_expression("$or", ["should have been document", "this one too"])
    assert "Found in array of logicExpression no document but instead the datatype:" in str(info.value)


def test_logic_expression_not_an_array():
    with pytest.raises(ProtocolError) as info:
        logic_expression("$or", "should have been array")
    assert str(info.value) == "BadValue (2): $or must be an array"


@pytest.mark.parametrize(
    "value, expected",
    [
        ({"$gt": 9}, '"field" > 9'),
        ({"$lt": 9}, '"field" < 9'),
        ({"$gte": 9}, '"field" >= 9'),
        ({"$lte": 9}, '"field" <= 9'),
        ({"$eq": 9}, '"field" = 9'),
        ({"$ne": 9}, '("field" <> 9 OR "field" IS UNSET)'),
        ({"$ne": None}, '("field" IS NOT NULL OR "field" IS UNSET)'),
        ({"$exists": True}, '"field" IS SET'),
        ({"$exists": False}, '"field" IS UNSET'),
        ({"$size": 9}, 'CARDINALITY("field") = 9'),
        (
            {"$all": [9, "string"]},
            'FOR ANY "element" IN "field" SATISFIES "element" = 9 END  AND '
            "FOR ANY \"element\" IN \"field\" SATISFIES \"element\" = 'string' END ",
        ),
        ({"$elemMatch": {"$gt": 9}}, 'FOR ANY "element" IN "field" SATISFIES "element" > 9 END '),
        ({"$not": {"$gt": 9}}, '( NOT "field" > 9 OR "field" IS UNSET) '),
        ({"$regex": "pattern"}, "\"field\" LIKE '%pattern%'"),
    ],
)
def test_field_expression(value, expected):
    assert field_expression("field", value) == expected


def test_field_expression_requires_document():
    with pytest.raises(ProtocolError) as info:
        field_expression("field", "should have been a document")
    assert "In use of field expression a document was expected. Got instead: string" in str(info.value)


def test_field_expression_exists_requires_bool():
    with pytest.raises(ValueError, match="only works with boolean"):
        field_expression("field", {"$exists": 1})


def test_field_expression_unsupported_operator():
    with pytest.raises(ProtocolError) as info:
        field_expression("field", {"$geoWithin": "not supported"})
    assert "support for $geoWithin is not implemented yet" in str(info.value)


def test_field_expression_wrong_not():
    with pytest.raises(ProtocolError) as info:
        field_expression("field", {"$not": 5})
    assert str(info.value) == "BadValue (2): wrong use of $not"


@pytest.mark.parametrize(
    "operator, filters, expected",
    [
        (
            "elemMatch",
            {"$gte": 9},
            'FOR ANY "element" IN "nested"."field" SATISFIES "element" >= 9 END ',
        ),
        (
            "elemMatch",
            {"field": 14.241234},
            'FOR ANY "element" IN "nested"."field" SATISFIES "element"."field" = 14.241234 END ',
        ),
        (
            "all",
            ["field", 14.241234],
            "FOR ANY \"element\" IN \"nested\".\"field\" SATISFIES \"element\" = 'field' END  AND "
            'FOR ANY "element" IN "nested"."field" SATISFIES "element" = 14.241234 END ',
        ),
    ],
)
def test_filter_array(operator, filters, expected):
    assert filter_array('"nested"."field"', operator, filters) == expected


def test_filter_array_wrong_type():
    with pytest.raises(ProtocolError) as info:
        filter_array("field", "all", "should have been array")
    assert "If $all: Expected array. If $elemMatch: Expected document. Got instead: string" in str(info.value)


def test_filter_array_all_with_document():
    with pytest.raises(ProtocolError) as info:
        filter_array('"nested"."field"', "all", {"field": 14.241234})
    assert str(info.value) == "BadValue (2): $all needs an array"


def test_filter_array_elem_match_with_array():
    with pytest.raises(ProtocolError) as info:
        filter_array('"nested"."field"', "elemMatch", ["$gte", 9, "$lte", 11])
    assert str(info.value) == "BadValue (2): $elemMatch needs an object"


def test_regex_string():
    assert regex("pattern") == "'%pattern%'"


def test_regex_wrong_type():
    with pytest.raises(ProtocolError) as info:
        regex(2)
    assert info.value.code == ErrorCode.BAD_VALUE
    assert "Got instead type int" in str(info.value)