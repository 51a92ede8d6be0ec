# docsql

`docsql` turns document-database commands into SQL. The SQL is meant for a
database that keeps JSON documents in collections, one collection per table
inside a schema. The package does two jobs. It builds SQL for filters,
projections, sorting, limits and `$set`/`$unset` updates. It also runs whole
commands (find, count, insert, update, delete, findAndModify) through a
connection object that you supply, and returns reply documents shaped like
those of a document database.

Documents are plain Python dicts and arrays are lists. Object identifiers are
`docsql.objectid.ObjectID` values.

## Installation

```
pip install docsql
```

To install it with the test dependencies:

```
pip install "docsql[test]"
```

The package depends on nothing outside the standard library.

## Building SQL fragments

`docsql.where.create_where_clause` turns a filter into a `WHERE` clause:

```python
from docsql.where import create_where_clause

create_where_clause({"item": "test", "qty": {"$gt": 12}})
# ' WHERE "item" = \'test\' AND "qty" > 12'
```

The supported operators are `$and`, `$or` and `$nor` at the top level. Inside
a field they are `$gt`, `$gte`, `$lt`, `$lte`, `$eq`, `$ne`, `$exists`,
`$size`, `$all`, `$elemMatch`, `$not` and `$regex`. Regular expressions, given
as `docsql.where.Regex` or as strings, become `LIKE` patterns.

`docsql.projection.projection` handles projections. An inclusion becomes the
`SELECT` list. An exclusion selects `*`, and
`docsql.projection.project_documents` then removes the excluded fields from
the fetched documents:

```python
from docsql.projection import projection

projection({"field": True})
# ('{"_id": "_id", "field": "field"}', False)
projection({"field": False})
# ('*', True)
```

`docsql.update.update` turns a `$set`/`$unset` update document into the
`SET`/`UNSET` part of an `UPDATE` statement. The second value it returns is a
condition that leaves out documents which already hold the new values:

```python
from docsql.update import update

update_sql, not_where_sql = update({"$set": {"name": "test name"}})
# update_sql    == ' SET "name" = \'test name\''
# not_where_sql == ' AND ( NOT (   "name" = \'test name\') OR ("name" IS UNSET )) '
```

`docsql.codec` holds `encode_document`, `encode_value` and `decode_document`.
They convert between documents and the stored compact JSON form, in which an
ObjectID is written as `{"oid": "<hex>"}`.

## Running commands

Each command is a function that takes a pool and the command document, and
returns the reply document:

| Function | Module |
| --- | --- |
| `msg_find_or_count(pool, document)` | `docsql.find` |
| `msg_insert(pool, document)` | `docsql.insert` |
| `msg_update(pool, document)` | `docsql.update_cmd` |
| `msg_delete(pool, document)` | `docsql.delete` |
| `msg_find_and_modify(pool, document)` | `docsql.findandmodify` |

The pool is any object that follows the `docsql.unique.Pool` protocol:

- `query_row(sql, *args)` returns the first row as a tuple. It raises
  `docsql.unique.NoRowsError` when there is no row.
- `query(sql, *args)` returns all rows.
- `execute(sql, *args)` returns the number of rows affected.
- `namespace_exists(db, collection)` tells whether the schema and the
  collection both exist.
- `create_namespace_if_not_exists(db, collection)` creates them if they are
  missing.

For document queries, the first column of each row holds the document as JSON,
in bytes or a string. For counts, it holds the number.

```python
from docsql.find import msg_find_or_count

reply = msg_find_or_count(pool, {"find": "items", "filter": {"qty": {"$gt": 1}}, "$db": "shop"})
# {"cursor": {"firstBatch": [...], "id": 0, "ns": "shop.items"}, "ok": 1.0}
```

Before inserting, `msg_insert` checks that each `_id` is not already in use.
`docsql.unique.is_id_unique` and `docsql.unique.ensure_id_unique` are also
available on their own.

## Errors

When a command cannot be handled, the package raises
`docsql.errors.ProtocolError`, which carries a `docsql.errors.ErrorCode`.
`ProtocolError.document()` returns the matching error reply with `ok`,
`errmsg`, `code` and `codeName`. `docsql.errors.protocol_error` turns any other
exception into an `InternalError` one. A duplicate `_id` raises
`docsql.unique.DuplicateKeyError`. Malformed requests that carry no error code
raise `ValueError`.

## What the package does not do

- It has no network server. It does not read or write the wire protocol;
  callers pass in command documents and get back reply documents.
- It ships no database driver. You supply the pool.
- There is no single object that dispatches commands by name, and there is no
  handler for `createIndexes`. Callers pick the command function themselves.
- Update operators other than `$set` and `$unset` are not supported, and
  neither are projections on nested fields for inclusion.