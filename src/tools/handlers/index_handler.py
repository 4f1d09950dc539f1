"""pg_manage_indexes: list, create, drop and rebuild indexes."""

import logging
from typing import List, Literal, Optional

from pydantic import Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import OperationResult
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_MANAGE_INDEXES,
    boolean_property,
    object_schema,
    operation_property,
    string_array_property,
    string_property,
)
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments, is_blank, qualified_name, quote_identifier

logger = logging.getLogger(__name__)

INDEX_METHODS = ["btree", "hash", "gist", "spgist", "gin", "brin"]


class GetIndexesArgs(SchemaArguments):
    table_name: Optional[str] = Field(default=None, alias="tableName")


class CreateIndexArgs(SchemaArguments):
    index_name: str = Field(alias="indexName")
    table_name: str = Field(alias="tableName")
    columns: List[str]
    method: Literal["btree", "hash", "gist", "spgist", "gin", "brin"] = "btree"
    unique: bool = False
    concurrent: bool = False
    if_not_exists: bool = Field(default=False, alias="ifNotExists")
    where: Optional[str] = None


class DropIndexArgs(SchemaArguments):
    index_name: str = Field(alias="indexName")
    if_exists: bool = Field(default=False, alias="ifExists")
    cascade: bool = False
    concurrent: bool = False


class ReindexArgs(SchemaArguments):
    target: Literal["index", "table", "schema"]
    name: Optional[str] = None


class IndexHandler(OperationRouter):
    """Handler for index management."""

    name = TOOL_MANAGE_INDEXES
    description = (
        "Manage PostgreSQL indexes - get, create, drop, and reindex. "
        "Example: operation=\"create\" with indexName=\"idx_users_email\", tableName=\"users\", columns=[\"email\"]"
    )
    input_schema = object_schema({
        "operation": operation_property(["get", "create", "drop", "reindex"], "Operation: get, create, drop, reindex"),
        "schema": SCHEMA_PROPERTY,
        "tableName": string_property("Table name (required for create, optional filter for get)"),
        "indexName": string_property("Index name (required for create/drop)"),
        "columns": string_array_property("Indexed column names (required for create)"),
        "method": string_property("Index access method (defaults to btree)", enum=INDEX_METHODS),
        "unique": boolean_property("Create a UNIQUE index"),
        "concurrent": boolean_property("Use CONCURRENTLY (create/drop)"),
        "ifNotExists": boolean_property("Include IF NOT EXISTS (create)"),
        "ifExists": boolean_property("Include IF EXISTS (drop)"),
        "cascade": boolean_property("Include CASCADE (drop)"),
        "where": string_property("Predicate for a partial index (create)"),
        "target": string_property("What to rebuild (required for reindex)", enum=["index", "table", "schema"]),
        "name": string_property("Name of the index or table to rebuild; the schema itself when target is schema"),
    }, required=["operation"])

    operations = {
        "get": Operation(GetIndexesArgs, "_get_indexes", returns_rows=True),
        "create": Operation(CreateIndexArgs, "_create_index"),
        "drop": Operation(DropIndexArgs, "_drop_index"),
        "reindex": Operation(ReindexArgs, "_reindex", hint="name is required unless target is schema"),
    }

    def extra_missing(self, operation, arguments):
        target = arguments.get("target")
        if operation == "reindex" and target in ("index", "table") and is_blank(arguments.get("name")):
            return ["name"]
        return []

    async def _get_indexes(self, db: ConnectionHandle, args: GetIndexesArgs) -> OperationResult:
        sql = queries.QUERY_GET_INDEXES
        params = [args.schema_name]
        if args.table_name:
            sql += " AND i.tablename = $2"
            params.append(args.table_name)
        sql += " ORDER BY i.tablename, i.indexname"

        indexes = await db.query(sql, params)
        return OperationResult(message=f"Found {len(indexes)} indexes", details=indexes)

    async def _create_index(self, db: ConnectionHandle, args: CreateIndexArgs) -> OperationResult:
        parts = ["CREATE"]
        if args.unique:
            parts.append("UNIQUE")
        parts.append("INDEX")
        if args.concurrent:
            parts.append("CONCURRENTLY")
        if args.if_not_exists:
            parts.append("IF NOT EXISTS")
        parts.append(quote_identifier(args.index_name))
        parts.append(f"ON {qualified_name(args.schema_name, args.table_name)}")
        parts.append(f"USING {args.method}")
        parts.append("(" + ", ".join(quote_identifier(c) for c in args.columns) + ")")
        if args.where:
            parts.append(f"WHERE {args.where}")

        await db.execute(" ".join(parts))
        logger.info(f"Created index {args.index_name} on {args.schema_name}.{args.table_name}")

        return OperationResult(
            message=f"Index {args.index_name} created successfully on {args.schema_name}.{args.table_name}",
            details={
                "name": args.index_name,
                "table": args.table_name,
                "schema": args.schema_name,
                "columns": args.columns,
                "method": args.method,
                "unique": args.unique
            }
        )

    async def _drop_index(self, db: ConnectionHandle, args: DropIndexArgs) -> OperationResult:
        parts = ["DROP INDEX"]
        if args.concurrent:
            parts.append("CONCURRENTLY")
        if args.if_exists:
            parts.append("IF EXISTS")
        parts.append(qualified_name(args.schema_name, args.index_name))
        if args.cascade:
            parts.append("CASCADE")

        await db.execute(" ".join(parts))
        return OperationResult(
            message=f"Index {args.index_name} dropped successfully",
            details={"name": args.index_name, "schema": args.schema_name}
        )

    async def _reindex(self, db: ConnectionHandle, args: ReindexArgs) -> OperationResult:
        if args.target == "schema":
            name = args.name or args.schema_name
            target = quote_identifier(name)
        else:
            name = args.name
            target = qualified_name(args.schema_name, name)

        await db.execute(f"REINDEX {args.target.upper()} {target}")
        return OperationResult(
            message=f"Reindexed {args.target} {name}",
            details={"target": args.target, "name": name, "schema": args.schema_name}
        )
