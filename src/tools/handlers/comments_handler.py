"""pg_manage_comments: read and write COMMENT ON for database objects."""

import logging
from typing import Literal, Optional

from pydantic import Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import OperationResult
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_MANAGE_COMMENTS,
    object_schema,
    operation_property,
    string_property,
)
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments, is_blank, qualified_name, quote_identifier, quote_literal

logger = logging.getLogger(__name__)

OBJECT_TYPES = [
    "table", "view", "column", "index", "sequence",
    "constraint", "function", "trigger", "policy", "schema",
]

ObjectType = Literal[
    "table", "view", "column", "index", "sequence",
    "constraint", "function", "trigger", "policy", "schema",
]

# Object types addressed through their parent table
TABLE_SCOPED_TYPES = {"column", "constraint", "trigger", "policy"}
PARENT_TABLE_HINT = "tableName (the parent table) is required for column, constraint, trigger and policy comments"

RELATION_KINDS = {
    "table": ["r", "p", "f"],
    "view": ["v", "m"],
    "index": ["i", "I"],
    "sequence": ["S"],
}

TABLE_SCOPED_QUERIES = {
    "column": queries.QUERY_COMMENT_COLUMN,
    "constraint": queries.QUERY_COMMENT_CONSTRAINT,
    "trigger": queries.QUERY_COMMENT_TRIGGER,
    "policy": queries.QUERY_COMMENT_POLICY,
}


class CommentTargetArgs(SchemaArguments):
    object_type: ObjectType = Field(alias="objectType")
    object_name: str = Field(alias="objectName")
    table_name: Optional[str] = Field(default=None, alias="tableName")
    parameters: Optional[str] = None


class SetCommentArgs(CommentTargetArgs):
    comment: str


class BulkGetCommentsArgs(SchemaArguments):
    pass


def comment_target(args: CommentTargetArgs) -> str:
    """The object reference that follows ``COMMENT ON``."""
    kind = args.object_type
    if kind == "schema":
        return f"SCHEMA {quote_identifier(args.object_name)}"
    if kind == "column":
        table = qualified_name(args.schema_name, args.table_name)
        return f"COLUMN {table}.{quote_identifier(args.object_name)}"
    if kind in ("constraint", "trigger", "policy"):
        table = qualified_name(args.schema_name, args.table_name)
        return f"{kind.upper()} {quote_identifier(args.object_name)} ON {table}"
    if kind == "function":
        target = f"FUNCTION {qualified_name(args.schema_name, args.object_name)}"
        if args.parameters is not None:
            target += f"({args.parameters})"
        return target
    return f"{kind.upper()} {qualified_name(args.schema_name, args.object_name)}"


class CommentsHandler(OperationRouter):
    """Handler for object comments."""

    name = TOOL_MANAGE_COMMENTS
    description = (
        "Manage PostgreSQL object comments - get, set, or remove comments on tables, columns, "
        "functions, and other objects, or bulk_get every comment in a schema. "
        "Column, constraint, trigger and policy comments need tableName (the parent table)"
    )
    input_schema = object_schema({
        "operation": operation_property(
            ["get", "set", "remove", "bulk_get"],
            "Operation: get (one object), set, remove, bulk_get (all comments in schema)"
        ),
        "objectType": string_property("Type of database object (required except for bulk_get)", enum=OBJECT_TYPES),
        "objectName": string_property("Name of the object (required except for bulk_get)"),
        "schema": SCHEMA_PROPERTY,
        "tableName": string_property("Parent table for column/constraint/trigger/policy comments"),
        "parameters": string_property("Function argument types, when the function is overloaded"),
        "comment": string_property("Comment text (required for set)"),
    }, required=["operation"])

    operations = {
        "get": Operation(CommentTargetArgs, "_get_comment", returns_rows=True, hint=PARENT_TABLE_HINT),
        "set": Operation(SetCommentArgs, "_set_comment", hint=PARENT_TABLE_HINT),
        "remove": Operation(CommentTargetArgs, "_remove_comment", hint=PARENT_TABLE_HINT),
        "bulk_get": Operation(BulkGetCommentsArgs, "_bulk_get_comments", returns_rows=True),
    }

    def extra_missing(self, operation, arguments):
        object_type = arguments.get("objectType")
        if operation == "bulk_get" or not isinstance(object_type, str):
            return []
        if object_type in TABLE_SCOPED_TYPES and is_blank(arguments.get("tableName")):
            return ["tableName"]
        return []

    async def _get_comment(self, db: ConnectionHandle, args: CommentTargetArgs) -> OperationResult:
        kind = args.object_type
        if kind in RELATION_KINDS:
            rows = await db.query(
                queries.QUERY_COMMENT_RELATION,
                [args.schema_name, args.object_name, RELATION_KINDS[kind]]
            )
        elif kind in TABLE_SCOPED_QUERIES:
            rows = await db.query(
                TABLE_SCOPED_QUERIES[kind],
                [args.schema_name, args.table_name, args.object_name]
            )
        elif kind == "function":
            rows = await db.query(queries.QUERY_COMMENT_FUNCTION, [args.schema_name, args.object_name])
        else:
            rows = await db.query(queries.QUERY_COMMENT_SCHEMA, [args.object_name])

        if not rows:
            return OperationResult(
                success=False,
                message=f"{kind.capitalize()} {args.object_name} not found in schema {args.schema_name}"
            )

        for row in rows:
            row["objectType"] = kind
        return OperationResult(
            message=f"Comment for {kind} {args.object_name}",
            details=rows[0] if len(rows) == 1 else rows
        )

    async def _write_comment(self, db: ConnectionHandle, args: CommentTargetArgs, comment: Optional[str]) -> str:
        value = "NULL" if comment is None else quote_literal(comment)
        return await db.execute(f"COMMENT ON {comment_target(args)} IS {value}")

    async def _set_comment(self, db: ConnectionHandle, args: SetCommentArgs) -> OperationResult:
        await self._write_comment(db, args, args.comment)
        return OperationResult(
            message=f"Comment set on {args.object_type} {args.object_name}",
            details={
                "objectType": args.object_type,
                "objectName": args.object_name,
                "schema": args.schema_name,
                "tableName": args.table_name,
                "comment": args.comment
            }
        )

    async def _remove_comment(self, db: ConnectionHandle, args: CommentTargetArgs) -> OperationResult:
        await self._write_comment(db, args, None)
        return OperationResult(
            message=f"Comment removed from {args.object_type} {args.object_name}",
            details={
                "objectType": args.object_type,
                "objectName": args.object_name,
                "schema": args.schema_name,
                "tableName": args.table_name
            }
        )

    async def _bulk_get_comments(self, db: ConnectionHandle, args: BulkGetCommentsArgs) -> OperationResult:
        comments = await db.query(queries.QUERY_BULK_COMMENTS, [args.schema_name])
        return OperationResult(
            message=f"Found {len(comments)} comments in schema {args.schema_name}",
            details=comments
        )
