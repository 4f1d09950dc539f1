"""pg_copy_between_databases: move table rows from one database to another."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import Field

from database.async_connectors import ConnectionHandle
from tools.base import OperationResult, ToolContext, ToolHandler
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_COPY_BETWEEN_DATABASES,
    boolean_property,
    integer_property,
    object_schema,
    string_property,
)
from tools.handlers.export_handler import DEFAULT_BATCH_SIZE, chunks, column_union
from tools.validators import ToolArguments, qualified_name, quote_identifier, validate_arguments

logger = logging.getLogger(__name__)


async def copy_rows(db: ConnectionHandle, table: str, columns: List[str], rows: List[Dict[str, Any]], batch_size: int) -> int:
    """Insert source rows as parameters typed by the target columns.

    Values keep the representation asyncpg read them in (bytes for bytea,
    text for json/jsonb), so the target stores exactly what the source held.
    """
    column_list = ", ".join(quote_identifier(c) for c in columns)
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    sql = f"INSERT INTO {table} ({column_list}) VALUES ({placeholders})"
    for batch in chunks(rows, batch_size):
        await db.execute_many(sql, [[row.get(c) for c in columns] for row in batch])
    return len(rows)


class CopyArgs(ToolArguments):
    source_connection_string: str = Field(alias="sourceConnectionString")
    target_connection_string: str = Field(alias="targetConnectionString")
    table_name: str = Field(alias="tableName")
    schema_name: str = Field(default="public", alias="schema")
    target_table: Optional[str] = Field(default=None, alias="targetTable")
    target_schema: Optional[str] = Field(default=None, alias="targetSchema")
    where: Optional[str] = None
    truncate_target: bool = Field(default=False, alias="truncateTarget")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0, alias="batchSize")


class CopyBetweenDatabasesHandler(ToolHandler):
    """Handler for copying rows between two databases."""

    name = TOOL_COPY_BETWEEN_DATABASES
    description = (
        "Copy rows of a table from a source database to a target database. The target table must "
        "already exist; rows are inserted in batches inside one target transaction"
    )
    input_schema = {
        "type": "object",
        "properties": {
            "sourceConnectionString": string_property("Source database connection string (required)"),
            "targetConnectionString": string_property("Target database connection string (required)"),
            "tableName": string_property("Source table (required)"),
            "schema": SCHEMA_PROPERTY,
            "targetTable": string_property("Target table (defaults to tableName)"),
            "targetSchema": string_property("Target schema (defaults to schema)"),
            "where": string_property("Optional WHERE condition on the source"),
            "truncateTarget": boolean_property("Truncate the target table first"),
            "batchSize": integer_property("Rows per INSERT statement (default 1000)"),
        },
        "required": ["sourceConnectionString", "targetConnectionString", "tableName"]
    }

    async def execute(self, arguments: Dict[str, Any], context: ToolContext):
        args = validate_arguments(CopyArgs, arguments, "copy")
        target_schema = args.target_schema or args.schema_name
        target_name = args.target_table or args.table_name

        sql = f"SELECT * FROM {qualified_name(args.schema_name, args.table_name)}"
        if args.where:
            sql += f" WHERE {args.where}"

        async with context.connection(args.source_connection_string) as source:
            rows = await source.query(sql)

        target_table = qualified_name(target_schema, target_name)
        async with context.connection(args.target_connection_string) as target:
            async with target.transaction():
                if args.truncate_target:
                    await target.execute(f"TRUNCATE TABLE {target_table}")
                copied = await copy_rows(target, target_table, column_union(rows), rows, args.batch_size) if rows else 0

        logger.info(
            f"Copied {copied} rows from {args.schema_name}.{args.table_name} to {target_schema}.{target_name}"
        )
        return self._result_response(OperationResult(
            message=f"Copied {copied} rows from {args.schema_name}.{args.table_name} to {target_schema}.{target_name}",
            details={
                "rowCount": copied,
                "source": f"{args.schema_name}.{args.table_name}",
                "target": f"{target_schema}.{target_name}",
                "truncated": args.truncate_target
            }
        ))
