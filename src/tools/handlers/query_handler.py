"""Data tools: read queries, row mutations and arbitrary SQL."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from mcp.types import CallToolResult
from pydantic import Field

from core.error_handling import json_default
from database.async_connectors import ConnectionHandle
from tools.base import OperationResult, ToolContext, ToolHandler
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_EXECUTE_MUTATION,
    TOOL_EXECUTE_QUERY,
    TOOL_EXECUTE_SQL,
    boolean_property,
    integer_property,
    object_schema,
    operation_property,
    string_array_property,
    string_property,
)
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments, ToolArguments, qualified_name, quote_identifier, validate_arguments

logger = logging.getLogger(__name__)

PARAMETERS_PROPERTY = {
    "type": "array",
    "description": "Values for $1, $2, ... placeholders",
    "items": {}
}


def strip_statement(sql: str) -> str:
    """Trim whitespace and trailing semicolons so the statement can be wrapped."""
    return sql.strip().rstrip(";").rstrip()


def rows_affected(status: str) -> int:
    """Row count from a command tag such as ``INSERT 0 3`` or ``UPDATE 2``."""
    last = status.split()[-1] if status else ""
    return int(last) if last.isdigit() else 0


# ---------------------------------------------------------------------------
# pg_execute_query
# ---------------------------------------------------------------------------

class QueryArgs(ToolArguments):
    query: str
    parameters: List[Any] = Field(default_factory=list)
    limit: Optional[int] = Field(default=None, ge=0)
    timeout: Optional[int] = Field(default=None, gt=0)


class ExecuteQueryHandler(OperationRouter):
    """Handler for read-only queries."""

    name = TOOL_EXECUTE_QUERY
    description = (
        "Execute a read-only SQL query (SELECT/WITH) with bound parameters. "
        "operation=\"select\" returns rows, \"count\" returns the row count, \"exists\" returns whether any row matches. "
        "Runs inside a READ ONLY transaction"
    )
    input_schema = object_schema({
        "operation": operation_property(["select", "count", "exists"], "Operation: select, count, exists"),
        "query": string_property("SQL query to run (required)"),
        "parameters": PARAMETERS_PROPERTY,
        "limit": integer_property("Maximum rows to return (select)"),
        "timeout": integer_property("Statement timeout in milliseconds"),
    }, required=["operation", "query"])

    operations = {
        "select": Operation(QueryArgs, "_select", returns_rows=True),
        "count": Operation(QueryArgs, "_count", returns_rows=True),
        "exists": Operation(QueryArgs, "_exists", returns_rows=True),
    }

    @asynccontextmanager
    async def _read_only(self, db: ConnectionHandle, args: QueryArgs):
        async with db.transaction(readonly=True):
            if args.timeout:
                await db.execute(f"SET LOCAL statement_timeout = {int(args.timeout)}")
            yield db

    async def _select(self, db: ConnectionHandle, args: QueryArgs) -> OperationResult:
        sql = strip_statement(args.query)
        if args.limit is not None:
            sql = f"SELECT * FROM (\n{sql}\n) AS query_result LIMIT {int(args.limit)}"

        async with self._read_only(db, args):
            rows = await db.query(sql, args.parameters)
        return OperationResult(message=f"Query returned {len(rows)} rows", details=rows)

    async def _count(self, db: ConnectionHandle, args: QueryArgs) -> OperationResult:
        sql = f"SELECT count(*) AS count FROM (\n{strip_statement(args.query)}\n) AS query_result"
        async with self._read_only(db, args):
            row = await db.query_one(sql, args.parameters)
        return OperationResult(message="Row count", details={"count": row["count"]})

    async def _exists(self, db: ConnectionHandle, args: QueryArgs) -> OperationResult:
        sql = f"SELECT EXISTS (\n{strip_statement(args.query)}\n) AS exists"
        async with self._read_only(db, args):
            row = await db.query_one(sql, args.parameters)
        return OperationResult(message="Existence check", details={"exists": row["exists"]})


# ---------------------------------------------------------------------------
# pg_execute_mutation
# ---------------------------------------------------------------------------

class MutationArgs(SchemaArguments):
    table_name: str = Field(alias="tableName")
    returning: Optional[List[str]] = None


class InsertArgs(MutationArgs):
    data: Dict[str, Any]


class UpdateArgs(MutationArgs):
    data: Dict[str, Any]
    where: str
    parameters: List[Any] = Field(default_factory=list)


class DeleteArgs(MutationArgs):
    where: str
    parameters: List[Any] = Field(default_factory=list)


class UpsertArgs(MutationArgs):
    data: Dict[str, Any]
    conflict_columns: List[str] = Field(alias="conflictColumns")


def returning_clause(columns: Optional[List[str]]) -> str:
    if not columns:
        return ""
    if columns == ["*"]:
        return " RETURNING *"
    return " RETURNING " + ", ".join(quote_identifier(c) for c in columns)


def record_source(table: str, placeholder: int) -> str:
    """Row typed like ``table`` built from the JSON bound at ``$placeholder``."""
    return f"json_populate_record(NULL::{table}, ${placeholder}::json)"


class ExecuteMutationHandler(OperationRouter):
    """Handler for INSERT/UPDATE/DELETE/UPSERT with bound row data."""

    name = TOOL_EXECUTE_MUTATION
    description = (
        "Insert, update, delete or upsert rows. Row values in data are bound as one JSON parameter and "
        "converted to the table's column types. where is an SQL condition whose placeholders start at $1 "
        "(values in parameters)"
    )
    input_schema = object_schema({
        "operation": operation_property(["insert", "update", "delete", "upsert"], "Operation: insert, update, delete, upsert"),
        "tableName": string_property("Target table (required)"),
        "schema": SCHEMA_PROPERTY,
        "data": {"type": "object", "description": "Column values (required for insert/update/upsert)"},
        "where": string_property("WHERE condition (required for update/delete)"),
        "parameters": PARAMETERS_PROPERTY,
        "conflictColumns": string_array_property("Conflict target columns (required for upsert)"),
        "returning": string_array_property("Columns to return, or [\"*\"]"),
    }, required=["operation", "tableName"])

    operations = {
        "insert": Operation(InsertArgs, "_insert"),
        "update": Operation(UpdateArgs, "_update"),
        "delete": Operation(DeleteArgs, "_delete"),
        "upsert": Operation(UpsertArgs, "_upsert"),
    }

    async def _run(self, db: ConnectionHandle, args: MutationArgs, sql: str, params: List[Any], verb: str) -> OperationResult:
        sql += returning_clause(args.returning)
        details: Dict[str, Any] = {"table": args.table_name, "schema": args.schema_name}
        if args.returning:
            rows = await db.query(sql, params)
            details["rowsAffected"] = len(rows)
            details["rows"] = rows
        else:
            status = await db.execute(sql, params)
            details["rowsAffected"] = rows_affected(status)

        return OperationResult(
            message=f"{verb} {details['rowsAffected']} row(s) in {args.schema_name}.{args.table_name}",
            details=details
        )

    async def _insert(self, db: ConnectionHandle, args: InsertArgs) -> OperationResult:
        table = qualified_name(args.schema_name, args.table_name)
        columns = ", ".join(quote_identifier(c) for c in args.data)
        sql = f"INSERT INTO {table} ({columns}) SELECT {columns} FROM {record_source(table, 1)}"
        return await self._run(db, args, sql, [json.dumps(args.data, default=json_default)], "Inserted")

    async def _update(self, db: ConnectionHandle, args: UpdateArgs) -> OperationResult:
        table = qualified_name(args.schema_name, args.table_name)
        placeholder = len(args.parameters) + 1
        assignments = ", ".join(
            f"{quote_identifier(c)} = (SELECT {quote_identifier(c)} FROM {record_source(table, placeholder)})"
            for c in args.data
        )
        sql = f"UPDATE {table} SET {assignments} WHERE {args.where}"
        params = list(args.parameters) + [json.dumps(args.data, default=json_default)]
        return await self._run(db, args, sql, params, "Updated")

    async def _delete(self, db: ConnectionHandle, args: DeleteArgs) -> OperationResult:
        table = qualified_name(args.schema_name, args.table_name)
        sql = f"DELETE FROM {table} WHERE {args.where}"
        return await self._run(db, args, sql, list(args.parameters), "Deleted")

    async def _upsert(self, db: ConnectionHandle, args: UpsertArgs) -> OperationResult:
        table = qualified_name(args.schema_name, args.table_name)
        columns = ", ".join(quote_identifier(c) for c in args.data)
        conflict = ", ".join(quote_identifier(c) for c in args.conflict_columns)
        updates = [c for c in args.data if c not in args.conflict_columns]
        if updates:
            action = "DO UPDATE SET " + ", ".join(
                f"{quote_identifier(c)} = EXCLUDED.{quote_identifier(c)}" for c in updates
            )
        else:
            action = "DO NOTHING"

        sql = (
            f"INSERT INTO {table} ({columns}) SELECT {columns} FROM {record_source(table, 1)} "
            f"ON CONFLICT ({conflict}) {action}"
        )
        return await self._run(db, args, sql, [json.dumps(args.data, default=json_default)], "Upserted")


# ---------------------------------------------------------------------------
# pg_execute_sql
# ---------------------------------------------------------------------------

class ExecuteSQLArgs(ToolArguments):
    sql: str
    parameters: List[Any] = Field(default_factory=list)
    expect_rows: bool = Field(default=True, alias="expectRows")
    transactional: bool = False


class ExecuteSQLHandler(ToolHandler):
    """Handler for arbitrary SQL statements."""

    name = TOOL_EXECUTE_SQL
    description = (
        "Execute arbitrary SQL with bound parameters. expectRows=true (default) returns result rows; "
        "expectRows=false returns the command status and, without parameters, accepts several statements "
        "separated by semicolons. transactional=true wraps the call in a transaction"
    )
    input_schema = object_schema({
        "sql": string_property("SQL to execute (required)"),
        "parameters": PARAMETERS_PROPERTY,
        "expectRows": boolean_property("Return rows (default true) or the command status"),
        "transactional": boolean_property("Run inside a transaction (default false)"),
    }, required=["sql"])

    async def execute(self, arguments: Dict[str, Any], context: ToolContext) -> CallToolResult:
        args = validate_arguments(ExecuteSQLArgs, arguments, "execute_sql")

        async with context.connection(args.connection_string) as db:
            if args.transactional:
                async with db.transaction():
                    result = await self._run(db, args)
            else:
                result = await self._run(db, args)

        return self._result_response(result, returns_rows=args.expect_rows)

    async def _run(self, db: ConnectionHandle, args: ExecuteSQLArgs) -> OperationResult:
        if args.expect_rows:
            rows = await db.query(args.sql, args.parameters)
            return OperationResult(message=f"{len(rows)} rows", details={"rows": rows, "rowCount": len(rows)})

        status = await db.execute(args.sql, args.parameters)
        return OperationResult(message="SQL executed successfully.", details={"status": status})
