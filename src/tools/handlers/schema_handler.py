"""pg_manage_schema: table inspection, table DDL and enum types."""

import logging
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import OperationResult
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_MANAGE_SCHEMA,
    boolean_property,
    object_schema,
    operation_property,
    string_array_property,
    string_property,
)
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments, is_blank, qualified_name, quote_identifier, quote_literal

logger = logging.getLogger(__name__)


class ColumnDefinition(BaseModel):
    """One column of a new table. ``type`` and ``default`` are SQL, used as given."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    type: str
    nullable: bool = True
    default: Optional[str] = None
    primary_key: bool = Field(default=False, alias="primaryKey")
    unique: bool = False


class AlterTableAction(BaseModel):
    """One change inside alter_table."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Literal["add", "alter", "drop", "rename"]
    column_name: str = Field(alias="columnName")
    data_type: Optional[str] = Field(default=None, alias="dataType")
    nullable: Optional[bool] = None
    default: Optional[str] = None
    new_name: Optional[str] = Field(default=None, alias="newName")
    if_exists: bool = Field(default=False, alias="ifExists")


class GetSchemaInfoArgs(SchemaArguments):
    table_name: Optional[str] = Field(default=None, alias="tableName")


class CreateTableArgs(SchemaArguments):
    table_name: str = Field(alias="tableName")
    columns: List[ColumnDefinition]
    if_not_exists: bool = Field(default=False, alias="ifNotExists")


class AlterTableArgs(SchemaArguments):
    table_name: str = Field(alias="tableName")
    operations: List[AlterTableAction]


class GetEnumsArgs(SchemaArguments):
    enum_name: Optional[str] = Field(default=None, alias="enumName")


class CreateEnumArgs(SchemaArguments):
    enum_name: str = Field(alias="enumName")
    values: List[str]
    if_not_exists: bool = Field(default=False, alias="ifNotExists")


def column_clause(column: ColumnDefinition, inline_primary_key: bool) -> str:
    clause = f"{quote_identifier(column.name)} {column.type}"
    if inline_primary_key and column.primary_key:
        clause += " PRIMARY KEY"
    elif not column.nullable:
        clause += " NOT NULL"
    if column.unique:
        clause += " UNIQUE"
    if column.default is not None:
        clause += f" DEFAULT {column.default}"
    return clause


def alter_statement(table: str, action: AlterTableAction) -> str:
    """Build the ALTER TABLE statement for one action."""
    column = quote_identifier(action.column_name)
    if action.type == "add":
        clause = f"ADD COLUMN {column} {action.data_type}"
        if action.nullable is False:
            clause += " NOT NULL"
        if action.default is not None:
            clause += f" DEFAULT {action.default}"
        return f"ALTER TABLE {table} {clause}"
    if action.type == "drop":
        if_exists = "IF EXISTS " if action.if_exists else ""
        return f"ALTER TABLE {table} DROP COLUMN {if_exists}{column}"
    if action.type == "rename":
        return f"ALTER TABLE {table} RENAME COLUMN {column} TO {quote_identifier(action.new_name)}"

    subclauses = []
    if action.data_type:
        subclauses.append(f"ALTER COLUMN {column} TYPE {action.data_type}")
    if action.nullable is True:
        subclauses.append(f"ALTER COLUMN {column} DROP NOT NULL")
    elif action.nullable is False:
        subclauses.append(f"ALTER COLUMN {column} SET NOT NULL")
    if action.default is not None:
        subclauses.append(f"ALTER COLUMN {column} SET DEFAULT {action.default}")
    return f"ALTER TABLE {table} " + ", ".join(subclauses)


def missing_action_fields(actions: Any) -> List[str]:
    """Every type-specific field absent from the raw alter_table actions.

    Malformed entries are left to record validation.
    """
    if not isinstance(actions, list):
        return []
    missing = []
    for i, action in enumerate(actions):
        if not isinstance(action, dict):
            continue
        data_type = action.get("dataType", action.get("data_type"))
        new_name = action.get("newName", action.get("new_name"))
        kind = action.get("type")
        if kind == "add" and is_blank(data_type):
            missing.append(f"operations[{i}].dataType")
        elif kind == "rename" and is_blank(new_name):
            missing.append(f"operations[{i}].newName")
        elif kind == "alter" and is_blank(data_type) and action.get("nullable") is None and action.get("default") is None:
            missing.append(f"operations[{i}].dataType|nullable|default")
    return missing


class SchemaHandler(OperationRouter):
    """Handler for schema inspection and table/enum DDL."""

    name = TOOL_MANAGE_SCHEMA
    description = (
        "Manage PostgreSQL schema - get table info, create or alter tables, and list or create enum types. "
        "Use get_info without tableName to list tables in a schema"
    )
    input_schema = object_schema({
        "operation": operation_property(
            ["get_info", "create_table", "alter_table", "get_enums", "create_enum"],
            "Operation: get_info, create_table, alter_table, get_enums, create_enum"
        ),
        "schema": SCHEMA_PROPERTY,
        "tableName": string_property("Table name (required for create_table/alter_table, optional for get_info)"),
        "columns": {
            "type": "array",
            "description": "Columns for create_table",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "type": {"type": "string", "description": "SQL data type"},
                    "nullable": {"type": "boolean"},
                    "default": {"type": "string", "description": "Default value expression"},
                    "primaryKey": {"type": "boolean"},
                    "unique": {"type": "boolean"}
                },
                "required": ["name", "type"]
            }
        },
        "operations": {
            "type": "array",
            "description": "Changes for alter_table, applied in one transaction",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["add", "alter", "drop", "rename"]},
                    "columnName": {"type": "string"},
                    "dataType": {"type": "string"},
                    "nullable": {"type": "boolean"},
                    "default": {"type": "string"},
                    "newName": {"type": "string"},
                    "ifExists": {"type": "boolean"}
                },
                "required": ["type", "columnName"]
            }
        },
        "enumName": string_property("Enum type name (required for create_enum, optional filter for get_enums)"),
        "values": string_array_property("Enum labels (required for create_enum)"),
        "ifNotExists": boolean_property("Skip creation when the table or enum already exists"),
    }, required=["operation"])

    operations = {
        "get_info": Operation(GetSchemaInfoArgs, "_get_info", returns_rows=True),
        "create_table": Operation(CreateTableArgs, "_create_table"),
        "alter_table": Operation(AlterTableArgs, "_alter_table"),
        "get_enums": Operation(GetEnumsArgs, "_get_enums", returns_rows=True),
        "create_enum": Operation(CreateEnumArgs, "_create_enum"),
    }

    def extra_missing(self, operation, arguments):
        if operation == "alter_table":
            return missing_action_fields(arguments.get("operations"))
        return []

    async def _get_info(self, db: ConnectionHandle, args: GetSchemaInfoArgs) -> OperationResult:
        if not args.table_name:
            tables = await db.query(queries.QUERY_LIST_TABLES, [args.schema_name])
            return OperationResult(
                message=f"Found {len(tables)} tables in schema {args.schema_name}",
                details={"schema": args.schema_name, "tables": tables}
            )

        params = [args.schema_name, args.table_name]
        columns = await db.query(queries.QUERY_GET_COLUMNS, params)
        if not columns:
            return OperationResult(
                success=False,
                message=f"Table {args.schema_name}.{args.table_name} not found"
            )

        constraints = await db.query(queries.QUERY_GET_CONSTRAINTS, params)
        indexes = await db.query(queries.QUERY_GET_TABLE_INDEXES, params)
        return OperationResult(
            message=f"Schema information for {args.schema_name}.{args.table_name}",
            details={
                "schema": args.schema_name,
                "tableName": args.table_name,
                "columns": columns,
                "constraints": constraints,
                "indexes": indexes
            }
        )

    async def _create_table(self, db: ConnectionHandle, args: CreateTableArgs) -> OperationResult:
        primary_keys = [c.name for c in args.columns if c.primary_key]
        inline = len(primary_keys) == 1
        clauses = [column_clause(c, inline) for c in args.columns]
        if len(primary_keys) > 1:
            clauses.append("PRIMARY KEY (" + ", ".join(quote_identifier(c) for c in primary_keys) + ")")

        if_not_exists = "IF NOT EXISTS " if args.if_not_exists else ""
        sql = (
            f"CREATE TABLE {if_not_exists}{qualified_name(args.schema_name, args.table_name)} (\n  "
            + ",\n  ".join(clauses)
            + "\n)"
        )
        await db.execute(sql)
        logger.info(f"Created table {args.schema_name}.{args.table_name}")

        return OperationResult(
            message=f"Table {args.schema_name}.{args.table_name} created successfully",
            details={
                "table": args.table_name,
                "schema": args.schema_name,
                "columns": [c.model_dump(by_alias=True, exclude_none=True) for c in args.columns]
            }
        )

    async def _alter_table(self, db: ConnectionHandle, args: AlterTableArgs) -> OperationResult:
        table = qualified_name(args.schema_name, args.table_name)
        statements = [alter_statement(table, action) for action in args.operations]

        async with db.transaction():
            for statement in statements:
                await db.execute(statement)
        logger.info(f"Altered table {args.schema_name}.{args.table_name} ({len(statements)} change(s))")

        return OperationResult(
            message=f"Table {args.schema_name}.{args.table_name} altered successfully",
            details={
                "table": args.table_name,
                "schema": args.schema_name,
                "changes": [a.model_dump(by_alias=True, exclude_none=True) for a in args.operations]
            }
        )

    async def _get_enums(self, db: ConnectionHandle, args: GetEnumsArgs) -> OperationResult:
        sql = queries.QUERY_GET_ENUMS
        params = [args.schema_name]
        if args.enum_name:
            sql += " AND t.typname = $2"
            params.append(args.enum_name)
        sql += " GROUP BY n.nspname, t.typname ORDER BY t.typname"

        enums = await db.query(sql, params)
        return OperationResult(message=f"Found {len(enums)} enum types", details=enums)

    async def _create_enum(self, db: ConnectionHandle, args: CreateEnumArgs) -> OperationResult:
        details = {"name": args.enum_name, "schema": args.schema_name, "values": args.values}

        if args.if_not_exists:
            existing = await db.query_one(queries.QUERY_TYPE_EXISTS, [args.schema_name, args.enum_name])
            if existing:
                details["created"] = False
                return OperationResult(
                    message=f"Enum type {args.schema_name}.{args.enum_name} already exists, skipped",
                    details=details
                )

        labels = ", ".join(quote_literal(value) for value in args.values)
        await db.execute(f"CREATE TYPE {qualified_name(args.schema_name, args.enum_name)} AS ENUM ({labels})")
        logger.info(f"Created enum {args.schema_name}.{args.enum_name}")

        details["created"] = True
        return OperationResult(
            message=f"Enum type {args.schema_name}.{args.enum_name} created successfully",
            details=details
        )
