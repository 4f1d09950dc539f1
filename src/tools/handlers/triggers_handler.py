"""pg_manage_triggers: list, create, drop and toggle triggers."""

import logging
from typing import List, Literal, Optional

from pydantic import Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import OperationResult
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_MANAGE_TRIGGERS,
    boolean_property,
    object_schema,
    operation_property,
    string_property,
)
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments, qualified_name, quote_identifier

logger = logging.getLogger(__name__)

TriggerEvent = Literal["INSERT", "UPDATE", "DELETE", "TRUNCATE"]


class GetTriggersArgs(SchemaArguments):
    table_name: Optional[str] = Field(default=None, alias="tableName")


class TriggerTargetArgs(SchemaArguments):
    trigger_name: str = Field(alias="triggerName")
    table_name: str = Field(alias="tableName")


class CreateTriggerArgs(TriggerTargetArgs):
    function_name: str = Field(alias="functionName")
    function_schema: Optional[str] = Field(default=None, alias="functionSchema")
    timing: Literal["BEFORE", "AFTER", "INSTEAD OF"] = "AFTER"
    events: List[TriggerEvent] = Field(default_factory=lambda: ["INSERT"])
    for_each: Literal["ROW", "STATEMENT"] = Field(default="ROW", alias="forEach")
    when: Optional[str] = None
    replace: bool = False


class DropTriggerArgs(TriggerTargetArgs):
    if_exists: bool = Field(default=False, alias="ifExists")
    cascade: bool = False


class SetTriggerStateArgs(TriggerTargetArgs):
    enable: bool


class TriggersHandler(OperationRouter):
    """Handler for trigger management."""

    name = TOOL_MANAGE_TRIGGERS
    description = (
        "Manage PostgreSQL triggers - get, create, drop, and enable/disable triggers. "
        "Example: operation=\"create\" with triggerName, tableName, functionName, timing=\"BEFORE\", events=[\"UPDATE\"]"
    )
    input_schema = object_schema({
        "operation": operation_property(
            ["get", "create", "drop", "set_state"],
            "Operation: get (list), create, drop, set_state (enable/disable)"
        ),
        "triggerName": string_property("Trigger name (required for create/drop/set_state)"),
        "tableName": string_property("Table name (required for create/drop/set_state, optional filter for get)"),
        "schema": SCHEMA_PROPERTY,
        "functionName": string_property("Trigger function to execute (required for create)"),
        "functionSchema": string_property("Schema of the trigger function (defaults to schema)"),
        "timing": string_property("When the trigger fires (defaults to AFTER)", enum=["BEFORE", "AFTER", "INSTEAD OF"]),
        "events": {
            "type": "array",
            "items": {"type": "string", "enum": ["INSERT", "UPDATE", "DELETE", "TRUNCATE"]},
            "description": "Events that fire the trigger (defaults to [\"INSERT\"])"
        },
        "forEach": string_property("Row or statement level (defaults to ROW)", enum=["ROW", "STATEMENT"]),
        "when": string_property("Optional WHEN condition"),
        "replace": boolean_property("Use CREATE OR REPLACE TRIGGER (PostgreSQL 14+)"),
        "ifExists": boolean_property("Include IF EXISTS (drop)"),
        "cascade": boolean_property("Include CASCADE (drop)"),
        "enable": boolean_property("true to enable, false to disable (required for set_state)"),
    }, required=["operation"])

    operations = {
        "get": Operation(GetTriggersArgs, "_get_triggers", returns_rows=True),
        "create": Operation(CreateTriggerArgs, "_create_trigger"),
        "drop": Operation(DropTriggerArgs, "_drop_trigger"),
        "set_state": Operation(SetTriggerStateArgs, "_set_trigger_state"),
    }

    async def _get_triggers(self, db: ConnectionHandle, args: GetTriggersArgs) -> OperationResult:
        sql = queries.QUERY_GET_TRIGGERS
        params = [args.schema_name]
        if args.table_name:
            sql += " AND c.relname = $2"
            params.append(args.table_name)
        sql += " ORDER BY c.relname, t.tgname"

        triggers = await db.query(sql, params)
        return OperationResult(message=f"Found {len(triggers)} triggers", details=triggers)

    async def _create_trigger(self, db: ConnectionHandle, args: CreateTriggerArgs) -> OperationResult:
        events = list(dict.fromkeys(args.events)) or ["INSERT"]
        function = qualified_name(args.function_schema or args.schema_name, args.function_name)
        verb = "CREATE OR REPLACE TRIGGER" if args.replace else "CREATE TRIGGER"

        sql = (
            f"{verb} {quote_identifier(args.trigger_name)}\n"
            f"{args.timing} {' OR '.join(events)} ON {qualified_name(args.schema_name, args.table_name)}\n"
            f"FOR EACH {args.for_each}\n"
        )
        if args.when:
            sql += f"WHEN ({args.when})\n"
        sql += f"EXECUTE FUNCTION {function}()"

        await db.execute(sql)
        logger.info(f"Created trigger {args.trigger_name} on {args.schema_name}.{args.table_name}")

        return OperationResult(
            message=f"Trigger {args.trigger_name} created successfully on {args.schema_name}.{args.table_name}",
            details={
                "name": args.trigger_name,
                "table": args.table_name,
                "schema": args.schema_name,
                "timing": args.timing,
                "events": events,
                "forEach": args.for_each,
                "function": args.function_name
            }
        )

    async def _drop_trigger(self, db: ConnectionHandle, args: DropTriggerArgs) -> OperationResult:
        if_exists = "IF EXISTS " if args.if_exists else ""
        cascade = " CASCADE" if args.cascade else ""
        table = qualified_name(args.schema_name, args.table_name)
        await db.execute(f"DROP TRIGGER {if_exists}{quote_identifier(args.trigger_name)} ON {table}{cascade}")

        return OperationResult(
            message=f"Trigger {args.trigger_name} dropped successfully from {args.schema_name}.{args.table_name}",
            details={"name": args.trigger_name, "table": args.table_name, "schema": args.schema_name}
        )

    async def _set_trigger_state(self, db: ConnectionHandle, args: SetTriggerStateArgs) -> OperationResult:
        action = "ENABLE" if args.enable else "DISABLE"
        table = qualified_name(args.schema_name, args.table_name)
        await db.execute(f"ALTER TABLE {table} {action} TRIGGER {quote_identifier(args.trigger_name)}")

        state = "enabled" if args.enable else "disabled"
        return OperationResult(
            message=f"Trigger {args.trigger_name} {state} on {args.schema_name}.{args.table_name}",
            details={"name": args.trigger_name, "table": args.table_name, "schema": args.schema_name, "enabled": args.enable}
        )
