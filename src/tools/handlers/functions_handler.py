"""pg_manage_functions: list, create and drop PostgreSQL functions."""

import logging
import re
from typing import Literal, Optional

from pydantic import Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import OperationResult
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_MANAGE_FUNCTIONS,
    boolean_property,
    object_schema,
    operation_property,
    string_property,
)
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments, dollar_quote, qualified_name

logger = logging.getLogger(__name__)

_PLPGSQL_BLOCK = re.compile(r"\s*(<<\w+>>\s*)?(DECLARE|BEGIN)\b", re.IGNORECASE)


class GetFunctionsArgs(SchemaArguments):
    function_name: Optional[str] = Field(default=None, alias="functionName")


class CreateFunctionArgs(SchemaArguments):
    function_name: str = Field(alias="functionName")
    parameters: str = ""
    return_type: str = Field(alias="returnType")
    function_body: str = Field(alias="functionBody")
    language: Optional[Literal["sql", "plpgsql", "plpython3u"]] = None
    volatility: Literal["VOLATILE", "STABLE", "IMMUTABLE"] = "VOLATILE"
    security: Literal["INVOKER", "DEFINER"] = "INVOKER"
    replace: bool = False


class DropFunctionArgs(SchemaArguments):
    function_name: str = Field(alias="functionName")
    parameters: Optional[str] = None
    if_exists: bool = Field(default=False, alias="ifExists")
    cascade: bool = False


def default_language(body: str) -> str:
    """plpgsql for BEGIN/DECLARE blocks, plain sql for bare statements."""
    return "plpgsql" if _PLPGSQL_BLOCK.match(body) else "sql"


class FunctionsHandler(OperationRouter):
    """Handler for PostgreSQL function management."""

    name = TOOL_MANAGE_FUNCTIONS
    description = (
        "Manage PostgreSQL functions - get, create, or drop functions with a single tool. "
        "Examples: operation=\"get\" to list functions, operation=\"create\" with functionName=\"test_func\", "
        "parameters=\"\" (empty for no params), returnType=\"TEXT\", functionBody=\"SELECT 'Hello'\""
    )
    input_schema = object_schema({
        "operation": operation_property(
            ["get", "create", "drop"],
            "Operation to perform: get (list/info), create (new function), or drop (remove function)"
        ),
        "functionName": string_property("Name of the function (required for create/drop, optional filter for get)"),
        "schema": SCHEMA_PROPERTY,
        "parameters": string_property(
            "Function parameters, e.g. \"a integer, b text\". Required for create (use \"\" for none); "
            "needed for drop only when the function is overloaded"
        ),
        "returnType": string_property("Return type of the function (required for create)"),
        "functionBody": string_property("Function body code (required for create)"),
        "language": string_property(
            "Function language (create). Defaults to plpgsql for BEGIN/DECLARE blocks, otherwise sql",
            enum=["sql", "plpgsql", "plpython3u"]
        ),
        "volatility": string_property("Function volatility (defaults to VOLATILE)", enum=["VOLATILE", "STABLE", "IMMUTABLE"]),
        "security": string_property("Security context (defaults to INVOKER)", enum=["INVOKER", "DEFINER"]),
        "replace": boolean_property("Use CREATE OR REPLACE (create)"),
        "ifExists": boolean_property("Include IF EXISTS (drop)"),
        "cascade": boolean_property("Include CASCADE (drop)"),
    }, required=["operation"])

    operations = {
        "get": Operation(GetFunctionsArgs, "_get_functions", returns_rows=True),
        "create": Operation(
            CreateFunctionArgs, "_create_function",
            hint='Note: parameters can be empty string "" for functions with no parameters'
        ),
        "drop": Operation(DropFunctionArgs, "_drop_function"),
    }

    async def _get_functions(self, db: ConnectionHandle, args: GetFunctionsArgs) -> OperationResult:
        sql = queries.QUERY_GET_FUNCTIONS
        params = [args.schema_name]
        if args.function_name:
            sql += " AND p.proname = $2"
            params.append(args.function_name)
        sql += " ORDER BY p.proname, arguments"

        functions = await db.query(sql, params)
        message = (
            f"Function information for {args.function_name}" if args.function_name
            else f"Found {len(functions)} functions in schema {args.schema_name}"
        )
        return OperationResult(message=message, details=functions)

    async def _create_function(self, db: ConnectionHandle, args: CreateFunctionArgs) -> OperationResult:
        language = args.language or default_language(args.function_body)
        verb = "CREATE OR REPLACE" if args.replace else "CREATE"

        sql = (
            f"{verb} FUNCTION {qualified_name(args.schema_name, args.function_name)}({args.parameters})\n"
            f"RETURNS {args.return_type}\n"
            f"LANGUAGE {language}\n"
            f"{args.volatility}\n"
            f"SECURITY {args.security}\n"
            f"AS {dollar_quote(args.function_body, 'function')}"
        )
        await db.execute(sql)
        logger.info(f"Created function {args.schema_name}.{args.function_name}")

        return OperationResult(
            message=f"Function {args.function_name} created successfully",
            details={
                "name": args.function_name,
                "schema": args.schema_name,
                "parameters": args.parameters,
                "returnType": args.return_type,
                "language": language,
                "volatility": args.volatility,
                "security": args.security
            }
        )

    async def _drop_function(self, db: ConnectionHandle, args: DropFunctionArgs) -> OperationResult:
        target = qualified_name(args.schema_name, args.function_name)
        if args.parameters is not None:
            target += f"({args.parameters})"

        sql = "DROP FUNCTION "
        if args.if_exists:
            sql += "IF EXISTS "
        sql += target
        if args.cascade:
            sql += " CASCADE"

        await db.execute(sql)
        logger.info(f"Dropped function {args.schema_name}.{args.function_name}")

        return OperationResult(
            message=f"Function {args.function_name} dropped successfully",
            details={"name": args.function_name, "schema": args.schema_name}
        )
