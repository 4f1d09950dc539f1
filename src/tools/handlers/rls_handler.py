"""pg_manage_rls: row-level security switches and policies."""

import logging
from typing import List, Literal, Optional

from pydantic import Field

from database.async_connectors import ConnectionHandle
from tools import queries
from tools.base import OperationResult
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_MANAGE_RLS,
    boolean_property,
    object_schema,
    operation_property,
    string_array_property,
    string_property,
)
from tools.router import Operation, OperationRouter
from tools.validators import SchemaArguments, missing_one_of, qualified_name, quote_identifier, quote_role

logger = logging.getLogger(__name__)

PolicyCommand = Literal["ALL", "SELECT", "INSERT", "UPDATE", "DELETE"]


class TableArgs(SchemaArguments):
    table_name: str = Field(alias="tableName")


class GetPoliciesArgs(SchemaArguments):
    table_name: Optional[str] = Field(default=None, alias="tableName")


class CreatePolicyArgs(TableArgs):
    policy_name: str = Field(alias="policyName")
    using: Optional[str] = None
    check: Optional[str] = None
    command: PolicyCommand = "ALL"
    role: Optional[str] = None
    roles: Optional[List[str]] = None
    replace: bool = False


class EditPolicyArgs(TableArgs):
    policy_name: str = Field(alias="policyName")
    roles: Optional[List[str]] = None
    using: Optional[str] = None
    check: Optional[str] = None


class DropPolicyArgs(TableArgs):
    policy_name: str = Field(alias="policyName")
    if_exists: bool = Field(default=False, alias="ifExists")


def roles_clause(roles: List[str]) -> str:
    """``TO role, ...``; an empty list means PUBLIC."""
    if not roles:
        return "TO PUBLIC"
    return "TO " + ", ".join(quote_role(role) for role in roles)


class RLSHandler(OperationRouter):
    """Handler for row-level security management."""

    name = TOOL_MANAGE_RLS
    description = (
        "Manage PostgreSQL Row-Level Security - enable/disable RLS and manage policies. "
        "Examples: operation=\"enable\" with tableName=\"users\", "
        "operation=\"create_policy\" with tableName, policyName, using, check"
    )
    input_schema = object_schema({
        "operation": operation_property(
            ["enable", "disable", "create_policy", "edit_policy", "drop_policy", "get_policies"],
            "Operation: enable/disable RLS, create_policy, edit_policy, drop_policy, get_policies"
        ),
        "tableName": string_property(
            "Table name (required for enable/disable/create_policy/edit_policy/drop_policy, optional filter for get_policies)"
        ),
        "schema": SCHEMA_PROPERTY,
        "policyName": string_property("Policy name (required for create_policy/edit_policy/drop_policy)"),
        "using": string_property("USING expression (create_policy needs using and/or check; optional for edit_policy)"),
        "check": string_property("WITH CHECK expression (create_policy/edit_policy)"),
        "command": string_property(
            "Command the policy applies to (create_policy, defaults to ALL)",
            enum=["ALL", "SELECT", "INSERT", "UPDATE", "DELETE"]
        ),
        "role": string_property("Single role the policy applies to (create_policy)"),
        "roles": string_array_property("Roles the policy applies to (create_policy/edit_policy); empty means PUBLIC"),
        "replace": boolean_property("Drop and recreate the policy if it exists (create_policy)"),
        "ifExists": boolean_property("Include IF EXISTS (drop_policy)"),
    }, required=["operation"])

    operations = {
        "enable": Operation(TableArgs, "_enable_rls"),
        "disable": Operation(TableArgs, "_disable_rls"),
        "create_policy": Operation(
            CreatePolicyArgs, "_create_policy", hint="A policy needs a USING expression, a WITH CHECK expression, or both"
        ),
        "edit_policy": Operation(EditPolicyArgs, "_edit_policy"),
        "drop_policy": Operation(DropPolicyArgs, "_drop_policy"),
        "get_policies": Operation(GetPoliciesArgs, "_get_policies", returns_rows=True),
    }

    def extra_missing(self, operation, arguments):
        if operation == "create_policy":
            return missing_one_of(arguments, ["using", "check"])
        return []

    async def _set_rls(self, db: ConnectionHandle, args: TableArgs, enable: bool) -> OperationResult:
        status = await db.query_one(queries.QUERY_RLS_STATUS, [args.schema_name, args.table_name])
        previously = bool(status and status["enabled"])

        action = "ENABLE" if enable else "DISABLE"
        await db.execute(f"ALTER TABLE {qualified_name(args.schema_name, args.table_name)} {action} ROW LEVEL SECURITY")
        logger.info(f"{action} RLS on {args.schema_name}.{args.table_name}")

        state = "enabled" if enable else "disabled"
        message = f"Row-Level Security {state} on {args.schema_name}.{args.table_name}"
        if previously == enable:
            message += f" (was already {state})"
        return OperationResult(
            message=message,
            details={
                "table": args.table_name,
                "schema": args.schema_name,
                "rlsEnabled": enable,
                "changed": previously != enable
            }
        )

    async def _enable_rls(self, db: ConnectionHandle, args: TableArgs) -> OperationResult:
        return await self._set_rls(db, args, True)

    async def _disable_rls(self, db: ConnectionHandle, args: TableArgs) -> OperationResult:
        return await self._set_rls(db, args, False)

    async def _create_policy(self, db: ConnectionHandle, args: CreatePolicyArgs) -> OperationResult:
        table = qualified_name(args.schema_name, args.table_name)
        policy = quote_identifier(args.policy_name)

        roles = list(args.roles or [])
        if args.role:
            roles.insert(0, args.role)

        sql = f"CREATE POLICY {policy} ON {table}\nFOR {args.command}"
        if roles:
            sql += f"\n{roles_clause(roles)}"
        if args.using:
            sql += f"\nUSING ({args.using})"
        if args.check:
            sql += f"\nWITH CHECK ({args.check})"

        if args.replace:
            async with db.transaction():
                await db.execute(f"DROP POLICY IF EXISTS {policy} ON {table}")
                await db.execute(sql)
        else:
            await db.execute(sql)
        logger.info(f"Created policy {args.policy_name} on {args.schema_name}.{args.table_name}")

        return OperationResult(
            message=f"Policy {args.policy_name} created successfully on {args.schema_name}.{args.table_name}",
            details={
                "table": args.table_name,
                "schema": args.schema_name,
                "policy": args.policy_name,
                "command": args.command,
                "roles": roles or ["PUBLIC"],
                "using": args.using,
                "check": args.check
            }
        )

    async def _edit_policy(self, db: ConnectionHandle, args: EditPolicyArgs) -> OperationResult:
        clauses = []
        if args.roles is not None:
            clauses.append(roles_clause(args.roles))
        if args.using is not None:
            clauses.append(f"USING ({args.using})")
        if args.check is not None:
            clauses.append(f"WITH CHECK ({args.check})")

        details = {"table": args.table_name, "schema": args.schema_name, "policy": args.policy_name}
        if not clauses:
            return OperationResult(success=False, message="No changes specified for the policy.", details=details)

        table = qualified_name(args.schema_name, args.table_name)
        await db.execute(f"ALTER POLICY {quote_identifier(args.policy_name)} ON {table}\n" + "\n".join(clauses))

        details["changes"] = clauses
        return OperationResult(
            message=f"Policy {args.policy_name} on {args.schema_name}.{args.table_name} updated successfully.",
            details=details
        )

    async def _drop_policy(self, db: ConnectionHandle, args: DropPolicyArgs) -> OperationResult:
        if_exists = "IF EXISTS " if args.if_exists else ""
        table = qualified_name(args.schema_name, args.table_name)
        await db.execute(f"DROP POLICY {if_exists}{quote_identifier(args.policy_name)} ON {table}")

        return OperationResult(
            message=f"Policy {args.policy_name} dropped successfully from {args.schema_name}.{args.table_name}",
            details={"table": args.table_name, "schema": args.schema_name, "policy": args.policy_name}
        )

    async def _get_policies(self, db: ConnectionHandle, args: GetPoliciesArgs) -> OperationResult:
        sql = queries.QUERY_GET_POLICIES
        params = [args.schema_name]
        if args.table_name:
            sql += " AND tablename = $2"
            params.append(args.table_name)
        sql += " ORDER BY tablename, policyname"

        policies = await db.query(sql, params)
        message = (
            f"Policies for table {args.schema_name}.{args.table_name}" if args.table_name
            else f"All policies in schema {args.schema_name}"
        )
        return OperationResult(message=message, details=policies)
