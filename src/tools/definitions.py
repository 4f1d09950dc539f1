"""MCP tool names and shared input-schema fragments."""

from typing import Any, Dict, Iterable, List, Optional

# Tool name constants (registry order)
TOOL_ANALYZE_DATABASE = "pg_analyze_database"
TOOL_DEBUG_DATABASE = "pg_debug_database"
TOOL_MANAGE_FUNCTIONS = "pg_manage_functions"
TOOL_MANAGE_RLS = "pg_manage_rls"
TOOL_MANAGE_COMMENTS = "pg_manage_comments"
TOOL_MANAGE_TRIGGERS = "pg_manage_triggers"
TOOL_MANAGE_SCHEMA = "pg_manage_schema"
TOOL_MANAGE_INDEXES = "pg_manage_indexes"
TOOL_EXECUTE_QUERY = "pg_execute_query"
TOOL_EXECUTE_MUTATION = "pg_execute_mutation"
TOOL_EXECUTE_SQL = "pg_execute_sql"
TOOL_MONITOR_DATABASE = "pg_monitor_database"
TOOL_EXPORT_TABLE_DATA = "pg_export_table_data"
TOOL_IMPORT_TABLE_DATA = "pg_import_table_data"
TOOL_COPY_BETWEEN_DATABASES = "pg_copy_between_databases"

ALL_TOOL_NAMES = [
    TOOL_ANALYZE_DATABASE,
    TOOL_DEBUG_DATABASE,
    TOOL_MANAGE_FUNCTIONS,
    TOOL_MANAGE_RLS,
    TOOL_MANAGE_COMMENTS,
    TOOL_MANAGE_TRIGGERS,
    TOOL_MANAGE_SCHEMA,
    TOOL_MANAGE_INDEXES,
    TOOL_EXECUTE_QUERY,
    TOOL_EXECUTE_MUTATION,
    TOOL_EXECUTE_SQL,
    TOOL_MONITOR_DATABASE,
    TOOL_EXPORT_TABLE_DATA,
    TOOL_IMPORT_TABLE_DATA,
    TOOL_COPY_BETWEEN_DATABASES,
]


CONNECTION_STRING_PROPERTY = {
    "type": "string",
    "description": "PostgreSQL connection string (optional, defaults to the server's connection string)"
}

SCHEMA_PROPERTY = {
    "type": "string",
    "description": "Schema name (defaults to public)"
}

TABLE_NAME_PROPERTY = {
    "type": "string",
    "description": "Table name"
}


def string_property(description: str, enum: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """A string property, optionally restricted to an enumerated set."""
    prop: Dict[str, Any] = {"type": "string", "description": description}
    if enum is not None:
        prop["enum"] = list(enum)
    return prop


def boolean_property(description: str) -> Dict[str, Any]:
    return {"type": "boolean", "description": description}


def integer_property(description: str) -> Dict[str, Any]:
    return {"type": "integer", "description": description}


def string_array_property(description: str) -> Dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


def operation_property(operations: Iterable[str], description: str) -> Dict[str, Any]:
    return string_property(description, enum=operations)


def object_schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    """JSON Schema for a tool input; every tool accepts ``connectionString``."""
    return {
        "type": "object",
        "properties": {"connectionString": CONNECTION_STRING_PROPERTY, **properties},
        "required": list(required or [])
    }
