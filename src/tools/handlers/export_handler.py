"""Table data export and import handlers (JSON and CSV files)."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import Field

from core.error_handling import json_default
from core.exceptions import ToolExecutionError, ToolValidationError
from database.async_connectors import ConnectionHandle
from tools.base import OperationResult, ToolContext, ToolHandler
from tools import queries
from tools.definitions import (
    SCHEMA_PROPERTY,
    TOOL_EXPORT_TABLE_DATA,
    TOOL_IMPORT_TABLE_DATA,
    boolean_property,
    integer_property,
    object_schema,
    string_property,
)
from tools.handlers.query_handler import rows_affected
from tools.validators import SchemaArguments, qualified_name, quote_identifier, validate_arguments

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
JSON_TYPES = {"json", "jsonb"}


def detect_format(path: str, explicit: Optional[str]) -> str:
    if explicit:
        return explicit
    return "csv" if Path(path).suffix.lower() == ".csv" else "json"


def csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=json_default)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return json_default(value)
    return value


def write_rows(path: Path, rows: List[Dict[str, Any]], file_format: str, delimiter: str = ","):
    """Write rows to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if file_format == "json":
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(rows, f, indent=2, ensure_ascii=False, default=json_default)
        return

    with open(path, 'w', encoding='utf-8', newline='') as f:
        if not rows:
            return
        writer = csv.DictWriter(f, fieldnames=list(rows[0]), delimiter=delimiter)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: csv_value(v) for k, v in row.items()})


def read_rows(path: Path, file_format: str, delimiter: str = ",") -> List[Dict[str, Any]]:
    """Read rows from a JSON array or a CSV file with a header line.

    Empty CSV fields become NULL.
    """
    if file_format == "json":
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
            raise ToolValidationError(f"{path} must contain a JSON array of objects")
        return data

    with open(path, 'r', encoding='utf-8', newline='') as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        return [{k: (v if v != "" else None) for k, v in row.items()} for row in reader]


def column_union(rows: Iterable[Dict[str, Any]]) -> List[str]:
    """Column names across all rows, in first-seen order."""
    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


def decode_json_columns(rows: List[Dict[str, Any]], json_columns: Iterable[str]) -> List[Dict[str, Any]]:
    """Parse JSON text bound for json/jsonb columns.

    json_populate_recordset stores a JSON string as a string scalar in a
    json column, so documents read as text are decoded first. Text that is
    not valid JSON stays a string value.
    """
    json_columns = set(json_columns)
    if not json_columns:
        return rows
    decoded = []
    for row in rows:
        row = dict(row)
        for column in row.keys() & json_columns:
            value = row[column]
            if isinstance(value, str):
                try:
                    row[column] = json.loads(value)
                except ValueError:
                    continue
        decoded.append(row)
    return decoded


def chunks(rows: List[Dict[str, Any]], size: int):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


async def insert_rows(db: ConnectionHandle, table: str, columns: List[str], rows: List[Dict[str, Any]], batch_size: int) -> int:
    """Insert rows batch by batch, each batch bound as one JSON array parameter."""
    column_list = ", ".join(quote_identifier(c) for c in columns)
    sql = (
        f"INSERT INTO {table} ({column_list}) "
        f"SELECT {column_list} FROM json_populate_recordset(NULL::{table}, $1::json)"
    )
    inserted = 0
    for batch in chunks(rows, batch_size):
        status = await db.execute(sql, [json.dumps(batch, default=json_default)])
        inserted += rows_affected(status)
    return inserted


class ExportArgs(SchemaArguments):
    table_name: str = Field(alias="tableName")
    output_path: str = Field(alias="outputPath")
    format: Optional[Literal["json", "csv"]] = None
    where: Optional[str] = None
    limit: Optional[int] = Field(default=None, gt=0)
    delimiter: str = ","


class ExportTableDataHandler(ToolHandler):
    """Handler for exporting table rows to a file."""

    name = TOOL_EXPORT_TABLE_DATA
    description = (
        "Export table data to a JSON or CSV file. The format defaults to the file extension "
        "(.csv for CSV, anything else JSON)"
    )
    input_schema = object_schema({
        "tableName": string_property("Table to export (required)"),
        "schema": SCHEMA_PROPERTY,
        "outputPath": string_property("File to write (required)"),
        "format": string_property("Output format", enum=["json", "csv"]),
        "where": string_property("Optional WHERE condition"),
        "limit": integer_property("Maximum rows to export"),
        "delimiter": string_property("CSV delimiter (defaults to ,)"),
    }, required=["tableName", "outputPath"])

    async def execute(self, arguments: Dict[str, Any], context: ToolContext):
        args = validate_arguments(ExportArgs, arguments, "export")
        file_format = detect_format(args.output_path, args.format)

        sql = f"SELECT * FROM {qualified_name(args.schema_name, args.table_name)}"
        if args.where:
            sql += f" WHERE {args.where}"
        if args.limit:
            sql += f" LIMIT {int(args.limit)}"

        async with context.connection(args.connection_string) as db:
            rows = await db.query(sql)

        path = Path(args.output_path)
        try:
            write_rows(path, rows, file_format, args.delimiter)
        except OSError as e:
            raise ToolExecutionError(f"Failed to write {path}: {e}") from e

        logger.info(f"Exported {len(rows)} rows from {args.schema_name}.{args.table_name} to {path}")
        return self._result_response(OperationResult(
            message=f"Exported {len(rows)} rows from {args.schema_name}.{args.table_name} to {path}",
            details={"rowCount": len(rows), "outputPath": str(path), "format": file_format}
        ))


class ImportArgs(SchemaArguments):
    table_name: str = Field(alias="tableName")
    input_path: str = Field(alias="inputPath")
    format: Optional[Literal["json", "csv"]] = None
    truncate_first: bool = Field(default=False, alias="truncateFirst")
    delimiter: str = ","
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0, alias="batchSize")


class ImportTableDataHandler(ToolHandler):
    """Handler for importing file rows into a table."""

    name = TOOL_IMPORT_TABLE_DATA
    description = (
        "Import rows from a JSON array or CSV file into a table in one transaction. "
        "Values are converted to the table's column types; empty CSV fields become NULL"
    )
    input_schema = object_schema({
        "tableName": string_property("Target table (required)"),
        "schema": SCHEMA_PROPERTY,
        "inputPath": string_property("File to read (required)"),
        "format": string_property("Input format (defaults to the file extension)", enum=["json", "csv"]),
        "truncateFirst": boolean_property("Truncate the table before importing"),
        "delimiter": string_property("CSV delimiter (defaults to ,)"),
        "batchSize": integer_property("Rows per INSERT statement (default 1000)"),
    }, required=["tableName", "inputPath"])

    async def execute(self, arguments: Dict[str, Any], context: ToolContext):
        args = validate_arguments(ImportArgs, arguments, "import")
        file_format = detect_format(args.input_path, args.format)

        path = Path(args.input_path)
        try:
            rows = read_rows(path, file_format, args.delimiter)
        except (OSError, json.JSONDecodeError, csv.Error) as e:
            raise ToolExecutionError(f"Failed to read {path}: {e}") from e

        table = qualified_name(args.schema_name, args.table_name)
        columns = column_union(rows)

        async with context.connection(args.connection_string) as db:
            target_columns = await db.query(queries.QUERY_GET_COLUMNS, [args.schema_name, args.table_name])
            json_columns = [c["name"] for c in target_columns if c["udtName"] in JSON_TYPES]
            rows = decode_json_columns(rows, json_columns)

            async with db.transaction():
                if args.truncate_first:
                    await db.execute(f"TRUNCATE TABLE {table}")
                imported = await insert_rows(db, table, columns, rows, args.batch_size) if rows else 0

        logger.info(f"Imported {imported} rows into {args.schema_name}.{args.table_name} from {path}")
        return self._result_response(OperationResult(
            message=f"Imported {imported} rows into {args.schema_name}.{args.table_name}",
            details={
                "rowCount": imported,
                "inputPath": str(path),
                "format": file_format,
                "truncated": args.truncate_first
            }
        ))
