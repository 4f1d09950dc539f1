"""Tool handlers package."""

from typing import List

from tools.base import ToolHandler
from tools.handlers.analysis_handler import AnalyzeDatabaseHandler, DebugDatabaseHandler
from tools.handlers.comments_handler import CommentsHandler
from tools.handlers.copy_handler import CopyBetweenDatabasesHandler
from tools.handlers.export_handler import ExportTableDataHandler, ImportTableDataHandler
from tools.handlers.functions_handler import FunctionsHandler
from tools.handlers.index_handler import IndexHandler
from tools.handlers.monitor_handler import MonitorDatabaseHandler
from tools.handlers.query_handler import ExecuteMutationHandler, ExecuteQueryHandler, ExecuteSQLHandler
from tools.handlers.rls_handler import RLSHandler
from tools.handlers.schema_handler import SchemaHandler
from tools.handlers.triggers_handler import TriggersHandler

__all__ = [
    'AnalyzeDatabaseHandler',
    'DebugDatabaseHandler',
    'FunctionsHandler',
    'RLSHandler',
    'CommentsHandler',
    'TriggersHandler',
    'SchemaHandler',
    'IndexHandler',
    'ExecuteQueryHandler',
    'ExecuteMutationHandler',
    'ExecuteSQLHandler',
    'MonitorDatabaseHandler',
    'ExportTableDataHandler',
    'ImportTableDataHandler',
    'CopyBetweenDatabasesHandler',
    'create_default_handlers',
]


def create_default_handlers() -> List[ToolHandler]:
    """One instance of every tool, in advertised order."""
    return [
        AnalyzeDatabaseHandler(),
        DebugDatabaseHandler(),
        FunctionsHandler(),
        RLSHandler(),
        CommentsHandler(),
        TriggersHandler(),
        SchemaHandler(),
        IndexHandler(),
        ExecuteQueryHandler(),
        ExecuteMutationHandler(),
        ExecuteSQLHandler(),
        MonitorDatabaseHandler(),
        ExportTableDataHandler(),
        ImportTableDataHandler(),
        CopyBetweenDatabasesHandler(),
    ]
