"""Operation router: one wide tool, several operations chosen by ``operation``."""

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Type

from mcp.types import CallToolResult

from core.exceptions import MissingArgumentError, UnknownOperationError
from tools.base import OperationResult, ToolContext, ToolHandler
from tools.validators import ToolArguments, validate_arguments

logger = logging.getLogger(__name__)


class Operation(NamedTuple):
    """One branch of a wide tool.

    ``arguments`` is the branch's own argument record: its required fields
    are the branch's required arguments even though the advertised schema
    marks them optional.
    """

    arguments: Type[ToolArguments]
    handler: str
    returns_rows: bool = False
    hint: Optional[str] = None


class OperationRouter(ToolHandler):
    """
    Base class for tools that consolidate several operations.

    Subclasses fill ``operations`` and implement one coroutine per branch,
    ``async def _branch(self, db, args) -> OperationResult``. All argument
    checks happen before a connection is acquired.
    """

    operations: Dict[str, Operation] = {}

    @property
    def operation_names(self):
        return list(self.operations)

    def resolve_operation(self, arguments: Dict[str, Any]) -> str:
        """Validate the ``operation`` discriminant.

        Raises:
            MissingArgumentError: If ``operation`` is absent
            UnknownOperationError: If it is outside the operation set
        """
        operation = arguments.get("operation")
        supported = ", ".join(self.operation_names)
        if operation is None or (isinstance(operation, str) and not operation.strip()):
            raise MissingArgumentError(["operation"], hint=f"Supported operations: {supported}")
        if not isinstance(operation, str) or operation not in self.operations:
            raise UnknownOperationError(operation, self.operation_names)
        return operation

    def extra_missing(self, operation: str, arguments: Dict[str, Any]) -> List[str]:
        """Fields a branch requires only in some cases, found absent in ``arguments``.

        Reported together with the branch record's own missing fields.
        """
        return []

    def parse(self, arguments: Dict[str, Any]):
        """Return ``(operation, validated arguments)`` without touching the database."""
        operation = self.resolve_operation(arguments)
        branch = self.operations[operation]
        args = validate_arguments(
            branch.arguments, arguments, operation, branch.hint,
            extra_missing=self.extra_missing(operation, arguments)
        )
        return operation, args

    async def execute(self, arguments: Dict[str, Any], context: ToolContext) -> CallToolResult:
        operation, args = self.parse(arguments)
        branch = self.operations[operation]

        async with context.connection(args.connection_string) as db:
            result: OperationResult = await getattr(self, branch.handler)(db, args)

        logger.debug(f"{self.name}.{operation} -> success={result.success}")
        return self._result_response(result, branch.returns_rows)
