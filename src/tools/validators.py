"""Argument validation and SQL identifier safety.

Identifiers (schema, table, column, role, policy names) cannot be bound as
statement parameters, so every one of them goes through
``quote_identifier`` before it is placed into SQL text. Values always go
through positional parameters; ``quote_literal`` exists only for the few
statements PostgreSQL will not parameterize (``COMMENT ON``, enum labels).
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.exceptions import InvalidIdentifierError, MissingArgumentError, ToolValidationError

MAX_IDENTIFIER_BYTES = 63

ROLE_KEYWORDS = {"PUBLIC", "CURRENT_USER", "CURRENT_ROLE", "SESSION_USER"}

ArgumentsT = TypeVar("ArgumentsT", bound=BaseModel)


class InputValidator:
    """General input validation utilities."""

    @staticmethod
    def validate_identifier(name: Any) -> Tuple[bool, str]:
        """
        Check that a value can be used as an SQL identifier.

        Args:
            name: Candidate identifier

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not isinstance(name, str) or not name.strip():
            return False, "Identifier cannot be empty"

        if "\x00" in name:
            return False, "Identifier cannot contain NUL characters"

        if len(name.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
            return False, f"Identifier too long (max {MAX_IDENTIFIER_BYTES} bytes): {name[:20]}..."

        return True, ""

    @staticmethod
    def validate_limit(limit: int, max_limit: Optional[int] = None) -> Tuple[bool, str]:
        """
        Validate query result limit.

        Args:
            limit: Requested limit value
            max_limit: Maximum allowed limit

        Returns:
            Tuple of (is_valid, error_message)
        """
        if limit < 0:
            return False, "Limit cannot be negative"

        if max_limit is not None and limit > max_limit:
            return False, f"Limit exceeds maximum allowed ({max_limit})"

        return True, ""


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling any embedded quote.

    Quoting is unconditional, so names keep their exact case.

    Raises:
        InvalidIdentifierError: If the name is empty, contains NUL or is too long
    """
    is_valid, error = InputValidator.validate_identifier(name)
    if not is_valid:
        raise InvalidIdentifierError(error, details={"identifier": name})
    return '"' + name.replace('"', '""') + '"'


def qualified_name(schema: Optional[str], name: str) -> str:
    """``"schema"."name"``, or just ``"name"`` when no schema is given."""
    if schema:
        return f"{quote_identifier(schema)}.{quote_identifier(name)}"
    return quote_identifier(name)


def quote_role(role: str) -> str:
    """Quote a role name, leaving PUBLIC / CURRENT_USER style keywords bare."""
    if isinstance(role, str) and role.strip().upper() in ROLE_KEYWORDS:
        return role.strip().upper()
    return quote_identifier(role)


def quote_literal(value: str) -> str:
    """Render a string as an SQL literal with single quotes doubled."""
    if "\x00" in value:
        raise InvalidIdentifierError("String literal cannot contain NUL characters")
    return "'" + value.replace("'", "''") + "'"


def dollar_quote(body: str, tag: str = "body") -> str:
    """Dollar-quote a body using a tag that does not occur inside it."""
    candidate = f"${tag}$"
    counter = 0
    while candidate in body:
        counter += 1
        candidate = f"${tag}{counter}$"
    return f"{candidate}{body}{candidate}"


class ToolArguments(BaseModel):
    """Base record for one operation's arguments.

    Field names are snake_case; clients send the camelCase aliases.
    Unknown keys (including the ``operation`` discriminant) are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    connection_string: Optional[str] = Field(default=None, alias="connectionString")


class SchemaArguments(ToolArguments):
    """Arguments that target a schema, defaulting to ``public``."""

    schema_name: str = Field(default="public", alias="schema")


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def _field_key(name: str, field) -> str:
    return field.alias or name


def validate_arguments(
    model: Type[ArgumentsT],
    arguments: Optional[Dict[str, Any]],
    operation: Optional[str] = None,
    hint: Optional[str] = None,
    extra_missing: Sequence[str] = ()
) -> ArgumentsT:
    """
    Validate raw tool arguments against an operation's argument record.

    Presence is checked first so every missing required field is reported
    in one error; type and enum violations are then reported together.

    Args:
        model: Argument record for the selected operation
        arguments: Raw arguments from the tool call
        operation: Operation name, used in messages
        hint: Extra guidance appended to the missing-argument message
        extra_missing: Conditionally required fields the caller found
            absent, reported in the same error as the record's own

    Returns:
        Validated argument record

    Raises:
        MissingArgumentError: If required fields are absent or blank
        ToolValidationError: If present values have the wrong shape
    """
    cleaned = {k: v for k, v in (arguments or {}).items() if v is not None}

    missing: List[str] = []
    for name, field in model.model_fields.items():
        if not field.is_required():
            continue
        key = _field_key(name, field)
        value = cleaned.get(key, cleaned.get(name))
        if is_blank(value):
            missing.append(key)
    missing.extend(name for name in extra_missing if name not in missing)

    if missing:
        raise MissingArgumentError(missing, operation, hint)

    try:
        return model.model_validate(cleaned)
    except ValidationError as e:
        problems = [_describe_error(error) for error in e.errors()]
        scope = f" for {operation} operation" if operation else ""
        raise ToolValidationError(
            f"Invalid arguments{scope}: " + "; ".join(problems),
            problems=problems
        ) from e


def _describe_error(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
    return f"{location}: {error.get('msg', 'invalid value')}"


def missing_one_of(arguments: Optional[Dict[str, Any]], keys: Sequence[str]) -> List[str]:
    """Report ``a|b`` when none of several alternative arguments was supplied."""
    arguments = arguments or {}
    if all(is_blank(arguments.get(key)) for key in keys):
        return ["|".join(keys)]
    return []
