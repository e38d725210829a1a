"""Schema adapter for FormSync.

The form engine only needs three things from a schema: turn a typed value
into raw input (``encode``), turn raw input back into the schema's input
shape (``decode``, strict or loose), and validate a whole tree into a typed
value or a list of issues (``parse``). ``SchemaAdapter`` is that contract.

``JsonSchemaAdapter`` implements it on top of the jsonschema library. Raw
input is what form widgets hold, mostly text, so decoding coerces text to the
scalar types the schema declares before validation runs.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple
import logging

import jsonschema
from dateutil.parser import isoparse
from jsonschema import Draft7Validator, FormatChecker
from typing_extensions import Protocol, runtime_checkable

from formsync.errors import DecodeError, Issue
from formsync.types import IssueCode, Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding raw input.

    Attributes:
        success: Whether decoding succeeded
        data: The decoded value (best effort when decoded loosely)
        error: Why strict decoding failed, None on success
    """
    success: bool
    data: Any = None
    error: Optional[DecodeError] = None


@dataclass(frozen=True)
class ParseResult:
    """Outcome of a full-tree validation.

    Attributes:
        success: Whether the value passed all validation checks
        data: The validated value, None on failure
        issues: Issues found (empty on success)
    """
    success: bool
    data: Any = None
    issues: Tuple[Issue, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "success": self.success,
            "issues": [issue.to_dict() for issue in self.issues],
        }
        if self.data is not None:
            result["data"] = self.data
        return result


@runtime_checkable
class SchemaAdapter(Protocol):
    """What the form engine needs from a schema.

    ``parse`` must be pure: applying its result to the field tree is the
    form's job.
    """

    @property
    def node(self) -> Dict[str, Any]:
        """Schema node the field tree is built from."""
        ...

    def get_initial_output(self) -> Any:
        ...

    def encode(self, output: Any) -> Any:
        ...

    def decode(self, raw: Any, loose: bool = False) -> DecodeResult:
        ...

    def parse(self, raw: Any) -> ParseResult:
        ...


class _DecodeFailure(Exception):
    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(message)


# Marks an empty scalar input; dropped from its parent object.
_ABSENT = object()

_TRUE_STRINGS = {"true", "on", "yes", "1"}
_FALSE_STRINGS = {"false", "off", "no", "0"}


def _node_type(node: Dict[str, Any]) -> Optional[str]:
    node_type = node.get("type")
    if isinstance(node_type, list):
        # ["string", "null"] style: first non-null type wins
        non_null = [t for t in node_type if t != "null"]
        return non_null[0] if non_null else "null"
    return node_type


def _is_empty(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def _format_path(path: Path) -> str:
    return ".".join(str(p) for p in path)


def _missing_property(error: jsonschema.ValidationError) -> str:
    """Name of the absent property a 'required' error reports.

    jsonschema raises one error per missing name, worded as the name's repr,
    so names holding quotes are matched against the repr rather than split.
    """
    instance = error.instance if isinstance(error.instance, dict) else {}
    missing = [name for name in error.validator_value if name not in instance]
    for name in missing:
        if error.message == f"{name!r} is a required property":
            return name
    return missing[0] if missing else "field"


def _build_format_checker() -> FormatChecker:
    checker = FormatChecker()

    @checker.checks("date-time", raises=(ValueError, OverflowError))
    def _is_datetime(instance: Any) -> bool:
        if not isinstance(instance, str):
            return True
        isoparse(instance)
        return "T" in instance.upper()

    @checker.checks("date", raises=(ValueError, OverflowError))
    def _is_date(instance: Any) -> bool:
        if not isinstance(instance, str):
            return True
        parsed = isoparse(instance)
        return parsed.hour == parsed.minute == parsed.second == 0 and len(instance) <= 10

    return checker


class JsonSchemaAdapter:
    """JSON Schema implementation of ``SchemaAdapter``.

    Attributes:
        schema: The JSON Schema definition (Draft 7 or compatible)
        validator: The underlying jsonschema validator instance

    Examples:
        >>> adapter = JsonSchemaAdapter({
        ...     "type": "object",
        ...     "properties": {"age": {"type": "number"}},
        ...     "required": ["age"],
        ... })
        >>> adapter.decode({"age": "12"}).data
        {'age': 12}
        >>> adapter.decode({"age": "12a"}).success
        False
        >>> adapter.decode({"age": "12a"}, loose=True).data
        {'age': '12a'}
    """

    def __init__(self, schema: Dict[str, Any]) -> None:
        """Initialize the adapter with a JSON Schema.

        Raises:
            jsonschema.SchemaError: If the provided schema is invalid
        """
        self.schema = schema
        Draft7Validator.check_schema(schema)
        self.validator = Draft7Validator(schema, format_checker=_build_format_checker())

    @property
    def node(self) -> Dict[str, Any]:
        return self.schema

    def get_initial_output(self) -> Any:
        return self.schema.get("default")

    # -- encode ---------------------------------------------------------

    def encode(self, output: Any) -> Any:
        """Produce raw input from a (possibly absent) typed value."""
        return self._encode(self.schema, output)

    def _encode(self, node: Dict[str, Any], output: Any) -> Any:
        node_type = _node_type(node)

        if node_type == "object":
            source = output if isinstance(output, dict) else {}
            raw = {
                key: self._encode(child, source.get(key))
                for key, child in node.get("properties", {}).items()
            }
            # Keep keys the schema does not describe
            for key, value in source.items():
                raw.setdefault(key, value)
            return raw

        if node_type == "array":
            if not isinstance(output, (list, tuple)):
                return []
            items = node.get("items", {})
            return [self._encode(items, item) for item in output]

        if isinstance(output, datetime):
            return output.isoformat()
        if isinstance(output, date):
            return output.isoformat()

        if output is None:
            if node_type in ("string", "number", "integer"):
                return ""
            if node_type == "boolean":
                return False
        return output

    # -- decode ---------------------------------------------------------

    def decode(self, raw: Any, loose: bool = False) -> DecodeResult:
        """Decode raw input into the schema's input shape.

        Strict mode fails at the first value that cannot be coerced. Loose
        mode always succeeds and keeps such values unchanged, so that a full
        parse can still report on every field.
        """
        try:
            data = self._decode(self.schema, raw, loose, ())
        except _DecodeFailure as e:
            return DecodeResult(success=False, error=DecodeError(path=e.path, message=e.message))
        if data is _ABSENT:
            data = None
        return DecodeResult(success=True, data=data)

    def _fail(self, raw: Any, loose: bool, path: Path, message: str) -> Any:
        if loose:
            return raw
        raise _DecodeFailure(path, message)

    def _decode(self, node: Dict[str, Any], raw: Any, loose: bool, path: Path) -> Any:
        node_type = _node_type(node)

        if node_type == "object":
            if raw is None:
                return _ABSENT
            if not isinstance(raw, dict):
                return self._fail(raw, loose, path, f"Expected object, got {type(raw).__name__}")
            properties = node.get("properties", {})
            decoded = {}
            for key, value in raw.items():
                if key in properties:
                    value = self._decode(properties[key], value, loose, path + (key,))
                if value is not _ABSENT:
                    decoded[key] = value
            return decoded

        if node_type == "array":
            if raw is None:
                return _ABSENT
            if not isinstance(raw, (list, tuple)):
                return self._fail(raw, loose, path, f"Expected array, got {type(raw).__name__}")
            items = node.get("items", {})
            decoded_items = []
            for index, item in enumerate(raw):
                value = self._decode(items, item, loose, path + (index,))
                decoded_items.append(None if value is _ABSENT else value)
            return decoded_items

        if node_type in ("number", "integer"):
            return self._decode_number(node_type, raw, loose, path)

        if node_type == "boolean":
            if isinstance(raw, bool):
                return raw
            if _is_empty(raw):
                return _ABSENT
            if isinstance(raw, str):
                lowered = raw.strip().lower()
                if lowered in _TRUE_STRINGS:
                    return True
                if lowered in _FALSE_STRINGS:
                    return False
            return self._fail(raw, loose, path, f"Cannot read {raw!r} as a boolean")

        if node_type == "string":
            # An empty date or email input means "no value", not a malformed one
            if raw is None or (raw == "" and "format" in node):
                return _ABSENT
            if not isinstance(raw, str):
                return self._fail(raw, loose, path, f"Expected text, got {type(raw).__name__}")
            return raw

        return raw

    def _decode_number(self, node_type: str, raw: Any, loose: bool, path: Path) -> Any:
        if isinstance(raw, bool):
            return self._fail(raw, loose, path, f"Expected {node_type}, got bool")
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float):
            if node_type == "integer":
                if not raw.is_integer():
                    return self._fail(raw, loose, path, f"Expected integer, got {raw!r}")
                return int(raw)
            return raw
        if _is_empty(raw):
            return _ABSENT
        if isinstance(raw, str):
            text = raw.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                number = float(text)
            except ValueError:
                return self._fail(raw, loose, path, f"Cannot read {raw!r} as a {node_type}")
            if node_type == "integer":
                if not number.is_integer():
                    return self._fail(raw, loose, path, f"Cannot read {raw!r} as an integer")
                return int(number)
            return number
        return self._fail(raw, loose, path, f"Expected {node_type}, got {type(raw).__name__}")

    # -- parse ----------------------------------------------------------

    def parse(self, raw: Any) -> ParseResult:
        """Validate a whole (decoded) tree against the schema."""
        errors = list(self.validator.iter_errors(raw))
        if not errors:
            return ParseResult(success=True, data=raw)
        issues = tuple(self._translate_error(error) for error in errors)
        return ParseResult(success=False, issues=issues)

    def _translate_error(self, error: jsonschema.ValidationError) -> Issue:
        """Translate a jsonschema ValidationError to an Issue.

        Error mapping:
            - 'required' property errors -> REQUIRED (on the missing child's path)
            - 'type' errors -> INVALID_TYPE
            - 'format' and 'pattern' errors -> INVALID_FORMAT
            - 'enum' or 'const' errors -> INVALID_VALUE
            - 'minLength' / 'minItems' errors -> TOO_SHORT
            - 'maxLength' / 'maxItems' errors -> TOO_LONG
            - numeric bounds -> INVALID_VALUE
            - anything else -> CUSTOM
        """
        path: Path = tuple(error.absolute_path)
        label = _format_path(path) or "value"

        if error.validator == "required":
            full_path = path + (_missing_property(error),)
            return Issue(
                path=full_path,
                code=IssueCode.REQUIRED,
                message=f"Field '{_format_path(full_path)}' is required but was not provided",
                expected="required field",
            )

        if error.validator == "type":
            expected_type = error.validator_value
            received_type = type(error.instance).__name__
            return Issue(
                path=path,
                code=IssueCode.INVALID_TYPE,
                message=f"Field '{label}' has invalid type. Expected {expected_type}, got {received_type}",
                expected=expected_type,
                received=received_type,
            )

        if error.validator == "format":
            return Issue(
                path=path,
                code=IssueCode.INVALID_FORMAT,
                message=f"Field '{label}' has invalid format. Expected format: {error.validator_value}",
                expected=error.validator_value,
                received=error.instance,
            )

        if error.validator in ("enum", "const"):
            return Issue(
                path=path,
                code=IssueCode.INVALID_VALUE,
                message=f"Field '{label}' has invalid value. Must be one of: {error.validator_value}",
                expected=error.validator_value,
                received=error.instance,
            )

        if error.validator in ("minLength", "minItems"):
            actual = len(error.instance) if error.instance else 0
            return Issue(
                path=path,
                code=IssueCode.TOO_SHORT,
                message=f"Field '{label}' is too short. Minimum length: {error.validator_value}, got: {actual}",
                expected=f"minimum {error.validator_value}",
                received=actual,
            )

        if error.validator in ("maxLength", "maxItems"):
            actual = len(error.instance) if error.instance else 0
            return Issue(
                path=path,
                code=IssueCode.TOO_LONG,
                message=f"Field '{label}' is too long. Maximum length: {error.validator_value}, got: {actual}",
                expected=f"maximum {error.validator_value}",
                received=actual,
            )

        if error.validator in ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum"):
            return Issue(
                path=path,
                code=IssueCode.INVALID_VALUE,
                message=f"Field '{label}' violates {error.validator} constraint: {error.validator_value}",
                expected=f"{error.validator}: {error.validator_value}",
                received=error.instance,
            )

        if error.validator == "pattern":
            return Issue(
                path=path,
                code=IssueCode.INVALID_FORMAT,
                message=f"Field '{label}' does not match required pattern: {error.validator_value}",
                expected=f"pattern: {error.validator_value}",
                received=error.instance,
            )

        logger.debug("Untranslated validator %r at %s", error.validator, label)
        return Issue(
            path=path,
            code=IssueCode.CUSTOM,
            message=f"Field '{label}' validation failed: {error.message}",
            expected=error.validator_value,
            received=error.instance,
        )


__all__ = [
    "SchemaAdapter",
    "JsonSchemaAdapter",
    "DecodeResult",
    "ParseResult",
]
