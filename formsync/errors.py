"""Issue data classes and the exception taxonomy for FormSync.

Two kinds of problems exist in the engine:

- Expected, user-caused problems (a field fails validation, raw input cannot
  be decoded yet). These are values: ``Issue`` and ``DecodeError``. They are
  recovered into field-local state and never raised.
- Programmer errors (inconsistent configuration, malformed structural writes,
  reentrant validation, misuse of the form context). These subclass
  ``FormSyncError`` and are raised immediately.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from formsync.types import IssueCode, Path


@dataclass(frozen=True)
class Issue:
    """A single validation failure tied to a path.

    Issues are recomputed on every validation pass and never accumulated.

    Attributes:
        path: Path of the offending node (``()`` for the root)
        message: Human-readable error description
        code: Specific issue code
        expected: Optional - what was expected (type, format, enum values, etc.)
        received: Optional - what was actually received

    Examples:
        >>> issue = Issue(
        ...     path=("contact", "email"),
        ...     message="Field 'contact.email' has invalid format. Expected format: email",
        ...     code=IssueCode.INVALID_FORMAT,
        ... )
        >>> issue.path
        ('contact', 'email')
    """
    path: Path
    message: str
    code: IssueCode = IssueCode.CUSTOM
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "path": list(self.path),
            "code": self.code.value if isinstance(self.code, IssueCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        """Create Issue from dict."""
        code = data.get("code", IssueCode.CUSTOM)
        if isinstance(code, str):
            code = IssueCode(code)
        return cls(
            path=tuple(data["path"]),
            message=data["message"],
            code=code,
            expected=data.get("expected"),
            received=data.get("received"),
        )


@dataclass(frozen=True)
class DecodeError:
    """Why a raw value could not be strictly decoded.

    Attributes:
        path: Path of the first value that could not be decoded
        message: Human-readable description
    """
    path: Path
    message: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {"path": list(self.path), "message": self.message}


class FormSyncError(Exception):
    """Base class for programmer errors raised by the engine."""


class PathWriteError(FormSyncError, TypeError):
    """Raised when a structural write meets an incompatible intermediate node.

    Attributes:
        path: The full path being written
        position: Index into ``path`` where the write failed
    """

    def __init__(self, path: Path, position: int, message: str):
        self.path = path
        self.position = position
        super().__init__(message)


class SchedulerConfigurationError(FormSyncError):
    """Raised when the background validation worker is started on a form
    configured to always validate synchronously."""


class ReentrantValidationError(FormSyncError):
    """Raised when a validation pass is requested from inside another one."""


class FormContextError(FormSyncError, LookupError):
    """Raised when the current form is requested outside ``form_context``."""


__all__ = [
    "Issue",
    "DecodeError",
    "FormSyncError",
    "PathWriteError",
    "SchedulerConfigurationError",
    "ReentrantValidationError",
    "FormContextError",
]
