"""FormSync: a reactive form validation engine.

FormSync keeps a mutable tree of raw user input in sync with a validated
representation:
- Path-addressed writes into the raw input tree
- Full-tree validation diffed into per-field error messages, so fields whose
  errors did not change are left untouched
- Validation requests coalesced by an asyncio worker, with priority requests
  flushed immediately
- A submit lifecycle that touches every field and focuses the first error

Basic usage:
    >>> from formsync import Form
    >>> schema = {
    ...     "type": "object",
    ...     "properties": {"name": {"type": "string", "minLength": 1}},
    ...     "required": ["name"]
    ... }
    >>> form = Form(schema)
    >>> form.root.fields["name"].set_raw_input("Alice")
    >>> form.is_dirty
    True
"""

__version__ = "0.1.0"
__author__ = "FormSync Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formsync.context import form_context, get_form_context
from formsync.errors import (
    DecodeError,
    FormContextError,
    FormSyncError,
    Issue,
    PathWriteError,
    ReentrantValidationError,
    SchedulerConfigurationError,
)
from formsync.fields import ArrayField, Field, ObjectField
from formsync.focus import Rect
from formsync.form import Form, FormOptions, SetActionOptions
from formsync.scheduler import ValidationWorker
from formsync.schema import JsonSchemaAdapter, SchemaAdapter
from formsync.types import EventType, FocusPolicy

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "Form",
    "FormOptions",
    "SetActionOptions",
    "ValidationWorker",
    "Field",
    "ObjectField",
    "ArrayField",
    "Rect",
    "SchemaAdapter",
    "JsonSchemaAdapter",
    "Issue",
    "DecodeError",
    "EventType",
    "FocusPolicy",
    "form_context",
    "get_form_context",
    "FormSyncError",
    "PathWriteError",
    "SchedulerConfigurationError",
    "ReentrantValidationError",
    "FormContextError",
]
