"""Core type definitions for FormSync.

This module defines the fundamental types used throughout the FormSync engine:
- PathKey / Path: addressing of nodes in the raw input tree and field tree
- EventType: change notifications emitted by a form
- IssueCode: validation issue codes for individual fields
- FocusPolicy: ordering used when focusing the first erroring field

These types form the contract between the form engine, its schema adapter
and whatever UI layer observes it.
"""

from enum import Enum
from typing import Tuple, Union

from typing_extensions import Literal, TypeAlias

PathKey: TypeAlias = Union[str, int]
"""A single step into the raw input tree: a property name or a list index."""

Path: TypeAlias = Tuple[PathKey, ...]
"""Ordered sequence of keys identifying a node. ``()`` is the root."""


class EventType(str, Enum):
    """Change notifications emitted by a Form.

    Observers subscribe through ``form.events``. Field-level events are only
    emitted when the observed cell actually changed.
    """
    RAW_INPUT_CHANGED = "raw_input.changed"
    VALIDATION_REQUESTED = "validation.requested"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    FIELD_ERRORS_CHANGED = "field.errors_changed"
    FIELD_TOUCHED_CHANGED = "field.touched_changed"
    FIELD_FOCUSED = "field.focused"
    SUBMIT_STARTED = "submit.started"
    SUBMIT_SUCCEEDED = "submit.succeeded"
    SUBMIT_FAILED = "submit.failed"


class IssueCode(str, Enum):
    """Validation issue codes for individual field failures."""
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_LONG = "too_long"
    TOO_SHORT = "too_short"
    CUSTOM = "custom"


class FocusPolicy(str, Enum):
    """Which erroring field receives focus after a submit.

    FIRST_Y picks the smallest ``y`` then ``x`` (single column layouts),
    FIRST_X picks the smallest ``x`` then ``y`` (column by column layouts).
    """
    FIRST_Y = "first-y"
    FIRST_X = "first-x"


FocusSetting: TypeAlias = Union[Literal[False], FocusPolicy]
"""``False`` disables focusing entirely."""


__all__ = [
    "PathKey",
    "Path",
    "EventType",
    "IssueCode",
    "FocusPolicy",
    "FocusSetting",
]
