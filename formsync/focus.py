"""Focus-first-error policy.

After a submit, the form can move focus to the first field that has an
error. "First" is decided by on-screen position of the field's UI element.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from typing_extensions import Protocol, runtime_checkable

from formsync.types import FocusPolicy

if TYPE_CHECKING:
    from formsync.fields import Field

# Large enough that the secondary coordinate can never outweigh the primary one.
PRIORITY_SCALE = 10000


@dataclass(frozen=True)
class Rect:
    """Bounding box of a UI element, in screen coordinates."""
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0


@runtime_checkable
class Element(Protocol):
    """What a UI handle attached to a field must provide."""

    @property
    def is_connected(self) -> bool:
        """Whether the element is currently attached and visible."""
        ...

    def get_bounding_rect(self) -> Rect:
        ...

    def focus(self) -> None:
        ...


def focus_priority(rect: Rect, policy: FocusPolicy) -> float:
    """Single sort key for a two-level ordering; lower ranks first.

    Examples:
        >>> focus_priority(Rect(x=5, y=20), FocusPolicy.FIRST_Y)
        200005
        >>> focus_priority(Rect(x=5, y=20), FocusPolicy.FIRST_X)
        50020
    """
    if FocusPolicy(policy) == FocusPolicy.FIRST_Y:
        return PRIORITY_SCALE * rect.y + rect.x
    return PRIORITY_SCALE * rect.x + rect.y


def find_focus_target(root: "Field", policy: FocusPolicy) -> Optional["Field"]:
    """Return the erroring, attached field that ranks first, or None.

    Ties keep walk order.
    """
    candidates: List["Field"] = []

    def visit(field: "Field") -> None:
        if field.error_messages and field.element is not None and field.element.is_connected:
            candidates.append(field)

    root.walk(visit)
    if not candidates:
        return None
    return min(candidates, key=lambda f: focus_priority(f.element.get_bounding_rect(), policy))


__all__ = [
    "PRIORITY_SCALE",
    "Rect",
    "Element",
    "focus_priority",
    "find_focus_target",
]
