"""Field tree for FormSync.

The field tree mirrors the shape of the schema: one ``Field`` per schema
node, ``ObjectField`` for objects and ``ArrayField`` for arrays. Fields do
not store input; ``raw_input`` is a live view into the form's raw input tree
at the field's path, and writes go back through the form so dirtiness and
validation scheduling are never bypassed.

Each field carries two observable cells: its error messages and its touched
flag. Both are replaced, never mutated in place, and emit an event only when
their value actually changes.
"""

import itertools
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from formsync.errors import Issue
from formsync.focus import Element
from formsync.paths import get_path_id
from formsync.types import EventType, Path

if TYPE_CHECKING:
    from formsync.form import Form

FieldVisitor = Callable[["Field"], None]

_unique_ids = itertools.count(1)


class Field:
    """A node of the field tree bound to one path.

    Attributes:
        schema: The schema node this field was built from
        form: The owning form
        element: Optional UI handle, only used to focus the field
        unique_id: Process-unique id, stable for the field's lifetime
    """

    def __init__(self, schema: Dict[str, Any], form: "Form", path: Path) -> None:
        self.schema = schema
        self.form = form
        self.element: Optional[Element] = None
        self.unique_id = next(_unique_ids)
        self._path: Path = tuple(path)
        self._path_id = get_path_id(self._path)
        self._error_messages: Tuple[str, ...] = ()
        self._issues: Tuple[Issue, ...] = ()
        self._touched = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={self._path!r})"

    @property
    def path(self) -> Path:
        return self._path

    @property
    def path_id(self) -> str:
        return self._path_id

    def _set_path(self, path: Path) -> None:
        self._path = tuple(path)
        self._path_id = get_path_id(self._path)

    @property
    def raw_input(self) -> Any:
        return self.form.get_raw_input_at(self._path)

    def set_raw_input(self, value: Any) -> None:
        self.form.set_raw_input_at(self._path, value)

    @property
    def error_messages(self) -> Tuple[str, ...]:
        return self._error_messages

    @property
    def issues(self) -> Tuple[Issue, ...]:
        """Issues of the latest validation pass for this path."""
        return self._issues

    def _set_error_messages(self, messages: Tuple[str, ...]) -> None:
        self._error_messages = messages
        self.form._emit(EventType.FIELD_ERRORS_CHANGED, self._path, {"errorMessages": list(messages)})

    @property
    def touched(self) -> bool:
        return self._touched

    def set_touched(self, touched: bool) -> None:
        if touched == self._touched:
            return
        self._touched = touched
        self.form._emit(EventType.FIELD_TOUCHED_CHANGED, self._path, {"touched": touched})

    def walk(self, visitor: FieldVisitor) -> None:
        """Depth-first traversal, calling ``visitor`` on this node first."""
        visitor(self)


class ObjectField(Field):
    """Field for an object node; ``fields`` holds one child per property."""

    def __init__(self, schema: Dict[str, Any], form: "Form", path: Path) -> None:
        super().__init__(schema, form, path)
        self.fields: Dict[str, Field] = {
            key: create_field(child, form, self._path + (key,))
            for key, child in schema.get("properties", {}).items()
        }

    def _set_path(self, path: Path) -> None:
        super()._set_path(path)
        for key, child in self.fields.items():
            child._set_path(self._path + (key,))

    def walk(self, visitor: FieldVisitor) -> None:
        visitor(self)
        for child in self.fields.values():
            child.walk(visitor)


class ArrayField(Field):
    """Field for an array node.

    ``elements`` follows the length of the raw list. Element fields are
    created on demand and keep their identity; ``insert`` and ``remove``
    move them together with their data.
    """

    def __init__(self, schema: Dict[str, Any], form: "Form", path: Path) -> None:
        super().__init__(schema, form, path)
        self.item_schema: Dict[str, Any] = schema.get("items", {})
        self._elements: List[Field] = []

    def _set_path(self, path: Path) -> None:
        super()._set_path(path)
        self._reindex()

    def _reindex(self, start: int = 0) -> None:
        for index in range(start, len(self._elements)):
            self._elements[index]._set_path(self._path + (index,))

    def _raw_list(self) -> List[Any]:
        raw = self.raw_input
        return list(raw) if isinstance(raw, (list, tuple)) else []

    def _sync_elements(self) -> None:
        length = len(self._raw_list())
        while len(self._elements) < length:
            index = len(self._elements)
            self._elements.append(create_field(self.item_schema, self.form, self._path + (index,)))
        del self._elements[length:]

    @property
    def elements(self) -> List[Field]:
        self._sync_elements()
        return list(self._elements)

    def push(self, value: Any) -> None:
        """Append an element; ``value`` is raw input for the new element."""
        self.insert(len(self._raw_list()), value)

    def insert(self, index: int, value: Any) -> None:
        items = self._raw_list()
        index = max(0, min(index, len(items)))
        self._sync_elements()
        items.insert(index, value)
        self._elements.insert(index, create_field(self.item_schema, self.form, self._path + (index,)))
        self._reindex(index + 1)
        self.set_raw_input(items)

    def remove(self, index: int) -> None:
        items = self._raw_list()
        if not 0 <= index < len(items):
            raise IndexError(f"Element index {index} out of range for {self!r}")
        self._sync_elements()
        del items[index]
        del self._elements[index]
        self._reindex(index)
        self.set_raw_input(items)

    def walk(self, visitor: FieldVisitor) -> None:
        visitor(self)
        for element in self.elements:
            element.walk(visitor)


def create_field(schema: Dict[str, Any], form: "Form", path: Path) -> Field:
    """Build the field (sub)tree for a schema node."""
    node_type = schema.get("type")
    if isinstance(node_type, list):
        node_type = next((t for t in node_type if t != "null"), None)
    if node_type == "object":
        return ObjectField(schema, form, path)
    if node_type == "array":
        return ArrayField(schema, form, path)
    return Field(schema, form, path)


__all__ = [
    "Field",
    "ObjectField",
    "ArrayField",
    "FieldVisitor",
    "create_field",
]
