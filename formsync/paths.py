"""Path addressing and issue diffing.

A path is a tuple of keys: strings step into mappings, integers step into
lists. ``get_path_id`` turns a path into a canonical string identity that
keeps the two key kinds apart, so ``("0",)`` and ``(0,)`` never collide.

``diff_issues`` is what keeps validation cheap for observers: the whole tree
is re-parsed on every pass, but a field's error messages are only replaced
when they differ from the current ones.
"""

import json
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Sequence, Tuple

from formsync.errors import Issue, PathWriteError
from formsync.types import Path, PathKey

if TYPE_CHECKING:
    from formsync.fields import Field


def _check_key(key: Any) -> None:
    # bool is an int subclass, but True is not a list index
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise TypeError(f"Path keys must be str or int, got {type(key).__name__}: {key!r}")


def get_path_id(path: Sequence[PathKey]) -> str:
    """Return the canonical identity of a path.

    Integer keys render as ``[n]``, string keys as ``.`` followed by their
    JSON string literal. The JSON quoting makes the encoding unambiguous.

    Examples:
        >>> get_path_id(())
        ''
        >>> get_path_id(("users", 0, "name"))
        '."users"[0]."name"'
        >>> get_path_id(("0",)) == get_path_id((0,))
        False
    """
    parts = []
    for key in path:
        _check_key(key)
        if isinstance(key, int):
            parts.append(f"[{key}]")
        else:
            parts.append("." + json.dumps(key))
    return "".join(parts)


def read_at(tree: Any, path: Sequence[PathKey]) -> Any:
    """Read the value at ``path``, or None when any step is missing.

    Reading is lenient: a step into a node of the wrong shape yields None.
    """
    node = tree
    for key in path:
        _check_key(key)
        if isinstance(key, int):
            if not isinstance(node, list) or not 0 <= key < len(node):
                return None
            node = node[key]
        else:
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
    return node


def _new_container(key: PathKey) -> Any:
    return [] if isinstance(key, int) else {}


def write_at(tree: Any, path: Sequence[PathKey], value: Any) -> Any:
    """Write ``value`` at ``path`` and return the (possibly new) root.

    An empty path replaces the whole tree. Otherwise the existing structure
    is mutated in place; missing intermediate containers are created (a list
    for an integer key, a dict for a string key) and lists are padded with
    None up to the written index.

    Raises:
        PathWriteError: if an existing intermediate node has a shape that
            cannot hold the next key, or a list index is negative
    """
    path = tuple(path)
    if not path:
        return value

    root = tree if tree is not None else _new_container(path[0])
    node = root
    for position, key in enumerate(path):
        _check_key(key)
        last = position == len(path) - 1
        if isinstance(key, int):
            if not isinstance(node, list):
                raise PathWriteError(
                    path, position,
                    f"Cannot write index {key} at {get_path_id(path[:position]) or '<root>'}: "
                    f"expected a list, found {type(node).__name__}",
                )
            if key < 0:
                raise PathWriteError(path, position, f"Negative list index {key} in path {get_path_id(path)}")
            while len(node) <= key:
                node.append(None)
        else:
            if not isinstance(node, dict):
                raise PathWriteError(
                    path, position,
                    f"Cannot write key {key!r} at {get_path_id(path[:position]) or '<root>'}: "
                    f"expected a mapping, found {type(node).__name__}",
                )

        if last:
            node[key] = value
        else:
            child = node.get(key) if isinstance(node, dict) else node[key]
            if child is None:
                child = _new_container(path[position + 1])
                node[key] = child
            node = child
    return root


def group_issues(issues: Iterable[Issue]) -> Dict[str, List[Issue]]:
    """Group issues by canonical path id, keeping their relative order."""
    grouped: Dict[str, List[Issue]] = {}
    for issue in issues:
        grouped.setdefault(get_path_id(issue.path), []).append(issue)
    return grouped


def diff_issues(issues: Iterable[Issue], root: "Field") -> List["Field"]:
    """Apply a fresh issue list to the field tree.

    Walks the tree once. Every field receives the issues of its path (none
    when absent), but its error messages are replaced only if they differ
    element-wise from the current ones, so unrelated fields keep the very
    same tuple and their observers are not notified.

    Returns:
        The fields whose error messages were replaced, in walk order.
    """
    grouped = group_issues(issues)
    changed: List["Field"] = []

    def visit(field: "Field") -> None:
        field_issues: Tuple[Issue, ...] = tuple(grouped.get(field.path_id, ()))
        field._issues = field_issues
        messages = tuple(issue.message for issue in field_issues)
        if messages != field.error_messages:
            field._set_error_messages(messages)
            changed.append(field)

    root.walk(visit)
    return changed


__all__ = [
    "get_path_id",
    "read_at",
    "write_at",
    "group_issues",
    "diff_issues",
]
