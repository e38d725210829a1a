"""Scoped access to the current form.

UI code deep inside a form's rendering often needs the form without having
it passed down explicitly. ``form_context`` makes a form current for the
duration of a block (per thread and per asyncio task, via contextvars);
``get_form_context`` returns it.

Usage:
    >>> with form_context(form):
    ...     assert get_form_context() is form
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Iterator, Optional

from formsync.errors import FormContextError

if TYPE_CHECKING:
    from formsync.form import Form

_current_form: ContextVar[Optional["Form"]] = ContextVar("formsync_current_form", default=None)


@contextmanager
def form_context(form: "Form") -> Iterator["Form"]:
    """Make ``form`` the current form inside the ``with`` block.

    Blocks nest; leaving one restores the enclosing form.
    """
    token = _current_form.set(form)
    try:
        yield form
    finally:
        _current_form.reset(token)


def get_form_context() -> "Form":
    """Return the current form.

    Raises:
        FormContextError: If called outside any ``form_context`` block
    """
    form = _current_form.get()
    if form is None:
        raise FormContextError("Are you calling get_form_context() inside a form_context() block?")
    return form


__all__ = [
    "form_context",
    "get_form_context",
]
