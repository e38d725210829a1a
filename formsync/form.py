"""Form: the validation engine of FormSync.

A Form owns a tree of raw user input and keeps a field tree in sync with the
result of validating it. It coordinates the schema adapter, the field tree,
the validation task queue and the submit lifecycle.

Every write to the raw input goes through ``set_raw_input_at``, which marks
the form dirty and requests validation: synchronously, or by queueing a
ValidationTask that a ValidationWorker later flushes. Each validation pass
re-parses the whole tree and diffs the issues into the field tree, so only
fields whose messages changed are notified.

Usage:
    >>> form = Form({
    ...     "type": "object",
    ...     "properties": {"age": {"type": "number"}},
    ...     "required": ["age"],
    ... }, FormOptions(set_action_options=SetActionOptions(validate_sync=True)))
    >>> form.root.fields["age"].set_raw_input("12a")
    >>> form.root.fields["age"].error_messages
    ("Field 'age' has invalid type. Expected number, got str",)
"""

import asyncio
import inspect
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Tuple, Union

from formsync.errors import ReentrantValidationError
from formsync.events import EventEmitter, FormEvent
from formsync.fields import Field, create_field
from formsync.focus import find_focus_target
from formsync.paths import diff_issues, read_at, write_at
from formsync.scheduler import ValidationWorker
from formsync.schema import DecodeResult, JsonSchemaAdapter, ParseResult, SchemaAdapter
from formsync.types import EventType, FocusPolicy, FocusSetting, Path

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass(frozen=True)
class SetActionOptions:
    """Options resolved for each raw input mutation.

    Attributes:
        validate_sync: Validate immediately instead of queueing a task
    """
    validate_sync: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SetActionOptions":
        """Create SetActionOptions from dict (camelCase keys)."""
        return cls(validate_sync=bool(data.get("validateSync", False)))


@dataclass(frozen=True)
class FormOptions:
    """Form configuration.

    Attributes:
        initial_output: Typed value the raw input is seeded from. When left
            unset, the schema's default is used; an explicit None is honoured.
        validate_on_mount: Run one validation pass at construction
        set_action_options: Default options for raw input mutations
        should_focus_error: False, "first-y" or "first-x"

    Examples:
        >>> options = FormOptions.from_dict({"shouldFocusError": "first-x"})
        >>> options.should_focus_error
        <FocusPolicy.FIRST_X: 'first-x'>
    """
    initial_output: Any = _UNSET
    validate_on_mount: bool = False
    set_action_options: SetActionOptions = field(default_factory=SetActionOptions)
    should_focus_error: FocusSetting = FocusPolicy.FIRST_Y

    def __post_init__(self):
        """Validate and normalize fields."""
        if isinstance(self.set_action_options, dict):
            object.__setattr__(
                self, "set_action_options", SetActionOptions.from_dict(self.set_action_options)
            )
        if self.should_focus_error is not False:
            # Raises ValueError on anything that is not a known policy
            object.__setattr__(self, "should_focus_error", FocusPolicy(self.should_focus_error))

    @property
    def has_initial_output(self) -> bool:
        return self.initial_output is not _UNSET

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormOptions":
        """Create FormOptions from dict (camelCase keys)."""
        return cls(
            initial_output=data["initialOutput"] if "initialOutput" in data else _UNSET,
            validate_on_mount=bool(data.get("validateOnMount", False)),
            set_action_options=SetActionOptions.from_dict(data.get("setActionOptions") or {}),
            should_focus_error=data.get("shouldFocusError", FocusPolicy.FIRST_Y),
        )


@dataclass
class ValidationTask:
    """A queued "please validate, and tell me when done" request.

    Attributes:
        resolve: Called after the flush that served this task succeeded
        reject: Called with the exception if that flush failed
        prior: Flush immediately instead of waiting for an idle moment
    """
    resolve: Optional[Callable[[], None]] = None
    reject: Optional[Callable[[BaseException], None]] = None
    prior: bool = False


SubmitHandler = Callable[[], Union[Awaitable[Any], Any]]


class Form:
    """Reactive form state: raw input, field tree and validation lifecycle.

    Attributes:
        schema: Schema adapter the form validates with
        options: Form configuration
        events: Emitter for all change notifications of this form
        root: Root of the field tree

    Examples:
        >>> form = Form({"type": "object", "properties": {"name": {"type": "string"}}})
        >>> form.raw_input
        {'name': ''}
        >>> form.set_raw_input_at(("name",), "Alice")
        >>> form.is_dirty
        True
        >>> len(form.validation_tasks)
        1
    """

    def __init__(
        self,
        schema: Union[SchemaAdapter, Dict[str, Any]],
        options: Optional[FormOptions] = None,
    ) -> None:
        """Initialize the form.

        Args:
            schema: A SchemaAdapter, or a JSON Schema dict wrapped in a
                JsonSchemaAdapter
            options: Form configuration, defaults to FormOptions()

        Raises:
            jsonschema.SchemaError: If a JSON Schema dict is invalid
        """
        self.schema: SchemaAdapter = JsonSchemaAdapter(schema) if isinstance(schema, dict) else schema
        self.options = options if options is not None else FormOptions()
        self.events = EventEmitter()

        self._is_dirty = False
        self._submit_count = 0
        self._is_submitting = False
        self._validating = False
        self._revalidate = False
        self._validation_tasks: List[ValidationTask] = []
        self._task_watchers: List[Callable[[ValidationTask], None]] = []
        self._current_set_action_options: Optional[SetActionOptions] = None

        initial_output = (
            self.options.initial_output
            if self.options.has_initial_output
            else self.schema.get_initial_output()
        )
        self._raw_input: Any = self.schema.encode(initial_output)

        self.root: Field = create_field(self.schema.node, self, ())

        if self.options.validate_on_mount:
            self.validate()

    # -- state ----------------------------------------------------------

    @property
    def raw_input(self) -> Any:
        return self._raw_input

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    @property
    def submit_count(self) -> int:
        return self._submit_count

    @property
    def is_submitting(self) -> bool:
        return self._is_submitting

    @property
    def validation_tasks(self) -> Tuple[ValidationTask, ...]:
        """Snapshot of the pending validation tasks."""
        return tuple(self._validation_tasks)

    @property
    def has_prior_task(self) -> bool:
        return any(task.prior for task in self._validation_tasks)

    @property
    def input(self) -> DecodeResult:
        """Strictly decoded raw input."""
        return self.schema.decode(self._raw_input)

    @property
    def loose_input(self) -> DecodeResult:
        """Best-effort decoded raw input; always succeeds."""
        return self.schema.decode(self._raw_input, loose=True)

    @property
    def parsed(self) -> ParseResult:
        """Validation result for the current raw input.

        Falls back to the loosely decoded input when strict decoding fails,
        so issues are still reported for a partially invalid tree.
        """
        decoded = self.input
        if not decoded.success:
            logger.debug("Strict decode failed at %r: %s", decoded.error.path, decoded.error.message)
            decoded = self.loose_input
        return self.schema.parse(decoded.data)

    def _emit(self, event_type: EventType, path: Optional[Path] = None,
              payload: Optional[Dict[str, Any]] = None) -> None:
        self.events.emit(FormEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            ts=datetime.now(timezone.utc),
            path=path,
            payload=payload,
        ))

    # -- mutation -------------------------------------------------------

    def get_raw_input_at(self, path: Path) -> Any:
        return read_at(self._raw_input, path)

    def set_raw_input_at(self, path: Path, value: Any) -> None:
        """Write ``value`` at ``path`` and request validation.

        An empty path replaces the whole raw input tree.

        Raises:
            PathWriteError: If an intermediate node cannot hold the path
        """
        path = tuple(path)
        self._raw_input = write_at(self._raw_input, path, value)
        self._is_dirty = True
        self._emit(EventType.RAW_INPUT_CHANGED, path)
        self.notify_change()

    def notify_change(self) -> None:
        """Validate now, or queue a task, depending on the current options.

        A synchronous change made by a listener during a pass makes that
        pass run again once its diff is done.
        """
        if not self.resolve_current_set_action_options().validate_sync:
            self._enqueue(ValidationTask())
        elif self._validating:
            self._revalidate = True
        else:
            self.validate()

    def _enqueue(self, task: ValidationTask) -> None:
        self._validation_tasks.append(task)
        for watcher in list(self._task_watchers):
            watcher(task)
        self._emit(EventType.VALIDATION_REQUESTED, payload={"prior": task.prior})

    def watch_validation_tasks(self, watcher: Callable[[ValidationTask], None]) -> Callable[[], None]:
        """Call ``watcher`` with every task queued from now on.

        Watchers are kept apart from ``events``, so clearing event listeners
        never detaches them.

        Returns:
            A handle that removes the watcher when called (idempotent)
        """
        self._task_watchers.append(watcher)

        def unwatch() -> None:
            if watcher in self._task_watchers:
                self._task_watchers.remove(watcher)

        return unwatch

    def request_validation(self, prior: bool = False) -> "asyncio.Future[None]":
        """Queue a validation task and return a future settled by its flush.

        Must be called with a running event loop. Nothing flushes the queue
        unless a ValidationWorker is running or ``flush_validation_tasks``
        is called.
        """
        future = asyncio.get_running_loop().create_future()

        def resolve() -> None:
            if not future.done():
                future.set_result(None)

        def reject(error: BaseException) -> None:
            if not future.done():
                future.set_exception(error)

        self._enqueue(ValidationTask(resolve=resolve, reject=reject, prior=prior))
        return future

    @contextmanager
    def with_set_action_options(self, **overrides: Any) -> Iterator[SetActionOptions]:
        """Override the mutation options for the duration of a block.

        Examples:
            >>> form = Form({"type": "object", "properties": {"n": {"type": "number"}}})
            >>> with form.with_set_action_options(validate_sync=True):
            ...     form.set_raw_input_at(("n",), "x")
            >>> form.validation_tasks
            ()
        """
        previous = self._current_set_action_options
        current = replace(self.resolve_current_set_action_options(), **overrides)
        self._current_set_action_options = current
        try:
            yield current
        finally:
            self._current_set_action_options = previous

    def resolve_current_set_action_options(self) -> SetActionOptions:
        if self._current_set_action_options is not None:
            return self._current_set_action_options
        return self.options.set_action_options

    # -- validation -----------------------------------------------------

    def validate(self) -> ParseResult:
        """Re-parse the whole raw input and diff the issues into the field tree.

        Only fields whose error messages differ from the new ones are
        updated. Always reflects the raw input as it is when called, and is
        repeated while listeners keep changing it synchronously.

        Returns:
            The ParseResult of this pass

        Raises:
            ReentrantValidationError: If called while a pass is running
        """
        if self._validating:
            raise ReentrantValidationError(
                "validate() was called from inside a validation pass; "
                "field change listeners must not trigger synchronous validation"
            )
        self._validating = True
        changed: Dict[int, Field] = {}
        try:
            while True:
                self._revalidate = False
                result = self.parsed
                for changed_field in diff_issues(result.issues, self.root):
                    changed[changed_field.unique_id] = changed_field
                if not self._revalidate:
                    break
                logger.debug("Raw input changed during the pass, validating again")
        finally:
            self._validating = False
            self._revalidate = False

        logger.debug(
            "Validation pass: %d issue(s), %d field(s) changed", len(result.issues), len(changed)
        )
        self._emit(
            EventType.VALIDATION_PASSED if result.success else EventType.VALIDATION_FAILED,
            payload={"issueCount": len(result.issues), "changedFieldCount": len(changed)},
        )
        return result

    def flush_validation_tasks(self) -> None:
        """Run one validation pass and settle every queued task with its outcome.

        The queue is swapped out first, so tasks queued during the pass are
        left for the next flush.

        Raises:
            Exception: Whatever ``validate`` raised, after rejecting every task
        """
        tasks, self._validation_tasks = self._validation_tasks, []
        logger.debug("Flushing %d validation task(s)", len(tasks))
        try:
            self.validate()
        except Exception as e:
            for task in tasks:
                if task.reject is not None:
                    task.reject(e)
            raise
        for task in tasks:
            if task.resolve is not None:
                task.resolve()

    def start_validation_worker(self, **worker_options: Any) -> Callable[[], None]:
        """Start a ValidationWorker for this form.

        Must be called with a running event loop.

        Returns:
            A handle that stops the worker when called

        Raises:
            SchedulerConfigurationError: If the form validates synchronously
        """
        return ValidationWorker(self, **worker_options).start()

    # -- submit ---------------------------------------------------------

    def _touch_all(self) -> None:
        self.root.walk(lambda f: f.set_touched(True))

    async def handle_submit(self, on_submit: SubmitHandler) -> None:
        """Validate with priority, touch every field, then run ``on_submit``.

        Every field is marked touched whatever the validation outcome.
        ``on_submit`` may be a plain function or return an awaitable; it is
        called even when the form has issues, check ``form.parsed`` inside
        it. Failures of validation or of ``on_submit`` propagate.

        After the submit, the first erroring field is focused unless
        ``should_focus_error`` is False.
        """
        try:
            self._is_submitting = True
            self._submit_count += 1
            self._emit(EventType.SUBMIT_STARTED, payload={"submitCount": self._submit_count})

            try:
                if self.options.set_action_options.validate_sync:
                    self.validate()
                else:
                    await self.request_validation(prior=True)
            finally:
                self._touch_all()

            result = on_submit()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._emit(EventType.SUBMIT_FAILED, payload={"error": repr(e)})
            raise
        else:
            self._emit(EventType.SUBMIT_SUCCEEDED)
        finally:
            self._is_submitting = False
            if self.options.should_focus_error:
                self.focus_error()

    def focus_error(self) -> Optional[Field]:
        """Focus the first attached field with an error.

        Returns:
            The focused field, or None when nothing was focused
        """
        policy = self.options.should_focus_error
        if policy is False:
            return None
        target = find_focus_target(self.root, policy)
        if target is None:
            return None
        target.element.focus()
        self._emit(EventType.FIELD_FOCUSED, target.path)
        return target


__all__ = [
    "Form",
    "FormOptions",
    "SetActionOptions",
    "ValidationTask",
    "SubmitHandler",
]
