"""Background validation worker.

A ValidationWorker serves a form's validation task queue on an asyncio event
loop. It sleeps until a task is queued, then waits for an idle moment so
that a burst of edits is served by a single validation pass. A ``prior``
task (queued by a submit, for instance) skips or cuts short that wait and
is flushed at once.

Usage:
    >>> async def main(form):
    ...     stop = form.start_validation_worker()
    ...     form.set_raw_input_at(("name",), "Alice")
    ...     await form.request_validation()
    ...     stop()
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from formsync.errors import SchedulerConfigurationError

if TYPE_CHECKING:
    from formsync.form import Form, ValidationTask

logger = logging.getLogger(__name__)

IdleWaiter = Callable[[], Awaitable[None]]


class ValidationWorker:
    """Cancellable loop flushing one form's validation tasks.

    Attributes:
        form: The form being served
        idle_delay: Seconds to wait for idleness when no ``idle`` is given

    Cancelling never interrupts a flush in progress; it only stops the loop
    at its next wake-up.
    """

    def __init__(self, form: "Form", idle: Optional[IdleWaiter] = None, idle_delay: float = 0.0) -> None:
        """Create a worker; nothing runs until ``start``.

        Args:
            form: The form whose queue is served
            idle: Awaitable factory resolving at the next idle opportunity
            idle_delay: Used by the default idle waiter, ``asyncio.sleep(idle_delay)``
        """
        self.form = form
        self.idle_delay = idle_delay
        self._idle = idle if idle is not None else self._sleep_idle
        self._cancelled = False
        self._task: Optional["asyncio.Task[None]"] = None
        self._wake: Optional[asyncio.Event] = None
        self._prior: Optional[asyncio.Event] = None
        self._unwatch: Callable[[], None] = lambda: None

    async def _sleep_idle(self) -> None:
        await asyncio.sleep(self.idle_delay)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional["asyncio.Task[None]"]:
        return self._task

    def start(self) -> Callable[[], None]:
        """Start the loop on the running event loop.

        Returns:
            A handle that cancels the worker when called (idempotent)

        Raises:
            SchedulerConfigurationError: If the form validates synchronously,
                in which case no task is ever queued
            RuntimeError: If there is no running event loop, or the worker
                was already started
        """
        if self.form.options.set_action_options.validate_sync:
            raise SchedulerConfigurationError(
                "The form is configured with validate_sync=True, so validation "
                "tasks are never queued; do not start a validation worker for it"
            )
        if self._task is not None:
            raise RuntimeError("ValidationWorker already started")

        loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._prior = asyncio.Event()
        if self.form.has_prior_task:
            self._prior.set()
        self._unwatch = self.form.watch_validation_tasks(self._on_task)
        self._task = loop.create_task(self._run())
        logger.debug("Validation worker started")
        return self.cancel

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._wake is not None:
            self._wake.set()
        logger.debug("Validation worker cancelled")

    def _on_task(self, task: "ValidationTask") -> None:
        self._wake.set()
        if task.prior:
            self._prior.set()

    async def _wait_idle(self) -> None:
        """Wait for an idle moment, or less if a prior task shows up."""
        idle = asyncio.ensure_future(self._idle())
        prior = asyncio.ensure_future(self._prior.wait())
        try:
            await asyncio.wait({idle, prior}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (idle, prior):
                if not pending.done():
                    pending.cancel()

    def _flush(self) -> None:
        self._prior.clear()
        if not self.form.validation_tasks:
            return
        try:
            self.form.flush_validation_tasks()
        except Exception:
            # Every waiting task was already rejected with this error
            logger.exception("Validation flush failed")

    async def _run(self) -> None:
        try:
            while True:
                while not self.form.validation_tasks and not self._cancelled:
                    self._wake.clear()
                    await self._wake.wait()

                if self._cancelled:
                    return

                if self.form.has_prior_task:
                    self._flush()
                else:
                    await self._wait_idle()
                    self._flush()
        finally:
            self._unwatch()
            logger.debug("Validation worker stopped")


__all__ = [
    "ValidationWorker",
    "IdleWaiter",
]
