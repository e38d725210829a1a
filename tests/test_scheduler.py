"""Unit tests for the background validation worker.

Tests cover:
- Refusing to start on a synchronously validating form
- Coalescing bursts of requests into one validation pass
- Waiting for an idle moment, and prior requests cutting it short
- Cancellation
- Flush failures reaching every waiter without stopping the worker

Async scenarios run through asyncio.run from plain test functions.
"""

import asyncio
from unittest.mock import patch

import pytest

from formsync.errors import SchedulerConfigurationError
from formsync.form import Form, FormOptions, SetActionOptions
from formsync.scheduler import ValidationWorker
from formsync.types import EventType

SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "age": {"type": "number", "minimum": 0},
    },
    "required": ["name", "age"],
}


async def settle(turns: int = 5) -> None:
    for _ in range(turns):
        await asyncio.sleep(0)


class TestWorkerConfiguration:
    """Test worker start-up checks."""

    def test_refuses_sync_form(self):
        """Should fail fast when the form validates synchronously."""
        form = Form(SCHEMA, FormOptions(set_action_options=SetActionOptions(validate_sync=True)))
        with pytest.raises(SchedulerConfigurationError):
            form.start_validation_worker()
        with pytest.raises(SchedulerConfigurationError):
            ValidationWorker(form).start()

    def test_requires_running_loop(self):
        """Should need a running event loop."""
        with pytest.raises(RuntimeError):
            ValidationWorker(Form(SCHEMA)).start()

    def test_cannot_start_twice(self):
        """Should refuse a second start."""
        async def scenario():
            worker = ValidationWorker(Form(SCHEMA))
            stop = worker.start()
            try:
                with pytest.raises(RuntimeError):
                    worker.start()
            finally:
                stop()

        asyncio.run(scenario())


class TestCoalescing:
    """Test that bursts are served by one pass."""

    def test_burst_is_one_pass(self):
        """Should serve many queued requests with a single validation."""
        async def scenario():
            form = Form(SCHEMA)
            stop = form.start_validation_worker()
            with patch.object(form, "validate", wraps=form.validate) as spy:
                for text in ("1", "12", "12a", "12a3", "123"):
                    form.set_raw_input_at(("age",), text)
                waiters = [form.request_validation() for _ in range(3)]
                await asyncio.wait_for(asyncio.gather(*waiters), timeout=1)
            stop()
            return form, spy.call_count

        form, calls = asyncio.run(scenario())
        assert calls == 1
        assert form.validation_tasks == ()

    def test_waits_for_idle(self):
        """Should not flush before the idle opportunity."""
        async def scenario():
            release = asyncio.Event()
            form = Form(SCHEMA)
            worker = ValidationWorker(form, idle=release.wait)
            stop = worker.start()
            with patch.object(form, "validate", wraps=form.validate) as spy:
                form.set_raw_input_at(("age",), "1")
                form.set_raw_input_at(("age",), "12")
                waiter = form.request_validation()
                await settle()
                before_idle = spy.call_count

                release.set()
                await asyncio.wait_for(waiter, timeout=1)
            stop()
            return before_idle, spy.call_count

        before_idle, after_idle = asyncio.run(scenario())
        assert before_idle == 0
        assert after_idle == 1

    def test_reflects_latest_state(self):
        """Should validate the raw input as it is at flush time."""
        async def scenario():
            form = Form(SCHEMA)
            stop = form.start_validation_worker()
            form.set_raw_input_at(("age",), "x")
            form.set_raw_input_at(("age",), "12")
            await asyncio.wait_for(form.request_validation(), timeout=1)
            stop()
            return form

        form = asyncio.run(scenario())
        assert form.root.fields["age"].error_messages == ()
        assert form.root.fields["name"].error_messages != ()


class TestPriority:
    """Test prior requests."""

    def test_prior_request_cuts_idle_wait(self):
        """Should flush at once when a prior request arrives during the idle wait."""
        async def scenario():
            never = asyncio.Event()
            form = Form(SCHEMA)
            worker = ValidationWorker(form, idle=never.wait)
            stop = worker.start()
            with patch.object(form, "validate", wraps=form.validate) as spy:
                form.set_raw_input_at(("age",), "x")
                waiter = form.request_validation()
                await settle()
                assert spy.call_count == 0
                assert not waiter.done()

                await asyncio.wait_for(form.request_validation(prior=True), timeout=1)
                calls = spy.call_count
            stop()
            return waiter, calls

        waiter, calls = asyncio.run(scenario())
        assert calls == 1
        assert waiter.done() and waiter.exception() is None

    def test_prior_request_skips_idle_wait(self):
        """Should never wait for idleness when a prior task is queued."""
        async def scenario():
            never = asyncio.Event()
            form = Form(SCHEMA)
            stop = ValidationWorker(form, idle=never.wait).start()
            form.set_raw_input_at(("age",), "-1")
            await asyncio.wait_for(form.request_validation(prior=True), timeout=1)
            stop()
            return form

        form = asyncio.run(scenario())
        assert "minimum" in form.root.fields["age"].error_messages[0]


class TestWakeUp:
    """Test what wakes the worker."""

    def test_clearing_event_listeners_keeps_worker_awake(self):
        """Should keep flushing after every event listener is removed."""
        async def scenario():
            form = Form(SCHEMA)
            requested = []
            form.events.on(EventType.VALIDATION_REQUESTED, requested.append)
            stop = form.start_validation_worker()
            await settle()

            form.events.clear()
            form.set_raw_input_at(("age",), "x")
            await asyncio.wait_for(form.request_validation(prior=True), timeout=1)
            stop()
            return form, requested

        form, requested = asyncio.run(scenario())
        assert requested == []
        assert "Expected number" in form.root.fields["age"].error_messages[0]
        assert form.validation_tasks == ()

    def test_watcher_sees_every_queued_task(self):
        """Should hand each queued task to the watcher until it is removed."""
        form = Form(SCHEMA)
        seen = []
        unwatch = form.watch_validation_tasks(seen.append)

        form.set_raw_input_at(("age",), "x")
        unwatch()
        unwatch()
        form.set_raw_input_at(("age",), "y")

        assert len(seen) == 1
        assert seen[0] is form.validation_tasks[0]


class TestCancellation:
    """Test stopping the worker."""

    def test_cancel_stops_loop(self):
        """Should terminate the loop and stop serving requests."""
        async def scenario():
            form = Form(SCHEMA)
            worker = ValidationWorker(form)
            stop = worker.start()
            await settle()

            stop()
            stop()
            await asyncio.wait_for(worker.task, timeout=1)

            form.set_raw_input_at(("age",), "x")
            await settle()
            return form, worker

        form, worker = asyncio.run(scenario())
        assert worker.cancelled is True
        assert worker.running is False
        assert form._task_watchers == []
        assert len(form.validation_tasks) == 1
        assert form.root.fields["age"].error_messages == ()


class TestFlushFailure:
    """Test failures during a flush."""

    def test_failure_reaches_waiters_and_worker_survives(self):
        """Should reject waiters with the error and keep serving afterwards."""
        async def scenario():
            form = Form(SCHEMA)
            worker = ValidationWorker(form)
            stop = worker.start()

            with patch.object(form.schema, "parse", side_effect=RuntimeError("boom")):
                waiter = form.request_validation()
                with pytest.raises(RuntimeError, match="boom"):
                    await asyncio.wait_for(waiter, timeout=1)

            still_running = worker.running
            form.set_raw_input_at(("age",), "x")
            await asyncio.wait_for(form.request_validation(), timeout=1)
            stop()
            return form, still_running

        form, still_running = asyncio.run(scenario())
        assert still_running is True
        assert form.root.fields["age"].error_messages != ()
