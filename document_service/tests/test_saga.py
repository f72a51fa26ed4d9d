import asyncio
import logging

import pytest

from errors import MetadataWriteFailure, StorageWriteFailure
from saga import Saga, SagaStep


class StepError(Exception):
    pass


def recorder(log, entry, result=None):
    async def action():
        log.append(entry)
        return result
    return action

def failing(log, entry, error=StepError):
    async def action():
        log.append(entry)
        raise error(f"{entry} failed")
    return action

async def hang():
    await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_steps_run_in_order_and_record_values():
    log = []
    saga = Saga("ordered", [
        SagaStep("first", recorder(log, "first", 1), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("second", recorder(log, "second", 2), failure=MetadataWriteFailure, errors=(StepError,)),
    ])

    result = await saga.run()

    assert result.ok
    assert log == ["first", "second"]
    assert result.completed == ["first", "second"]
    assert result.values == {"first": 1, "second": 2}

@pytest.mark.asyncio
async def test_failure_compensates_completed_steps_in_reverse():
    log = []
    saga = Saga("rollback", [
        SagaStep("a", recorder(log, "a"), compensation=recorder(log, "undo a"), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("b", recorder(log, "b"), compensation=recorder(log, "undo b"), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("c", failing(log, "c"), compensation=recorder(log, "undo c"), failure=MetadataWriteFailure, errors=(StepError,)),
        SagaStep("d", recorder(log, "d"), failure=MetadataWriteFailure, errors=(StepError,)),
    ])

    result = await saga.run()

    assert not result.ok
    assert result.failed_step.name == "c"
    assert result.failed_step.failure is MetadataWriteFailure
    assert isinstance(result.error, StepError)
    assert log == ["a", "b", "c", "undo b", "undo a"]

@pytest.mark.asyncio
async def test_failing_first_step_needs_no_compensation():
    log = []
    saga = Saga("first fails", [
        SagaStep("a", failing(log, "a"), compensation=recorder(log, "undo a"), failure=StorageWriteFailure, errors=(StepError,)),
    ])

    result = await saga.run()

    assert result.failed_step.name == "a"
    assert log == ["a"]

@pytest.mark.asyncio
async def test_compensation_failure_is_logged_and_keeps_original_error(caplog):
    log = []
    saga = Saga("broken undo", [
        SagaStep("a", recorder(log, "a"), compensation=failing(log, "undo a", RuntimeError), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("b", failing(log, "b"), failure=MetadataWriteFailure, errors=(StepError,)),
    ])

    with caplog.at_level(logging.ERROR):
        result = await saga.run()

    assert isinstance(result.error, StepError)
    assert result.failed_step.name == "b"
    assert "Compensation for step 'a' failed" in caplog.text

@pytest.mark.asyncio
async def test_timeout_compensates_interrupted_step():
    log = []
    saga = Saga("slow", [
        SagaStep("a", recorder(log, "a"), compensation=recorder(log, "undo a"), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("b", hang, compensation=recorder(log, "undo b"), failure=MetadataWriteFailure, errors=(StepError,)),
    ], timeout=0.05)

    result = await saga.run()

    assert result.failed_step.name == "b"
    assert isinstance(result.error, asyncio.TimeoutError)
    assert log == ["a", "undo b", "undo a"]

@pytest.mark.asyncio
async def test_cancellation_compensates_and_propagates():
    log = []
    started = asyncio.Event()

    async def blocking():
        started.set()
        await asyncio.Event().wait()

    saga = Saga("cancelled", [
        SagaStep("a", recorder(log, "a"), compensation=recorder(log, "undo a"), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("b", blocking, failure=MetadataWriteFailure, errors=(StepError,)),
    ])

    task = asyncio.create_task(saga.run())
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert log == ["a", "undo a"]

@pytest.mark.asyncio
async def test_unexpected_error_compensates_and_propagates():
    log = []
    saga = Saga("bug", [
        SagaStep("a", recorder(log, "a"), compensation=recorder(log, "undo a"), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("b", failing(log, "b", KeyError), failure=MetadataWriteFailure, errors=(StepError,)),
    ])

    with pytest.raises(KeyError):
        await saga.run()
    assert log == ["a", "b", "undo a"]

@pytest.mark.asyncio
async def test_unexpected_error_compensates_failing_step_too():
    log = []
    saga = Saga("partial write", [
        SagaStep("a", recorder(log, "a"), compensation=recorder(log, "undo a"), failure=StorageWriteFailure, errors=(StepError,)),
        SagaStep("b", failing(log, "b", RuntimeError), compensation=recorder(log, "undo b"), failure=MetadataWriteFailure, errors=(StepError,)),
    ])

    with pytest.raises(RuntimeError):
        await saga.run()
    assert log == ["a", "b", "undo b", "undo a"]
