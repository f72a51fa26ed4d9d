import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from errors import DocumentError
from logging_config import get_logger

logger = get_logger(__name__)

Action = Callable[[], Awaitable[Any]]


@dataclass
class SagaStep:
    name: str
    action: Action
    failure: Type[DocumentError]
    errors: Tuple[Type[BaseException], ...] = (Exception,)
    compensation: Optional[Action] = None


@dataclass
class SagaResult:
    completed: List[str] = field(default_factory=list)
    values: Dict[str, Any] = field(default_factory=dict)
    failed_step: Optional[SagaStep] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None


class Saga:
    """Runs steps strictly in order, undoing completed ones when a later step fails.

    A step that fails with one of its declared errors left nothing behind, so
    only the steps before it are compensated. A step that was interrupted
    (timeout or cancellation) or raised an undeclared error may have left a
    partial side effect, so its own compensation runs as well.
    Compensation failures are logged and never replace the original error.
    """

    def __init__(self, name: str, steps: List[SagaStep], timeout: Optional[float] = None):
        self.name = name
        self.steps = steps
        self.timeout = timeout

    async def run(self) -> SagaResult:
        result = SagaResult()
        done: List[SagaStep] = []

        for step in self.steps:
            try:
                value = await asyncio.wait_for(step.action(), timeout=self.timeout)
            except asyncio.CancelledError:
                logger.warning(f"[{self.name}] Cancelled during step '{step.name}'. Running compensations.")
                await self._compensate(done + [step])
                raise
            except asyncio.TimeoutError as e:
                logger.error(f"[{self.name}] Step '{step.name}' timed out after {self.timeout}s")
                await self._compensate(done + [step])
                result.failed_step, result.error = step, e
                return result
            except step.errors as e:
                logger.error(f"[{self.name}] Step '{step.name}' failed: {e!r}")
                await self._compensate(done)
                result.failed_step, result.error = step, e
                return result
            except Exception:
                logger.exception(f"[{self.name}] Unexpected error in step '{step.name}'")
                await self._compensate(done + [step])
                raise

            done.append(step)
            result.completed.append(step.name)
            result.values[step.name] = value

        return result

    async def _compensate(self, steps: List[SagaStep]) -> None:
        for step in reversed(steps):
            if step.compensation is None:
                continue
            logger.info(f"[{self.name}] Compensating step '{step.name}'")
            try:
                await asyncio.wait_for(step.compensation(), timeout=self.timeout)
            except Exception as e:
                logger.error(f"[{self.name}] Compensation for step '{step.name}' failed: {e!r}")
