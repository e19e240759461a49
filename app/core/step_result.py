"""
Typed outcomes for orchestration steps and the containment table.

Every external call made while handling a request is wrapped into a
StepResult. The orchestrators look the failing step up in CONTAINMENT to
decide whether the request still succeeds (contained) or fails (surfaced).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class RelayStepError(Exception):
    """Base class for failures of an external collaborator."""


class StoreError(RelayStepError):
    pass


class GenerationError(RelayStepError):
    pass


class DeliveryError(RelayStepError):
    pass


class Step(str, Enum):
    STORE_READ = "store_read"
    STORE_USER_TURN = "store_user_turn"
    GENERATION = "generation"
    STORE_MODEL_TURN = "store_model_turn"
    DELIVERY = "delivery"
    CHAT_PERSIST = "chat_persist"


class EntryPoint(str, Enum):
    WEBHOOK = "webhook"
    DIRECT_CHAT = "direct_chat"


class Containment(str, Enum):
    ABORT_AND_ACK = "abort_and_ack"  # stop the pipeline, caller still sees success
    CONTINUE = "continue"  # log and carry on with the next step
    SURFACE = "surface"  # caller sees an error status


CONTAINMENT: dict[tuple[EntryPoint, Step], Containment] = {
    (EntryPoint.WEBHOOK, Step.STORE_READ): Containment.ABORT_AND_ACK,
    (EntryPoint.WEBHOOK, Step.STORE_USER_TURN): Containment.ABORT_AND_ACK,
    (EntryPoint.WEBHOOK, Step.GENERATION): Containment.ABORT_AND_ACK,
    (EntryPoint.WEBHOOK, Step.STORE_MODEL_TURN): Containment.CONTINUE,
    (EntryPoint.WEBHOOK, Step.DELIVERY): Containment.ABORT_AND_ACK,
    (EntryPoint.DIRECT_CHAT, Step.GENERATION): Containment.SURFACE,
    (EntryPoint.DIRECT_CHAT, Step.CHAT_PERSIST): Containment.SURFACE,
}


def containment_for(entry_point: EntryPoint, step: Step) -> Containment:
    """Unlisted combinations surface, so a new step is never silently swallowed."""
    return CONTAINMENT.get((entry_point, step), Containment.SURFACE)


@dataclass(frozen=True)
class StepResult(Generic[T]):
    step: Step
    value: Optional[T] = None
    error: Optional[RelayStepError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_blocking_step(
    step: Step, fn: Callable[[], T], timeout: Optional[float] = None
) -> StepResult[T]:
    """Run a blocking call in a worker thread, bounded like an async step."""
    return await run_async_step(step, lambda: asyncio.to_thread(fn), timeout=timeout)


async def run_async_step(
    step: Step,
    fn: Callable[[], Awaitable[T]],
    timeout: Optional[float] = None,
) -> StepResult[T]:
    """Await a step with an optional timeout; a timeout counts as a failure."""
    try:
        value = await asyncio.wait_for(fn(), timeout=timeout)
        return StepResult(step=step, value=value)
    except asyncio.TimeoutError:
        return StepResult(
            step=step,
            error=_timeout_error(step, timeout),
        )
    except RelayStepError as e:
        return StepResult(step=step, error=e)


def _timeout_error(step: Step, timeout: Optional[float]) -> RelayStepError:
    message = f"{step.value} timed out after {timeout}s"
    if step == Step.DELIVERY:
        return DeliveryError(message)
    if step == Step.GENERATION:
        return GenerationError(message)
    return StoreError(message)


def log_step_failure(
    logger: logging.Logger, result: StepResult, user_id: str, policy: Containment
) -> None:
    logger.error(
        "Step %s failed for user %s (%s): %s",
        result.step.value,
        user_id,
        policy.value,
        result.error,
        exc_info=result.error,
    )
