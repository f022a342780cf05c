"""
Poll engine for converge-wait.

This module runs a poll function at a fixed cadence until it succeeds, fails
definitively, gets cancelled, or the deadline elapses.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from ..config import WaitConfiguration
from ..exceptions import (
    DeadlineExceededError,
    HardInputError,
    TransientError,
    WaitCancelledError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Continue:
    """Outcome of an attempt that did not reach the desired state yet."""

    error: BaseException | None = None
    value: Any = None


@dataclass(frozen=True)
class Success(Generic[T]):
    """Outcome of an attempt that reached the desired state."""

    value: T | None = None


@dataclass(frozen=True)
class Fail:
    """Outcome of an attempt that failed definitively. Never retried."""

    error: BaseException


PollOutcome = Continue | Success | Fail
PollFunction = Callable[[], Awaitable[PollOutcome]]


@dataclass
class WaitResult(Generic[T]):
    """Terminal result of a wait."""

    value: T | None = None
    error: BaseException | None = None
    attempts: int = 0
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        """Check if the wait succeeded."""
        return self.error is None

    def unwrap(self) -> T | None:
        """Return the value, or raise the error the wait ended with."""
        if self.error is not None:
            raise self.error
        return self.value


def from_done_pair(
    fn: Callable[[], Awaitable[tuple[bool, BaseException | None]]],
) -> PollFunction:
    """
    Adapt a poll function returning a ``(done, error)`` pair.

    ``(True, _)`` is a success, ``(False, error)`` keeps polling and records
    the error as the last observed one.
    """

    async def poll_fn() -> PollOutcome:
        done, error = await fn()
        if done:
            return Success()
        return Continue(error=error)

    return poll_fn


async def _sleep(interval: float, cancel: asyncio.Event | None) -> bool:
    """Sleep for the given interval. Returns True if the cancel event fired."""
    if cancel is None:
        await asyncio.sleep(interval)
        return False
    try:
        await asyncio.wait_for(cancel.wait(), timeout=interval)
    except asyncio.TimeoutError:
        return False
    return True


async def poll(
    poll_fn: PollFunction,
    config: WaitConfiguration,
    *,
    cancel: asyncio.Event | None = None,
    description: str = "condition",
) -> WaitResult[Any]:
    """
    Invoke ``poll_fn`` every ``retry_interval`` until it succeeds.

    The retry interval is waited once before the first attempt, so that a
    resource created or mutated just before the call has a chance to settle.

    Args:
        poll_fn: Coroutine function returning a PollOutcome
        config: Retry interval and timeout
        cancel: Optional event that aborts the wait when set
        description: Human readable description used in logs and errors

    Returns:
        WaitResult with the value of the successful attempt, or the error
        that ended the wait (DeadlineExceededError, WaitCancelledError or the
        error of a Fail outcome)
    """
    log = logger.bind(
        description=description,
        retry_interval=config.retry_interval,
        timeout=config.timeout,
    )
    log.debug("Waiting for condition")

    start = time.monotonic()
    deadline = start + config.timeout
    attempts = 0
    last_error: BaseException | None = None
    last_value: Any = None

    while True:
        cancelled = await _sleep(config.retry_interval, cancel)
        if cancelled or (cancel is not None and cancel.is_set()):
            elapsed = time.monotonic() - start
            log.info("Wait cancelled", attempts=attempts, elapsed_seconds=elapsed)
            return WaitResult(
                value=last_value,
                error=WaitCancelledError(
                    f"wait for {description} was cancelled after {attempts} attempt(s)",
                    context={"last_value": last_value},
                ),
                attempts=attempts,
                elapsed=elapsed,
            )

        attempts += 1
        try:
            outcome = await poll_fn()
        except TransientError as e:
            outcome = Continue(error=e)
        except HardInputError as e:
            outcome = Fail(e)
        elapsed = time.monotonic() - start

        if isinstance(outcome, Success):
            log.info("Condition met", attempts=attempts, elapsed_seconds=elapsed)
            return WaitResult(
                value=outcome.value, attempts=attempts, elapsed=elapsed
            )

        if isinstance(outcome, Fail):
            log.warning(
                "Condition failed",
                attempts=attempts,
                elapsed_seconds=elapsed,
                error=str(outcome.error),
            )
            return WaitResult(
                value=last_value,
                error=outcome.error,
                attempts=attempts,
                elapsed=elapsed,
            )

        last_error = outcome.error
        if outcome.value is not None:
            last_value = outcome.value

        if time.monotonic() >= deadline:
            message = f"timed out waiting for {description} after {config.timeout}s"
            if last_error is not None:
                message = f"{message}: {last_error}"
            log.warning(
                "Condition not met before deadline",
                attempts=attempts,
                elapsed_seconds=elapsed,
                last_error=str(last_error) if last_error else None,
                last_value=repr(last_value),
            )
            return WaitResult(
                value=last_value,
                error=DeadlineExceededError(
                    message,
                    timeout=config.timeout,
                    last_error=last_error,
                    last_value=last_value,
                ),
                attempts=attempts,
                elapsed=elapsed,
            )

        log.debug(
            "Condition not met yet, will retry",
            attempt=attempts,
            error=str(last_error) if last_error else None,
        )


async def poll_until(
    poll_fn: PollFunction,
    config: WaitConfiguration,
    *,
    cancel: asyncio.Event | None = None,
    description: str = "condition",
) -> Any:
    """Same as poll(), but returns the value or raises the terminal error."""
    result = await poll(poll_fn, config, cancel=cancel, description=description)
    return result.unwrap()
