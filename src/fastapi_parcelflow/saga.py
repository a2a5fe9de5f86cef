"""Ordered multi-record writes with compensation.

A transition that touches several records runs as a :class:`Saga`: steps
execute in order and each compensable step carries an undo action. If a
step fails after earlier ones succeeded, the earlier steps are compensated
in reverse order and :class:`PartialFailureError` reports what happened.

Retriable steps sit after the point of no return (typically the ledger
append). They are never compensated: their failure is handed to the
saga's ``on_retriable_failure`` hook, which may queue them for replay.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi_parcelflow.exceptions import PartialFailureError

logger = logging.getLogger(__name__)

RetriableFailureHook = Callable[["SagaStep", Exception], Awaitable[bool]]


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Awaitable[Any]]
    compensation: Callable[[], Awaitable[Any]] | None = None
    retriable: bool = False


class Saga:
    """Run steps in order, compensating completed ones on failure."""

    def __init__(
        self,
        operation: str,
        steps: list[SagaStep] | None = None,
        *,
        on_retriable_failure: RetriableFailureHook | None = None,
    ) -> None:
        self.operation = operation
        self.steps: list[SagaStep] = list(steps or [])
        self.on_retriable_failure = on_retriable_failure

    def add_step(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        compensation: Callable[[], Awaitable[Any]] | None = None,
        *,
        retriable: bool = False,
    ) -> Saga:
        self.steps.append(
            SagaStep(
                name=name,
                action=action,
                compensation=compensation,
                retriable=retriable,
            )
        )
        return self

    async def run(self) -> dict[str, Any]:
        """Execute all steps and return their results keyed by step name.

        A failure of the very first step is re-raised unchanged since no
        write has happened yet.
        """
        completed: list[SagaStep] = []
        results: dict[str, Any] = {}

        for step in self.steps:
            try:
                results[step.name] = await step.action()
            except Exception as exc:
                if not completed:
                    raise
                if step.retriable:
                    raise await self._forward_recover(
                        step, completed, exc
                    ) from exc
                raise await self._compensate(step, completed, exc) from exc
            completed.append(step)

        return results

    async def _forward_recover(
        self,
        failed: SagaStep,
        completed: list[SagaStep],
        exc: Exception,
    ) -> PartialFailureError:
        scheduled = False
        if self.on_retriable_failure is not None:
            try:
                scheduled = await self.on_retriable_failure(failed, exc)
            except Exception:
                logger.exception(
                    "%s: could not schedule retry of step %s",
                    self.operation,
                    failed.name,
                )
        logger.warning(
            "%s: step %s failed after %s (retry scheduled: %s): %s",
            self.operation,
            failed.name,
            ", ".join(step.name for step in completed),
            scheduled,
            exc,
        )
        return PartialFailureError(
            self.operation,
            failed_step=failed.name,
            completed_steps=[step.name for step in completed],
            retry_scheduled=scheduled,
            reason=str(exc),
        )

    async def _compensate(
        self,
        failed: SagaStep,
        completed: list[SagaStep],
        exc: Exception,
    ) -> PartialFailureError:
        compensated: list[str] = []
        for step in reversed(completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
            except Exception:
                logger.exception(
                    "%s: compensation of step %s failed",
                    self.operation,
                    step.name,
                )
                continue
            compensated.append(step.name)

        logger.warning(
            "%s: step %s failed, compensated %s: %s",
            self.operation,
            failed.name,
            compensated or "nothing",
            exc,
        )
        return PartialFailureError(
            self.operation,
            failed_step=failed.name,
            completed_steps=[step.name for step in completed],
            compensated_steps=compensated,
            reason=str(exc),
        )
