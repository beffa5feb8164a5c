"""Commit saga: run checkout steps in order, undo completed ones on failure.

Each step's action runs immediately against its ledger. When a step with a
compensator succeeds, the compensator is recorded together with the step's
result. If a later step raises, compensators run in reverse order; a
compensator that raises is logged and counted, and unwinding continues.
"""

from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class CommitSaga:
    def __init__(self, checkout_id: str) -> None:
        self.checkout_id = checkout_id
        self.current_step: str | None = None
        self.completed_steps: list[str] = []
        self._compensators: list[tuple[str, Any, Callable[[Any], Any]]] = []

    def step(self, name: str, action: Callable[[], Any], compensate: Callable[[Any], Any] | None = None) -> Any:
        """Run ``action``; on success remember ``compensate(result)`` for rollback.

        Nothing is recorded when the action returns None, meaning it had
        nothing to do.
        """
        self.current_step = name
        result = action()
        self.completed_steps.append(name)
        if compensate is not None and result is not None:
            self._compensators.append((name, result, compensate))
        logger.debug("saga_step_completed", checkout_id=self.checkout_id, step=name)
        return result

    def rollback(self) -> tuple[int, int]:
        """Run compensators in reverse. Returns (run, failed)."""
        run = 0
        failed = 0
        for name, value, compensate in reversed(self._compensators):
            try:
                compensate(value)
                run += 1
                logger.info("saga_step_compensated", checkout_id=self.checkout_id, step=name)
            except Exception:
                failed += 1
                logger.exception("saga_compensation_failed", checkout_id=self.checkout_id, step=name)
        self._compensators.clear()
        return run, failed
