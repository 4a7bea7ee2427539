# Overview: Ordered multi-step unit of work with per-step compensation.

"""
Saga helper for workflows that span several independent persistence calls.

The registration workflow persists the unit, then the bill artifact, then
the warranty; each step commits on its own. A Saga runs those steps strictly
in order and never starts a step after an earlier one raised. When a step
fails, the compensations of every step that already completed run in reverse
order and the original exception is re-raised.

COMPENSATION POLICY:
- Compensations are best effort. A compensation that raises is logged and
  skipped; it never replaces the original error.
- A step without a compensation is treated as needing none.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from flask import current_app


@dataclass
class SagaStep:
    name: str
    action: Callable[[dict], Any]
    compensate: Callable[[dict], None] | None = None


@dataclass
class Saga:
    name: str
    steps: list[SagaStep] = field(default_factory=list)
    context: dict = field(default_factory=dict)

    def step(self, name: str, action, compensate=None) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensate=compensate))
        return self

    def run(self) -> dict:
        completed: list[SagaStep] = []
        for step in self.steps:
            try:
                self.context[step.name] = step.action(self.context)
            except Exception:
                self._compensate(completed, failed_step=step.name)
                raise
            completed.append(step)
        return self.context

    def _compensate(self, completed: list[SagaStep], *, failed_step: str) -> None:
        for step in reversed(completed):
            if step.compensate is None:
                continue
            try:
                step.compensate(self.context)
            except Exception:
                current_app.logger.exception(
                    "Saga %s: compensation for step %s failed after %s failed",
                    self.name,
                    step.name,
                    failed_step,
                )
