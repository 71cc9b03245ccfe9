"""Multi-step workflows with manual compensation.

Local steps write to our own store and can be undone. External steps call
third-party services that cannot be rolled back; they are best-effort and
their failures never abort the workflow.
"""

from __future__ import annotations

import enum
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from opsledger.app.core.config import settings
from opsledger.app.core.errors import ValidationError

logger = logging.getLogger(__name__)


class StepKind(str, enum.Enum):
    LOCAL = "local"
    EXTERNAL = "external"


@dataclass
class SagaStep:
    name: str
    kind: StepKind
    action: Callable[[dict[str, Any]], Any]
    # Receives the shared context and the value the action returned
    compensate: Callable[[dict[str, Any], Any], None] | None = None


@dataclass
class SagaResult:
    context: dict[str, Any]
    completed: list[str] = field(default_factory=list)
    external_failures: dict[str, str] = field(default_factory=dict)

    def succeeded(self, name: str) -> bool:
        return name in self.completed


def run_saga(
    steps: list[SagaStep],
    context: dict[str, Any] | None = None,
) -> SagaResult:
    """Run ``steps`` in declared order.

    When a local step raises, the compensations of the local steps that
    already completed run in reverse order, one at a time. A compensation
    that fails is logged and skipped. The original exception is then
    re-raised unchanged.

    When an external step raises, the failure is logged and recorded in
    ``SagaResult.external_failures`` and the workflow moves on.
    """
    external = [step.name for step in steps if step.kind == StepKind.EXTERNAL]
    if len(external) > settings.SAGA_MAX_EXTERNAL_STEPS:
        raise ValidationError(
            f"Workflow declares {len(external)} external steps, "
            f"at most {settings.SAGA_MAX_EXTERNAL_STEPS} are allowed",
            details={"external_steps": external},
        )

    ctx: dict[str, Any] = context if context is not None else {}
    result = SagaResult(context=ctx)
    undo: list[tuple[str, Callable[[], None]]] = []

    for step in steps:
        if step.kind == StepKind.EXTERNAL:
            try:
                step.action(ctx)
            except Exception as exc:
                logger.warning("External step '%s' failed: %s", step.name, exc)
                result.external_failures[step.name] = str(exc)
                continue
            result.completed.append(step.name)
            continue

        try:
            value = step.action(ctx)
        except Exception:
            logger.error(
                "Local step '%s' failed, compensating %d completed step(s)",
                step.name, len(undo),
            )
            _compensate(undo)
            raise

        result.completed.append(step.name)
        if step.compensate is not None:
            undo.append((step.name, functools.partial(step.compensate, ctx, value)))

    return result


def _compensate(undo: list[tuple[str, Callable[[], None]]]) -> None:
    for name, compensation in reversed(undo):
        try:
            compensation()
        except Exception:
            logger.exception("Compensation for step '%s' failed", name)


def local_transaction(db: Session, fn: Callable[[], Any]) -> Any:
    """Run ``fn`` and commit; roll back its partial work if it raises."""
    try:
        value = fn()
        db.commit()
    except Exception:
        db.rollback()
        raise
    return value
