"""Ordered undo actions for multi-step writes.

Payroll run creation, draft invoice generation and consolidation commit
several writes in sequence. Each committed step registers how to undo itself;
when a later step fails the caller unwinds the stack, newest step first.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from academy_ledger.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CompensationStep:
    label: str
    undo: Callable[[], None]


@dataclass
class CompensationStack:
    db: Session
    operation: str
    steps: list[CompensationStep] = field(default_factory=list)

    def push(self, label: str, undo: Callable[[], None]) -> None:
        self.steps.append(CompensationStep(label=label, undo=undo))

    def clear(self) -> None:
        self.steps.clear()

    def unwind(self) -> list[str]:
        """Run every registered undo action in reverse order.

        Undo failures are logged and returned; the remaining actions still run.
        """
        self.db.rollback()
        failures: list[str] = []
        while self.steps:
            step = self.steps.pop()
            try:
                step.undo()
                self.db.commit()
                logger.info("compensation_step_applied", operation=self.operation, step=step.label)
            except Exception as exc:
                self.db.rollback()
                failures.append(f"{step.label}: {exc}")
                logger.error(
                    "compensation_step_failed",
                    operation=self.operation,
                    step=step.label,
                    error=str(exc),
                )
        return failures


def delete_entity(db: Session, model, entity_id: int) -> Callable[[], None]:
    """Undo action deleting one row by primary key, if it still exists."""

    def _undo() -> None:
        entity = db.get(model, entity_id)
        if entity is not None:
            db.delete(entity)
            db.flush()

    return _undo
