"""Hourly pay rate resolution for teacher assignments.

Priority order (first positive value wins):
1. Assignment override (``hourly_rate_teacher``)
2. Service default (``default_teacher_rate``)
3. Teacher default (``default_hourly_rate``)
4. Zero, tagged as a teacher-level rate so a reviewer sees it

A rate of exactly zero is treated as unset and falls through to the next level.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from academy_ledger.domain.money import ZERO, to_money
from academy_ledger.domain.payroll_status import RateSource

if TYPE_CHECKING:
    from academy_ledger.infrastructure.db.models import TeacherAssignment


@dataclass(frozen=True)
class ResolvedRate:
    rate: Decimal
    source: RateSource


def _is_set(rate: Decimal | None) -> bool:
    return rate is not None and rate > 0


def resolve_hourly_rate(
    assignment_rate: Decimal | None,
    service_rate: Decimal | None,
    teacher_rate: Decimal | None,
) -> ResolvedRate:
    if _is_set(assignment_rate):
        return ResolvedRate(rate=to_money(assignment_rate), source=RateSource.assignment)
    if _is_set(service_rate):
        return ResolvedRate(rate=to_money(service_rate), source=RateSource.service)
    if _is_set(teacher_rate):
        return ResolvedRate(rate=to_money(teacher_rate), source=RateSource.teacher)
    return ResolvedRate(rate=ZERO, source=RateSource.teacher)


def resolve_assignment_rate(assignment: "TeacherAssignment") -> ResolvedRate:
    """Resolve the rate from a loaded assignment graph.

    The service comes from the enrollment for student-specific assignments and
    from the assignment itself for general ones.
    """
    service = assignment.enrollment.service if assignment.enrollment is not None else assignment.service
    return resolve_hourly_rate(
        assignment.hourly_rate_teacher,
        service.default_teacher_rate if service is not None else None,
        assignment.teacher.default_hourly_rate if assignment.teacher is not None else None,
    )
