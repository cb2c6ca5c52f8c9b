from enum import Enum


class PayrollRunStatus(str, Enum):
    draft = "draft"
    review = "review"
    approved = "approved"
    paid = "paid"


# One-way progression; there is no path back to an earlier status.
PAYROLL_RUN_TRANSITIONS: dict[PayrollRunStatus, PayrollRunStatus] = {
    PayrollRunStatus.draft: PayrollRunStatus.review,
    PayrollRunStatus.review: PayrollRunStatus.approved,
    PayrollRunStatus.approved: PayrollRunStatus.paid,
}

EDITABLE_PAYROLL_RUN_STATUSES = frozenset({PayrollRunStatus.draft, PayrollRunStatus.review})


def can_transition(current: PayrollRunStatus, target: PayrollRunStatus) -> bool:
    return PAYROLL_RUN_TRANSITIONS.get(current) == target


class RateSource(str, Enum):
    assignment = "assignment"
    service = "service"
    teacher = "teacher"
