from enum import Enum


class BillingFrequency(str, Enum):
    per_session = "per_session"
    weekly = "weekly"
    monthly = "monthly"
    bi_monthly = "bi_monthly"
    annual = "annual"
    one_time = "one_time"


class EnrollmentStatus(str, Enum):
    trial = "trial"
    active = "active"
    paused = "paused"
    ended = "ended"


class ServiceCode:
    """Service codes that switch on special pricing or labelling."""

    academic_coaching = "academic_coaching"
    eaton_hub = "eaton_hub"
    eaton_online = "eaton_online"
    learning_pod = "learning_pod"
    elective_classes = "elective_classes"


SEMESTER_SERVICE_CODES = frozenset({ServiceCode.learning_pod, ServiceCode.elective_classes})


class EventType(str, Enum):
    event = "event"
    class_ = "class"


class EventPaymentStatus(str, Enum):
    pending = "pending"
    stepup_pending = "stepup_pending"
    paid = "paid"
    cancelled = "cancelled"


SCHOLARSHIP_PAYMENT_METHOD = "stepup"
