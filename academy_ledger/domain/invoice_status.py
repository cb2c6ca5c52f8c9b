from enum import Enum


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    partial = "partial"
    overdue = "overdue"
    void = "void"


OUTSTANDING_INVOICE_STATUSES = frozenset({InvoiceStatus.sent, InvoiceStatus.partial, InvoiceStatus.overdue})


class InvoiceType(str, Enum):
    weekly = "weekly"
    monthly = "monthly"
    events = "events"


class InvoiceEmailType(str, Enum):
    invoice = "invoice"
    reminder_7_day = "reminder_7_day"
    reminder_14_day = "reminder_14_day"
    reminder_overdue = "reminder_overdue"
