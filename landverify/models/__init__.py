from landverify.models.verification import Verification, WorkflowStep, PaymentEntry
from landverify.models.audit import AuditEntry, NotificationLog

__all__ = [
    "Verification",
    "WorkflowStep",
    "PaymentEntry",
    "AuditEntry",
    "NotificationLog",
]
