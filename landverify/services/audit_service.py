from datetime import datetime
from typing import Optional

from landverify.models.audit import AuditEntry
from landverify.models.verification import Verification


class AuditService:
    """Appends audit entries to a verification inside the caller's unit of work."""

    def record(
        self,
        verification: Verification,
        action: str,
        performed_by: str,
        now: datetime,
        details: Optional[dict] = None,
    ) -> AuditEntry:
        verification.audit_sequence = (verification.audit_sequence or 0) + 1
        entry = AuditEntry(
            sequence=verification.audit_sequence,
            action=action,
            performed_by=performed_by,
            timestamp=now,
            details=details,
        )
        verification.audit_entries.append(entry)
        return entry
