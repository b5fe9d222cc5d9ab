import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from landverify.core.clock import Clock
from landverify.core.constants import NotificationEvent, TERMINAL_STATUSES
from landverify.core.exceptions import ConflictError
from landverify.models.verification import Verification
from landverify.services.audit_service import AuditService
from landverify.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


async def sweep_overdue(db: AsyncSession, clock: Clock, limit: int = 500) -> dict:
    """
    Flag open verifications whose expected completion date has passed.

    Each verification is flagged once: it is marked not SLA compliant, gets an
    "sla_breached" audit entry and an overdue notification. Status is not changed.
    """
    now = clock.now()
    result = await db.execute(
        select(Verification)
        .where(
            Verification.status.not_in(list(TERMINAL_STATUSES)),
            Verification.expected_completion_date.is_not(None),
            Verification.expected_completion_date < now,
            Verification.overdue_flagged_at.is_(None),
        )
        .order_by(Verification.expected_completion_date)
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    overdue = list(result.scalars().all())

    audit = AuditService()
    notifications = NotificationService(db)
    for verification in overdue:
        verification.sla_compliant = False
        verification.overdue_flagged_at = now
        verification.updated_at = now
        audit.record(
            verification,
            action="sla_breached",
            performed_by="system",
            now=now,
            details={
                "expected_completion_date": verification.expected_completion_date.isoformat(),
                "status": verification.status.value,
            },
        )
        notifications.emit(
            NotificationEvent.OVERDUE,
            now=now,
            verification_id=verification.verification_id,
            recipient_id=verification.requested_by,
            payload={"status": verification.status.value},
        )

    try:
        await db.flush()
    except StaleDataError:
        logger.warning("SLA sweep lost a race with a concurrent update")
        raise ConflictError("sla-sweep")

    if overdue:
        logger.info(f"SLA sweep flagged {len(overdue)} overdue verification(s)")
    return {"flagged": len(overdue), "verification_ids": [v.verification_id for v in overdue]}
