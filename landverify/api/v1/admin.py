"""
Administrative maintenance endpoints. The background scheduler runs the
same jobs periodically; these let an operator trigger them on demand.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from landverify.database import get_db
from landverify.api.deps import get_current_admin, get_clock, get_notification_sink
from landverify.core.clock import Clock
from landverify.schemas.auth import Principal
from landverify.services.notification_service import NotificationSink, dispatch_pending
from landverify.services.sla_service import sweep_overdue

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/sla-sweep")
async def run_sla_sweep(
    principal: Principal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Flag overdue verifications now."""
    return await sweep_overdue(db, clock)


@router.post("/notifications/dispatch")
async def dispatch_notifications(
    limit: int = Query(default=100, ge=1, le=1000),
    principal: Principal = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    sink: NotificationSink = Depends(get_notification_sink),
):
    """Deliver pending notifications from the outbox."""
    return await dispatch_pending(db, sink, clock.now(), limit=limit)
