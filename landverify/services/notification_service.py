import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from landverify.config import settings
from landverify.core.constants import NotificationEvent
from landverify.models.audit import NotificationLog

logger = logging.getLogger(__name__)


class NotificationSink:
    """Delivers notification intents via the configured provider."""

    async def send(self, event_type: str, payload: dict) -> bool:
        if settings.NOTIFICATION_PROVIDER == "console":
            logger.info(f"[NOTIFY {event_type}] {payload}")
            return True
        elif settings.NOTIFICATION_PROVIDER == "webhook":
            return await self._send_webhook(event_type, payload)
        else:
            logger.warning(f"Unknown notification provider: {settings.NOTIFICATION_PROVIDER}")
            return False

    async def _send_webhook(self, event_type: str, payload: dict) -> bool:
        if not settings.NOTIFICATION_WEBHOOK_URL:
            logger.error("NOTIFICATION_WEBHOOK_URL is not configured")
            return False
        headers = {}
        if settings.NOTIFICATION_WEBHOOK_TOKEN:
            headers["Authorization"] = f"Bearer {settings.NOTIFICATION_WEBHOOK_TOKEN}"
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    settings.NOTIFICATION_WEBHOOK_URL,
                    json={"event": event_type, "payload": payload},
                    headers=headers,
                )
            if response.status_code < 300:
                logger.info(f"Notification {event_type} delivered")
                return True
            logger.error(f"Notification webhook error {response.status_code}: {response.text}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to deliver notification {event_type}: {e}")
            return False


class NotificationService:
    """Writes notification intents to the outbox in the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def emit(
        self,
        event: NotificationEvent,
        now: datetime,
        verification_id: Optional[str] = None,
        recipient_id: Optional[str] = None,
        payload: Optional[dict] = None,
    ) -> NotificationLog:
        entry = NotificationLog(
            verification_id=verification_id,
            recipient_id=recipient_id,
            event_type=event.value,
            payload=payload or {},
            status="pending",
            created_at=now,
        )
        self.db.add(entry)
        return entry


async def dispatch_pending(
    db: AsyncSession,
    sink: NotificationSink,
    now: datetime,
    limit: int = 100,
) -> dict:
    """Deliver pending outbox rows once each. Failures are recorded, never retried here."""
    result = await db.execute(
        select(NotificationLog)
        .where(NotificationLog.status == "pending")
        .order_by(NotificationLog.id)
        .limit(limit)
    )
    entries = list(result.scalars().all())

    sent = failed = 0
    for entry in entries:
        payload = dict(entry.payload or {})
        payload.setdefault("verification_id", entry.verification_id)
        payload.setdefault("recipient_id", entry.recipient_id)
        try:
            delivered = await sink.send(entry.event_type, payload)
        except Exception as e:
            logger.exception(f"Notification sink raised for {entry.event_type}")
            delivered = False
            entry.error_message = str(e)[:500]
        if delivered:
            entry.status = "sent"
            entry.sent_at = now
            sent += 1
        else:
            entry.status = "failed"
            failed += 1

    await db.flush()
    return {"processed": len(entries), "sent": sent, "failed": failed}
