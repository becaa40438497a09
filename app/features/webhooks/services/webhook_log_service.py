from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.webhooks.models.webhook_log import WebhookLog
from app.features.webhooks.schemas.payloads import WebhookDelivery
from app.platform.config import settings
from app.platform.db.base import utcnow
from app.platform.logger import get_logger

logger = get_logger(__name__)


class WebhookLogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def open(self, delivery: WebhookDelivery, raw_payload: Any) -> str:
        """Record the delivery before any processing; returns the log id."""
        log = WebhookLog(
            platform=delivery.platform,
            raw_payload=raw_payload,
            headers=delivery.headers,
            ip_address=delivery.ip_address,
            processed=False,
        )
        self.db.add(log)
        await self.db.commit()
        return log.id

    async def mark_processed(
        self, log_id: str, *, event_type: Optional[str] = None, lead_id: Optional[str] = None
    ) -> bool:
        return await self._close(log_id, processed=True, event_type=event_type, lead_id=lead_id)

    async def mark_failed(
        self,
        log_id: str,
        error: str,
        *,
        event_type: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> bool:
        return await self._close(
            log_id, processed=False, error=error, event_type=event_type, lead_id=lead_id
        )

    async def _close(self, log_id: str, **outcome) -> bool:
        """
        Single outcome write. Only applies to a log that has no outcome yet,
        so a closed record is never rewritten.
        """
        result = await self.db.execute(
            update(WebhookLog)
            .where(
                WebhookLog.id == log_id,
                WebhookLog.processed.is_(False),
                WebhookLog.error.is_(None),
            )
            .values(updated_at=utcnow(), **outcome)
        )
        await self.db.commit()
        if result.rowcount == 0:
            logger.warning(f"Webhook log {log_id} already has an outcome, left untouched")
            return False
        return True

    async def purge_expired(
        self, retention_days: Optional[int] = None, now: Optional[datetime] = None
    ) -> int:
        """Delete logs older than the retention window. Returns how many were removed."""
        days = retention_days if retention_days is not None else settings.WEBHOOK_LOG_RETENTION_DAYS
        cutoff = (now or utcnow()) - timedelta(days=days)

        result = await self.db.execute(delete(WebhookLog).where(WebhookLog.created_at < cutoff))
        await self.db.commit()
        logger.info(f"Purged {result.rowcount} webhook log(s) created before {cutoff.isoformat()}")
        return result.rowcount
