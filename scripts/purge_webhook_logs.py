import argparse
import asyncio

from app.features.webhooks.services.webhook_log_service import WebhookLogService
from app.platform.config import settings
from app.platform.db.session import SessionLocal, engine


async def purge_webhook_logs(retention_days: int) -> int:
    async with SessionLocal() as db:
        removed = await WebhookLogService(db).purge_expired(retention_days=retention_days)
    await engine.dispose()
    print(f"✅ Removed {removed} webhook log(s) older than {retention_days} days")
    return removed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delete webhook logs past the retention window")
    parser.add_argument(
        "--days",
        type=int,
        default=settings.WEBHOOK_LOG_RETENTION_DAYS,
        help="Retention window in days (default: WEBHOOK_LOG_RETENTION_DAYS)",
    )
    args = parser.parse_args()
    asyncio.run(purge_webhook_logs(args.days))
