"""
Webhook processing that runs after the platform has been acknowledged.

Routes answer the platform straight away and schedule `processor.process`
as a background task. From there on the HTTP response is already gone: every
outcome, including failures, is written to the webhook log instead of being
returned. Order of work for one delivery:

    decode body -> open log -> verify signature -> decode platform shape
    -> (Meta) fetch lead + form details -> normalize -> upsert -> close log
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.leads.models.lead_model import LeadPlatform
from app.features.leads.schemas.lead_schema import LeadUpsert
from app.features.leads.services.lead_service import LeadService
from app.features.webhooks.schemas.payloads import (
    MetaEntry,
    MetaLeadgenValue,
    WebhookDelivery,
    decode_json_body,
    decode_meta_leadgen,
    decode_meta_payload,
    decode_snapchat_payload,
    decode_tiktok_payload,
)
from app.features.webhooks.services.meta_graph import MetaGraphClient
from app.features.webhooks.services.normalizers import (
    normalize_meta_field_data,
    normalize_snapchat_responses,
    normalize_tiktok_fields,
    parse_platform_timestamp,
)
from app.features.webhooks.services.signatures import (
    verify_meta_signature,
    verify_snapchat_signature,
    verify_tiktok_signature,
)
from app.features.webhooks.services.webhook_log_service import WebhookLogService
from app.platform.config import settings
from app.platform.exceptions import PayloadValidationError
from app.platform.logger import get_logger

logger = get_logger(__name__)

INVALID_SIGNATURE = "Invalid signature"
MISSING_LEAD_ID = "Missing lead id"


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class ProcessingOutcome:
    """Filled in while a delivery is handled; becomes the log's outcome."""
    event_type: Optional[str] = None
    lead_id: Optional[str] = None
    errors: list[str] = field(default_factory=list)


class WebhookProcessor:
    platform: LeadPlatform

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    def verify_signature(self, delivery: WebhookDelivery) -> bool:
        raise NotImplementedError

    async def handle(self, db: AsyncSession, payload: Any, outcome: ProcessingOutcome) -> None:
        raise NotImplementedError

    async def process(self, delivery: WebhookDelivery) -> ProcessingOutcome:
        """
        Run one delivery end to end. Never raises: failures are logged and
        recorded on the webhook log so the platform never sees them.
        """
        outcome = ProcessingOutcome()
        platform = self.platform.value

        async with self.session_factory() as db:
            logs = WebhookLogService(db)
            payload, decode_error = decode_json_body(delivery.raw_body)
            try:
                log_id = await logs.open(delivery, payload)
            except Exception as e:
                logger.exception(f"Could not record {platform} webhook delivery: {e}")
                await db.rollback()
                outcome.errors.append(str(e))
                return outcome

            try:
                if settings.verify_signatures and not self.verify_signature(delivery):
                    logger.warning(f"Rejected {platform} webhook from {delivery.ip_address}: invalid signature")
                    outcome.errors.append(INVALID_SIGNATURE)
                    await logs.mark_failed(log_id, INVALID_SIGNATURE)
                    return outcome

                if decode_error:
                    raise PayloadValidationError(decode_error)

                await self.handle(db, payload, outcome)
            except Exception as e:
                logger.exception(f"Error processing {platform} webhook: {e}")
                await db.rollback()
                outcome.errors.append(str(e) or e.__class__.__name__)

            try:
                if outcome.errors:
                    await logs.mark_failed(
                        log_id,
                        "; ".join(outcome.errors),
                        event_type=outcome.event_type,
                        lead_id=outcome.lead_id,
                    )
                else:
                    await logs.mark_processed(
                        log_id, event_type=outcome.event_type, lead_id=outcome.lead_id
                    )
            except Exception as e:
                logger.exception(f"Could not close {platform} webhook log {log_id}: {e}")

        return outcome

    async def store(self, db: AsyncSession, lead: LeadUpsert, outcome: ProcessingOutcome) -> None:
        stored = await LeadService(db).upsert_lead(lead)
        outcome.lead_id = stored.id
        logger.info(
            f"{self.platform.value} lead {lead.platform_lead_id} saved as {stored.id}"
        )


class MetaWebhookProcessor(WebhookProcessor):
    platform = LeadPlatform.meta

    def __init__(self, session_factory: async_sessionmaker, graph_client: MetaGraphClient):
        super().__init__(session_factory)
        self.graph_client = graph_client

    def verify_signature(self, delivery: WebhookDelivery) -> bool:
        return verify_meta_signature(
            delivery.raw_body,
            delivery.headers.get("x-hub-signature-256"),
            settings.META_APP_SECRET,
        )

    async def handle(self, db: AsyncSession, payload: Any, outcome: ProcessingOutcome) -> None:
        """
        One delivery can batch several pages and changes. Each leadgen change
        is handled on its own; a failure is recorded and the rest carry on.
        """
        body = decode_meta_payload(payload)

        for entry in body.entry:
            for change in entry.changes:
                outcome.event_type = change.field
                if change.field != "leadgen":
                    continue
                try:
                    await self._store_leadgen(db, entry, decode_meta_leadgen(change), outcome)
                except Exception as e:
                    logger.exception(f"Error processing Meta leadgen change on page {entry.id}: {e}")
                    await db.rollback()
                    outcome.errors.append(str(e) or e.__class__.__name__)

    async def _store_leadgen(
        self, db: AsyncSession, entry: MetaEntry, event: MetaLeadgenValue, outcome: ProcessingOutcome
    ) -> None:
        if not event.leadgen_id:
            raise PayloadValidationError(MISSING_LEAD_ID)

        if event.form_id:
            details, form = await asyncio.gather(
                self.graph_client.fetch_lead_details(event.leadgen_id),
                self.graph_client.fetch_form_details(event.form_id),
            )
        else:
            details = await self.graph_client.fetch_lead_details(event.leadgen_id)
            form = await self.graph_client.fetch_form_details(_text(details.get("form_id")))

        answers = normalize_meta_field_data(details.get("field_data"))
        created_at = parse_platform_timestamp(details.get("created_time")) or parse_platform_timestamp(
            event.created_time
        )

        lead = LeadUpsert(
            platform=self.platform,
            platform_lead_id=event.leadgen_id,
            # ids from the webhook event win over the API's
            form_id=event.form_id or _text(details.get("form_id")),
            form_name=_text((form or {}).get("name")),
            ad_id=event.ad_id or _text(details.get("ad_id")),
            ad_name=_text(details.get("ad_name")),
            adset_id=event.adgroup_id or _text(details.get("adset_id")),
            adset_name=_text(details.get("adset_name")),
            campaign_id=_text(details.get("campaign_id")),
            campaign_name=_text(details.get("campaign_name")),
            page_id=entry.id or event.page_id,
            platform_created_at=created_at,
            **answers.as_lead_fields(),
        )
        await self.store(db, lead, outcome)


class SnapchatWebhookProcessor(WebhookProcessor):
    platform = LeadPlatform.snapchat

    def verify_signature(self, delivery: WebhookDelivery) -> bool:
        return verify_snapchat_signature(
            delivery.raw_body,
            delivery.headers.get("x-snap-signature"),
            settings.SNAPCHAT_CLIENT_SECRET,
            delivery.headers.get("x-snap-timestamp"),
            tolerance_seconds=settings.SNAPCHAT_SIGNATURE_TOLERANCE_SECONDS,
        )

    async def handle(self, db: AsyncSession, payload: Any, outcome: ProcessingOutcome) -> None:
        event_type, lead_data = decode_snapchat_payload(payload)
        outcome.event_type = event_type
        if lead_data is None:
            logger.info(f"Snapchat {event_type} event carries no lead, nothing to store")
            return

        if not lead_data.platform_lead_id:
            raise PayloadValidationError(MISSING_LEAD_ID)

        answers = normalize_snapchat_responses(lead_data.answers)
        lead = LeadUpsert(
            platform=self.platform,
            platform_lead_id=lead_data.platform_lead_id,
            form_id=lead_data.form_id,
            form_name=lead_data.form_name,
            ad_id=lead_data.ad_id,
            ad_name=lead_data.ad_name,
            adset_id=lead_data.ad_squad_id,
            adset_name=lead_data.ad_squad_name,
            campaign_id=lead_data.campaign_id,
            campaign_name=lead_data.campaign_name,
            platform_created_at=parse_platform_timestamp(lead_data.created_at),
            **answers.as_lead_fields(),
        )
        await self.store(db, lead, outcome)


class TiktokWebhookProcessor(WebhookProcessor):
    platform = LeadPlatform.tiktok

    def verify_signature(self, delivery: WebhookDelivery) -> bool:
        signature = delivery.headers.get("x-tiktok-signature") or delivery.headers.get("x-tt-signature")
        return verify_tiktok_signature(delivery.raw_body, signature, settings.TIKTOK_APP_SECRET)

    async def handle(self, db: AsyncSession, payload: Any, outcome: ProcessingOutcome) -> None:
        event_type, lead_data = decode_tiktok_payload(payload)
        outcome.event_type = event_type

        if not lead_data.platform_lead_id:
            raise PayloadValidationError(MISSING_LEAD_ID)

        answers = normalize_tiktok_fields(lead_data.answers)
        lead = LeadUpsert(
            platform=self.platform,
            platform_lead_id=lead_data.platform_lead_id,
            form_id=lead_data.form_id,
            form_name=lead_data.form_name,
            ad_id=lead_data.ad_id,
            ad_name=lead_data.ad_name,
            adset_id=lead_data.adgroup_id,
            adset_name=lead_data.adgroup_name,
            campaign_id=lead_data.campaign_id,
            campaign_name=lead_data.campaign_name,
            platform_created_at=parse_platform_timestamp(lead_data.create_time),
            **answers.as_lead_fields(),
        )
        await self.store(db, lead, outcome)
