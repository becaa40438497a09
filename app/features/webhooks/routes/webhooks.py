from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.features.leads.models.lead_model import LeadPlatform
from app.features.webhooks.schemas.payloads import WebhookDelivery
from app.features.webhooks.services.meta_graph import MetaGraphClient
from app.features.webhooks.services.processors import (
    MetaWebhookProcessor,
    SnapchatWebhookProcessor,
    TiktokWebhookProcessor,
)
from app.platform.config import settings
from app.platform.db.base import utcnow
from app.platform.db.session import get_session_factory
from app.platform.logger import get_logger
from app.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def get_meta_graph_client() -> MetaGraphClient:
    return MetaGraphClient.from_settings(settings)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def capture_delivery(request: Request, platform: LeadPlatform) -> WebhookDelivery:
    # Signatures are computed over these exact bytes, never a re-serialized body
    raw_body = await request.body()
    logger.info(f"{platform.value} webhook received ({len(raw_body)} bytes)")
    return WebhookDelivery(
        platform=platform,
        raw_body=raw_body,
        headers=dict(request.headers),
        ip_address=client_ip(request),
        received_at=utcnow(),
    )


@router.post("/test", summary="Webhook connectivity check")
async def webhook_test():
    logger.info("Test webhook POST received")
    return {"success": True}


@router.get(
    "/meta",
    summary="Meta subscription handshake",
    description="Echoes `hub.challenge` when `hub.verify_token` matches META_VERIFY_TOKEN.",
)
async def verify_meta_subscription(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    if (
        hub_mode == "subscribe"
        and settings.META_VERIFY_TOKEN
        and hub_verify_token == settings.META_VERIFY_TOKEN
    ):
        logger.info("Meta webhook subscription verified")
        return PlainTextResponse(hub_challenge or "", status_code=status.HTTP_200_OK)

    logger.warning("Meta webhook subscription verification failed")
    return api_response(message="Verification failed", status_code=status.HTTP_403_FORBIDDEN)


# Each platform wants a fast 200; processing happens after the response is sent.

@router.post("/meta", summary="Meta lead ads webhook")
async def receive_meta_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    graph_client: MetaGraphClient = Depends(get_meta_graph_client),
):
    delivery = await capture_delivery(request, LeadPlatform.meta)
    processor = MetaWebhookProcessor(session_factory, graph_client)
    background_tasks.add_task(processor.process, delivery)
    return {"received": True}


@router.post("/snapchat", summary="Snapchat lead form webhook")
async def receive_snapchat_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    delivery = await capture_delivery(request, LeadPlatform.snapchat)
    background_tasks.add_task(SnapchatWebhookProcessor(session_factory).process, delivery)
    return {"received": True}


@router.post("/tiktok", summary="TikTok lead generation webhook")
async def receive_tiktok_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    delivery = await capture_delivery(request, LeadPlatform.tiktok)
    background_tasks.add_task(TiktokWebhookProcessor(session_factory).process, delivery)
    return {"code": 0, "message": "success"}
