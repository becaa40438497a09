"""
Platform webhook payload shapes.

Each platform has been seen nesting its lead differently; the decode_* helpers
resolve those variants into one model per platform before any business logic
runs. A body that matches none of them raises PayloadValidationError.
"""

import json
from datetime import datetime
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from app.features.leads.models.lead_model import LeadPlatform
from app.platform.exceptions import PayloadValidationError


def _id_to_str(value: Any) -> Any:
    # Platforms send numeric ids as JSON numbers or strings interchangeably
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


PlatformId = Annotated[Optional[str], BeforeValidator(_id_to_str)]


class WebhookDelivery(BaseModel):
    """Everything captured from the HTTP request before it is acknowledged."""
    platform: LeadPlatform
    raw_body: bytes
    headers: dict[str, str]
    ip_address: Optional[str] = None
    received_at: datetime


class PayloadModel(BaseModel):
    model_config = ConfigDict(extra="allow")


# ─────────────────────────────────────────────────────────────
# Meta
# ─────────────────────────────────────────────────────────────

class MetaLeadgenValue(PayloadModel):
    leadgen_id: PlatformId = None
    form_id: PlatformId = None
    ad_id: PlatformId = None
    adgroup_id: PlatformId = None
    page_id: PlatformId = None
    created_time: Optional[Union[int, float, str]] = None


class MetaChange(PayloadModel):
    field: str
    value: dict[str, Any] = Field(default_factory=dict)


class MetaEntry(PayloadModel):
    id: PlatformId = None
    time: Optional[Union[int, float]] = None
    changes: list[MetaChange] = Field(default_factory=list)


class MetaWebhookPayload(PayloadModel):
    object: Optional[str] = None
    entry: list[MetaEntry] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# Snapchat
# ─────────────────────────────────────────────────────────────

class SnapchatResponse(PayloadModel):
    question_type: Optional[str] = None
    question_id: PlatformId = None
    question: Optional[str] = None
    answer: Any = None


class SnapchatLead(PayloadModel):
    lead_id: PlatformId = None
    id: PlatformId = None
    form_id: PlatformId = None
    form_name: Optional[str] = None
    ad_id: PlatformId = None
    ad_name: Optional[str] = None
    ad_squad_id: PlatformId = None
    ad_squad_name: Optional[str] = None
    campaign_id: PlatformId = None
    campaign_name: Optional[str] = None
    created_at: Optional[Union[int, float, str]] = None
    form_responses: Optional[list[SnapchatResponse]] = None
    responses: Optional[list[SnapchatResponse]] = None

    @property
    def platform_lead_id(self) -> Optional[str]:
        return self.lead_id or self.id

    @property
    def answers(self) -> list[SnapchatResponse]:
        return self.form_responses or self.responses or []


# ─────────────────────────────────────────────────────────────
# TikTok
# ─────────────────────────────────────────────────────────────

class TiktokField(PayloadModel):
    field_name: Optional[str] = None
    name: Optional[str] = None
    value: Any = None
    answer: Any = None

    @property
    def label(self) -> Optional[str]:
        return self.field_name or self.name

    @property
    def answer_value(self) -> Any:
        return self.value if self.value not in (None, "") else self.answer


class TiktokLead(PayloadModel):
    lead_id: PlatformId = None
    id: PlatformId = None
    form_id: PlatformId = None
    form_name: Optional[str] = None
    ad_id: PlatformId = None
    ad_name: Optional[str] = None
    adgroup_id: PlatformId = None
    adgroup_name: Optional[str] = None
    campaign_id: PlatformId = None
    campaign_name: Optional[str] = None
    create_time: Optional[Union[int, float, str]] = None
    form_fields: Optional[list[TiktokField]] = None
    fields: Optional[list[TiktokField]] = None

    @property
    def platform_lead_id(self) -> Optional[str]:
        return self.lead_id or self.id

    @property
    def answers(self) -> list[TiktokField]:
        return self.form_fields or self.fields or []


# Event-level values TikTok sometimes puts beside the lead instead of inside it
TIKTOK_CONTEXT_FIELDS = ("form_id", "form_name", "ad_id", "ad_name", "campaign_id", "campaign_name")


# ─────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────

def decode_json_body(raw_body: bytes) -> tuple[Any, Optional[str]]:
    """
    Returns (payload, error). A body that isn't JSON is kept as {"raw": text}
    so the webhook log still shows what arrived.
    """
    try:
        return json.loads(raw_body), None
    except (UnicodeDecodeError, ValueError):
        return {"raw": raw_body.decode("utf-8", errors="replace")}, "Invalid JSON payload"


def _require_object(payload: Any, platform: str) -> dict:
    if not isinstance(payload, dict):
        raise PayloadValidationError(f"Unexpected {platform} payload: expected a JSON object")
    return payload


def decode_meta_payload(payload: Any) -> MetaWebhookPayload:
    body = _require_object(payload, "Meta")
    try:
        return MetaWebhookPayload.model_validate(body)
    except ValidationError as exc:
        raise PayloadValidationError(f"Unexpected Meta payload: {exc.error_count()} invalid field(s)") from exc


def decode_meta_leadgen(change: MetaChange) -> MetaLeadgenValue:
    try:
        return MetaLeadgenValue.model_validate(change.value)
    except ValidationError as exc:
        raise PayloadValidationError("Unexpected Meta leadgen change value") from exc


def decode_snapchat_payload(payload: Any) -> tuple[str, Optional[SnapchatLead]]:
    """
    Snapchat either posts the lead itself or wraps it under `lead`.
    Returns (event_type, lead); lead is None for non-lead events.
    """
    body = _require_object(payload, "Snapchat")
    event_type = body.get("event_type") or "lead_submitted"

    if body.get("lead") is not None:
        lead_data = body["lead"]
    elif event_type == "lead_submitted":
        lead_data = body
    else:
        return event_type, None

    if not isinstance(lead_data, dict):
        raise PayloadValidationError("Unexpected Snapchat payload: `lead` is not an object")
    try:
        return event_type, SnapchatLead.model_validate(lead_data)
    except ValidationError as exc:
        raise PayloadValidationError(f"Unexpected Snapchat lead: {exc.error_count()} invalid field(s)") from exc


def decode_tiktok_payload(payload: Any) -> tuple[str, TiktokLead]:
    """
    TikTok nests the lead under `lead` or `data.lead`, or sends it bare.
    Event-level ids fill in whatever the lead object leaves out.
    """
    body = _require_object(payload, "TikTok")
    event_type = body.get("event") or body.get("event_type") or "lead_submitted"

    data = body.get("data")
    if isinstance(body.get("lead"), dict):
        lead_data = body["lead"]
    elif isinstance(data, dict) and isinstance(data.get("lead"), dict):
        lead_data = data["lead"]
    elif body.get("lead") is not None:
        raise PayloadValidationError("Unexpected TikTok payload: `lead` is not an object")
    else:
        lead_data = body

    try:
        lead = TiktokLead.model_validate(lead_data)
        context = TiktokLead.model_validate(
            {key: body[key] for key in (*TIKTOK_CONTEXT_FIELDS, "lead_id") if key in body}
        )
    except ValidationError as exc:
        raise PayloadValidationError(f"Unexpected TikTok lead: {exc.error_count()} invalid field(s)") from exc

    updates = {
        key: getattr(context, key)
        for key in TIKTOK_CONTEXT_FIELDS
        if getattr(lead, key) is None and getattr(context, key) is not None
    }
    if not (lead.lead_id or lead.id) and context.lead_id:
        updates["lead_id"] = context.lead_id

    return event_type, lead.model_copy(update=updates) if updates else lead
