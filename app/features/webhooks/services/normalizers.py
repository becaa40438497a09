"""
Map platform form answers onto the canonical lead fields.

Every platform sends answers as a list of (field identifier, value) pairs, each
with its own key names. The functions here are pure: the same input always
produces the same NormalizedLead.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from app.features.webhooks.schemas.payloads import SnapchatResponse, TiktokField

# Lower-cased field identifier -> canonical attribute
FIELD_ALIASES = {
    "email": "email",
    "phone": "phone",
    "phone_number": "phone",
    "phonenumber": "phone",
    "full_name": "customer_name",
    "fullname": "customer_name",
    "name": "customer_name",
    "first_name": "first_name",
    "firstname": "first_name",
    "last_name": "last_name",
    "lastname": "last_name",
}


@dataclass
class NormalizedLead:
    customer_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    custom_fields: dict[str, str] = field(default_factory=dict)

    def as_lead_fields(self) -> dict[str, Any]:
        return {
            "customer_name": self.customer_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "custom_fields": dict(self.custom_fields),
        }


def answer_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(answer_text(item) for item in value if item is not None)
    return str(value).strip()


def normalize_fields(answers: Iterable[tuple[Optional[str], Optional[str], Any]]) -> NormalizedLead:
    """
    answers: (identifier used for recognition, original field name, value).

    Recognized identifiers fill the canonical fields; everything else lands in
    custom_fields under its original name. A full name is built from first and
    last name when none was given.
    """
    lead = NormalizedLead()

    for position, (identifier, original_name, value) in enumerate(answers):
        canonical = FIELD_ALIASES.get((identifier or "").strip().lower())
        text = answer_text(value)

        if canonical:
            setattr(lead, canonical, text)
        else:
            key = original_name or identifier or f"field_{position}"
            lead.custom_fields[key] = text

    if not lead.customer_name and (lead.first_name or lead.last_name):
        lead.customer_name = " ".join(part for part in (lead.first_name, lead.last_name) if part)

    return lead


def normalize_meta_field_data(field_data: Optional[list]) -> NormalizedLead:
    """Graph API `field_data`: [{"name": "email", "values": ["a@b.co"]}, ...]; first value wins."""
    answers = []
    for item in field_data or []:
        if not isinstance(item, dict):
            continue
        values = item.get("values") or []
        answers.append((item.get("name"), item.get("name"), values[0] if values else ""))
    return normalize_fields(answers)


def normalize_snapchat_responses(responses: Optional[list[SnapchatResponse]]) -> NormalizedLead:
    # Snapchat identifies standard questions by type; custom ones by id or text
    return normalize_fields(
        (response.question_type, response.question_id or response.question, response.answer)
        for response in responses or []
    )


def normalize_tiktok_fields(form_fields: Optional[list[TiktokField]]) -> NormalizedLead:
    return normalize_fields(
        (form_field.label, form_field.label, form_field.answer_value) for form_field in form_fields or []
    )


_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_platform_timestamp(value: Any) -> Optional[datetime]:
    """
    Platform creation times arrive as unix seconds (TikTok, Meta change values),
    unix milliseconds, or ISO 8601 strings (Meta Graph API uses "+0000" offsets).
    Returns an aware UTC datetime, or None when the value can't be read.
    """
    if value is None or isinstance(value, bool) or value == "":
        return None

    if isinstance(value, str) and re.fullmatch(r"\d+(\.\d+)?", value.strip()):
        value = float(value)

    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = _COMPACT_OFFSET.sub(r"\1:\2", str(value).strip().replace("Z", "+00:00"))
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
