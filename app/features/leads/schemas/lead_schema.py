from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.features.leads.models.lead_model import LeadPlatform, LeadStatus


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire; accepts either on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class LeadOut(CamelModel):
    id: str
    platform: LeadPlatform
    platform_lead_id: str
    form_id: Optional[str] = None
    form_name: Optional[str] = None
    ad_id: Optional[str] = None
    ad_name: Optional[str] = None
    adset_id: Optional[str] = None
    adset_name: Optional[str] = None
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    page_id: Optional[str] = None
    customer_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    status: LeadStatus
    notes: Optional[str] = None
    platform_created_at: Optional[datetime] = None
    received_at: datetime
    created_at: datetime
    updated_at: datetime


class LeadUpdate(CamelModel):
    """Operator edits. Anything outside these five fields is ignored."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    status: Optional[str] = None
    notes: Optional[str] = None
    customer_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class LeadUpsert(BaseModel):
    """Normalized webhook lead, ready to be written keyed on (platform, platform_lead_id)."""
    platform: LeadPlatform
    platform_lead_id: str
    form_id: Optional[str] = None
    form_name: Optional[str] = None
    ad_id: Optional[str] = None
    ad_name: Optional[str] = None
    adset_id: Optional[str] = None
    adset_name: Optional[str] = None
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    page_id: Optional[str] = None
    customer_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    custom_fields: dict[str, str] = Field(default_factory=dict)
    platform_created_at: Optional[datetime] = None


class LeadFilters(BaseModel):
    platform: Optional[LeadPlatform] = None
    status: Optional[LeadStatus] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    search: Optional[str] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class LeadListResponse(BaseModel):
    leads: list[LeadOut]
    pagination: Pagination


class LeadStats(CamelModel):
    total: int
    today: int
    by_platform: dict[str, int]
    by_status: dict[str, int]


class LeadChartPoint(BaseModel):
    date: str
    platform: LeadPlatform
    count: int
