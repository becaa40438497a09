import enum

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, Text, UniqueConstraint

from app.platform.db.base import BaseModel, utcnow


class LeadPlatform(str, enum.Enum):
    meta = "meta"
    snapchat = "snapchat"
    tiktok = "tiktok"


class LeadStatus(str, enum.Enum):
    """Sales workflow state, changed only through the leads API"""
    new = "new"
    contacted = "contacted"
    qualified = "qualified"
    converted = "converted"
    lost = "lost"


class Lead(BaseModel):
    __tablename__ = "leads"

    # Platform identification
    platform = Column(Enum(LeadPlatform, name="lead_platform"), nullable=False, index=True)
    platform_lead_id = Column(String(255), nullable=False)
    form_id = Column(String(255), nullable=True)
    form_name = Column(String(1000), nullable=True)
    ad_id = Column(String(255), nullable=True)
    ad_name = Column(String(1000), nullable=True)
    adset_id = Column(String(255), nullable=True)
    adset_name = Column(String(1000), nullable=True)
    campaign_id = Column(String(255), nullable=True)
    campaign_name = Column(String(1000), nullable=True)
    page_id = Column(String(255), nullable=True)

    # Customer information
    customer_name = Column(String(1000), nullable=True)
    first_name = Column(String(1000), nullable=True)
    last_name = Column(String(1000), nullable=True)
    email = Column(String(1000), nullable=True)
    phone = Column(String(1000), nullable=True)

    # Any form answer we don't have a column for
    custom_fields = Column(JSON, nullable=False, default=dict)

    status = Column(
        Enum(LeadStatus, name="lead_status"), nullable=False, default=LeadStatus.new, index=True
    )
    notes = Column(Text, nullable=True)

    platform_created_at = Column(DateTime(timezone=True), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    __table_args__ = (
        UniqueConstraint("platform", "platform_lead_id", name="uq_leads_platform_lead_id"),
        Index("ix_leads_platform_received_at", "platform", "received_at"),
    )

    def __repr__(self) -> str:
        return f"<Lead(platform='{self.platform}', platform_lead_id='{self.platform_lead_id}')>"
