from sqlalchemy import JSON, Boolean, Column, Enum, Index, String, Text

from app.features.leads.models.lead_model import LeadPlatform
from app.platform.db.base import BaseModel


class WebhookLog(BaseModel):
    """
    One row per inbound webhook delivery, duplicates included.

    Written twice at most: inserted when processing starts, then closed with a
    single outcome (processed + lead_id, or error). Rows past the retention
    window are removed by scripts/purge_webhook_logs.py.
    """
    __tablename__ = "webhook_logs"

    platform = Column(Enum(LeadPlatform, name="lead_platform"), nullable=False, index=True)
    event_type = Column(String(255), nullable=True)
    raw_payload = Column(JSON, nullable=True)
    headers = Column(JSON, nullable=True)
    processed = Column(Boolean, default=False, nullable=False)
    error = Column(Text, nullable=True)
    lead_id = Column(String, nullable=True, index=True)  # no FK: leads can be deleted, logs stay
    ip_address = Column(String(64), nullable=True)

    __table_args__ = (Index("ix_webhook_logs_created_at", "created_at"),)

    def __repr__(self):
        return f"<WebhookLog(platform={self.platform}, processed={self.processed}, error={self.error})>"
