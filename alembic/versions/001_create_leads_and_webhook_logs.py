"""create_leads_and_webhook_logs

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


lead_platform = postgresql.ENUM('meta', 'snapchat', 'tiktok', name='lead_platform', create_type=False)
lead_status = postgresql.ENUM('new', 'contacted', 'qualified', 'converted', 'lost', name='lead_status', create_type=False)


def upgrade() -> None:
    """Upgrade schema."""
    lead_platform.create(op.get_bind(), checkfirst=True)
    lead_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'leads',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('platform', lead_platform, nullable=False),
        sa.Column('platform_lead_id', sa.String(255), nullable=False),
        sa.Column('form_id', sa.String(255), nullable=True),
        sa.Column('form_name', sa.String(1000), nullable=True),
        sa.Column('ad_id', sa.String(255), nullable=True),
        sa.Column('ad_name', sa.String(1000), nullable=True),
        sa.Column('adset_id', sa.String(255), nullable=True),
        sa.Column('adset_name', sa.String(1000), nullable=True),
        sa.Column('campaign_id', sa.String(255), nullable=True),
        sa.Column('campaign_name', sa.String(1000), nullable=True),
        sa.Column('page_id', sa.String(255), nullable=True),
        sa.Column('customer_name', sa.String(1000), nullable=True),
        sa.Column('first_name', sa.String(1000), nullable=True),
        sa.Column('last_name', sa.String(1000), nullable=True),
        sa.Column('email', sa.String(1000), nullable=True),
        sa.Column('phone', sa.String(1000), nullable=True),
        sa.Column('custom_fields', sa.JSON(), nullable=False),
        sa.Column('status', lead_status, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('platform_created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('platform', 'platform_lead_id', name='uq_leads_platform_lead_id'),
    )
    op.create_index(op.f('ix_leads_id'), 'leads', ['id'], unique=False)
    op.create_index(op.f('ix_leads_platform'), 'leads', ['platform'], unique=False)
    op.create_index(op.f('ix_leads_status'), 'leads', ['status'], unique=False)
    op.create_index(op.f('ix_leads_received_at'), 'leads', ['received_at'], unique=False)
    op.create_index('ix_leads_platform_received_at', 'leads', ['platform', 'received_at'], unique=False)

    op.create_table(
        'webhook_logs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('platform', lead_platform, nullable=False),
        sa.Column('event_type', sa.String(255), nullable=True),
        sa.Column('raw_payload', sa.JSON(), nullable=True),
        sa.Column('headers', sa.JSON(), nullable=True),
        sa.Column('processed', sa.Boolean(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('lead_id', sa.String(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_webhook_logs_id'), 'webhook_logs', ['id'], unique=False)
    op.create_index(op.f('ix_webhook_logs_platform'), 'webhook_logs', ['platform'], unique=False)
    op.create_index(op.f('ix_webhook_logs_lead_id'), 'webhook_logs', ['lead_id'], unique=False)
    op.create_index('ix_webhook_logs_created_at', 'webhook_logs', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_webhook_logs_created_at', table_name='webhook_logs')
    op.drop_index(op.f('ix_webhook_logs_lead_id'), table_name='webhook_logs')
    op.drop_index(op.f('ix_webhook_logs_platform'), table_name='webhook_logs')
    op.drop_index(op.f('ix_webhook_logs_id'), table_name='webhook_logs')
    op.drop_table('webhook_logs')
    op.drop_index('ix_leads_platform_received_at', table_name='leads')
    op.drop_index(op.f('ix_leads_received_at'), table_name='leads')
    op.drop_index(op.f('ix_leads_status'), table_name='leads')
    op.drop_index(op.f('ix_leads_platform'), table_name='leads')
    op.drop_index(op.f('ix_leads_id'), table_name='leads')
    op.drop_table('leads')
    lead_status.drop(op.get_bind(), checkfirst=True)
    lead_platform.drop(op.get_bind(), checkfirst=True)
