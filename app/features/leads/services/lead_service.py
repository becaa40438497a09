import math
import re
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.leads.models.lead_model import Lead, LeadPlatform, LeadStatus
from app.features.leads.schemas.lead_schema import (
    LeadChartPoint,
    LeadFilters,
    LeadListResponse,
    LeadOut,
    LeadStats,
    LeadUpdate,
    LeadUpsert,
    Pagination,
)
from app.features.leads.utils.dates import local_day_bounds
from app.platform.config import settings
from app.platform.db.base import new_id, utcnow
from app.platform.logger import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

UPDATABLE_FIELDS = ("status", "notes", "customer_name", "email", "phone")

# Upserts never touch these on an existing row
UPSERT_PRESERVED_COLUMNS = {"id", "platform", "platform_lead_id", "status", "notes", "created_at"}

SORTABLE_COLUMNS = {
    "receivedAt": Lead.received_at,
    "createdAt": Lead.created_at,
    "updatedAt": Lead.updated_at,
    "platformCreatedAt": Lead.platform_created_at,
    "customerName": Lead.customer_name,
    "email": Lead.email,
    "phone": Lead.phone,
    "status": Lead.status,
    "platform": Lead.platform,
}
SORTABLE_COLUMNS.update(
    {re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower(): column for key, column in SORTABLE_COLUMNS.items()}
)

CHART_DEFAULT_DAYS = 30


class LeadService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────

    async def list_leads(
        self,
        filters: LeadFilters,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "receivedAt",
        sort_order: str = "desc",
    ) -> LeadListResponse:
        """
        Filter, sort and paginate leads.

        Search is a case-insensitive substring match on name, email or phone.
        """
        sort_column = SORTABLE_COLUMNS.get(sort_by)
        if sort_column is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cannot sort by '{sort_by}'",
            )
        direction = asc if sort_order == "asc" else desc

        conditions = self._filter_conditions(filters)
        total = await self.db.scalar(select(func.count(Lead.id)).where(*conditions)) or 0

        result = await self.db.execute(
            select(Lead)
            .where(*conditions)
            .order_by(direction(sort_column), direction(Lead.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        leads = result.scalars().all()

        return LeadListResponse(
            leads=[LeadOut.model_validate(lead) for lead in leads],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit) if limit else 0,
            ),
        )

    async def get_lead(self, lead_id: str) -> Lead:
        try:
            uuid.UUID(str(lead_id))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

        result = await self.db.execute(select(Lead).where(Lead.id == lead_id))
        lead = result.scalar_one_or_none()
        if lead is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
        return lead

    async def get_stats(
        self, from_date: Optional[datetime] = None, to_date: Optional[datetime] = None
    ) -> LeadStats:
        conditions = self._date_conditions(from_date, to_date)

        total = await self.db.scalar(select(func.count(Lead.id)).where(*conditions)) or 0

        by_platform = {platform.value: 0 for platform in LeadPlatform}
        platform_rows = await self.db.execute(
            select(Lead.platform, func.count(Lead.id)).where(*conditions).group_by(Lead.platform)
        )
        for platform, count in platform_rows.all():
            by_platform[LeadPlatform(platform).value] = count

        by_status = {lead_status.value: 0 for lead_status in LeadStatus}
        status_rows = await self.db.execute(
            select(Lead.status, func.count(Lead.id)).where(*conditions).group_by(Lead.status)
        )
        for lead_status, count in status_rows.all():
            by_status[LeadStatus(lead_status).value] = count

        # "today" is the local calendar day, regardless of the requested range
        day_start, day_end = local_day_bounds()
        today = (
            await self.db.scalar(
                select(func.count(Lead.id)).where(
                    Lead.received_at >= day_start, Lead.received_at < day_end
                )
            )
            or 0
        )

        return LeadStats(total=total, today=today, by_platform=by_platform, by_status=by_status)

    async def get_chart(
        self,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        platform: Optional[LeadPlatform] = None,
    ) -> list[LeadChartPoint]:
        """Lead counts per (UTC day, platform), oldest day first."""
        to_date = to_date or utcnow()
        from_date = from_date or utcnow() - timedelta(days=CHART_DEFAULT_DAYS)

        received_at = Lead.received_at
        if self.db.bind.dialect.name == "postgresql":
            # date() on timestamptz would use the session time zone
            received_at = func.timezone("UTC", Lead.received_at)
        day = func.date(received_at)
        stmt = (
            select(day.label("day"), Lead.platform, func.count(Lead.id))
            .where(Lead.received_at >= from_date, Lead.received_at <= to_date)
            .group_by(day, Lead.platform)
            .order_by(day, Lead.platform)
        )
        if platform is not None:
            stmt = stmt.where(Lead.platform == platform)

        rows = await self.db.execute(stmt)
        return [
            LeadChartPoint(date=str(row_day), platform=row_platform, count=count)
            for row_day, row_platform, count in rows.all()
        ]

    # ─────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────

    async def update_lead(self, lead_id: str, data: LeadUpdate) -> Lead:
        """
        Apply operator edits. Only status, notes, customerName, email and phone
        can change; the whole request is rejected before any write if one
        value is invalid.
        """
        supplied = data.model_dump(exclude_unset=True)
        changes = {field: supplied[field] for field in UPDATABLE_FIELDS if field in supplied}
        if not changes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Nothing to update; allowed fields: status, notes, customerName, email, phone",
            )

        cleaned = {field: self._clean_text(value) for field, value in changes.items()}

        if "status" in cleaned:
            if cleaned["status"] not in {lead_status.value for lead_status in LeadStatus}:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Invalid status '{changes['status']}'",
                )
            cleaned["status"] = LeadStatus(cleaned["status"])

        if cleaned.get("email"):
            if not EMAIL_PATTERN.match(cleaned["email"]):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Invalid email '{cleaned['email']}'",
                )
            cleaned["email"] = cleaned["email"].lower()

        lead = await self.get_lead(lead_id)
        for field, value in cleaned.items():
            setattr(lead, field, value if value != "" else None)

        await self.db.commit()
        await self.db.refresh(lead)
        logger.info(f"Lead {lead.id} updated: {', '.join(cleaned)}")
        return lead

    async def delete_lead(self, lead_id: str) -> None:
        lead = await self.get_lead(lead_id)
        await self.db.delete(lead)
        await self.db.commit()
        logger.info(f"Lead {lead_id} deleted")

    async def upsert_lead(self, data: LeadUpsert) -> Lead:
        """
        Insert the lead or refresh the stored one with the same
        (platform, platform_lead_id), atomically in the database.

        Fields missing from this delivery keep their stored value. Operator-owned
        columns (status, notes) are never overwritten.
        """
        now = utcnow()
        values = data.model_dump(exclude_none=True)
        for field in ("customer_name", "first_name", "last_name", "email", "phone"):
            if field in values:
                values[field] = self._clean_text(values[field]) or None
        if values.get("email"):
            values["email"] = values["email"].lower()
        values = {key: value for key, value in values.items() if value is not None}

        preserved = set(UPSERT_PRESERVED_COLUMNS)
        if "platform_created_at" not in values:
            # Insert falls back to now; an existing row keeps what it had
            preserved.add("platform_created_at")
            values["platform_created_at"] = now
        values.update(
            id=new_id(),
            status=LeadStatus.new,
            received_at=now,
            created_at=now,
            updated_at=now,
        )

        stmt = self._insert()(Lead).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["platform", "platform_lead_id"],
            set_={
                key: stmt.excluded[key]
                for key in values
                if key not in preserved
            },
        ).returning(Lead.id)

        lead_id = (await self.db.execute(stmt)).scalar_one()
        await self.db.commit()

        result = await self.db.execute(
            select(Lead).where(Lead.id == lead_id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────

    def _insert(self):
        dialect = self.db.bind.dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise RuntimeError(f"Lead upsert is not supported on '{dialect}'")

    @staticmethod
    def _clean_text(value):
        if isinstance(value, str):
            return value.strip()[: settings.LEAD_FIELD_MAX_LENGTH]
        return value

    @staticmethod
    def _date_conditions(from_date: Optional[datetime], to_date: Optional[datetime]) -> list:
        conditions = []
        if from_date is not None:
            conditions.append(Lead.received_at >= from_date)
        if to_date is not None:
            conditions.append(Lead.received_at <= to_date)
        return conditions

    def _filter_conditions(self, filters: LeadFilters) -> list:
        conditions = self._date_conditions(filters.from_date, filters.to_date)
        if filters.platform is not None:
            conditions.append(Lead.platform == filters.platform)
        if filters.status is not None:
            conditions.append(Lead.status == filters.status)
        if filters.search:
            term = filters.search.strip()
            conditions.append(
                or_(
                    Lead.customer_name.icontains(term, autoescape=True),
                    Lead.email.icontains(term, autoescape=True),
                    Lead.phone.icontains(term, autoescape=True),
                )
            )
        return conditions
