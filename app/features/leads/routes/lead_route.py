from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.leads.models.lead_model import LeadPlatform, LeadStatus
from app.features.leads.schemas.lead_schema import (
    LeadChartPoint,
    LeadFilters,
    LeadListResponse,
    LeadOut,
    LeadStats,
    LeadUpdate,
)
from app.features.leads.services.lead_service import LeadService
from app.features.leads.utils.dates import parse_date_param
from app.platform.db.session import get_db

router = APIRouter(prefix="/leads", tags=["Leads"])


# /stats and /chart must be registered before /{lead_id}

@router.get(
    "/stats",
    response_model=LeadStats,
    summary="Lead statistics",
    description="Totals by platform and status, plus today's count (server-local day).",
)
async def get_lead_stats(
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    db: AsyncSession = Depends(get_db),
):
    return await LeadService(db).get_stats(
        from_date=parse_date_param(from_date),
        to_date=parse_date_param(to_date, end_of_day=True),
    )


@router.get(
    "/chart",
    response_model=list[LeadChartPoint],
    summary="Leads per day and platform",
    description="Defaults to the last 30 days.",
)
async def get_leads_chart(
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    platform: Optional[LeadPlatform] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await LeadService(db).get_chart(
        from_date=parse_date_param(from_date),
        to_date=parse_date_param(to_date, end_of_day=True),
        platform=platform,
    )


@router.get("", response_model=LeadListResponse, summary="List leads")
async def list_leads(
    platform: Optional[LeadPlatform] = Query(None),
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Matches name, email or phone"),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    sort_by: str = Query("receivedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    filters = LeadFilters(
        platform=platform,
        status=lead_status,
        search=search,
        from_date=parse_date_param(from_date),
        to_date=parse_date_param(to_date, end_of_day=True),
    )
    return await LeadService(db).list_leads(
        filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )


@router.get("/{lead_id}", response_model=LeadOut, summary="Get a lead")
async def get_lead(lead_id: str, db: AsyncSession = Depends(get_db)):
    return await LeadService(db).get_lead(lead_id)


@router.patch(
    "/{lead_id}",
    response_model=LeadOut,
    summary="Update a lead",
    description="Only status, notes, customerName, email and phone can be changed.",
)
async def update_lead(lead_id: str, payload: LeadUpdate, db: AsyncSession = Depends(get_db)):
    return await LeadService(db).update_lead(lead_id, payload)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a lead")
async def delete_lead(lead_id: str, db: AsyncSession = Depends(get_db)):
    await LeadService(db).delete_lead(lead_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
