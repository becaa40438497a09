from fastapi import APIRouter

from app.features.leads.routes.lead_route import router as leads_router

api_router = APIRouter()

# Register all management API routes (mounted under /api)
api_router.include_router(leads_router)
