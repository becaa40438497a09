import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api_routers.v1 import api_router
from app.features.health.routes.health import router as health_router
from app.features.webhooks.routes.webhooks import router as webhooks_router
from app.platform.config import settings
from app.platform.db.session import engine
from app.platform.exceptions import add_exception_handlers
from app.platform.logger import LOG_FORMAT, get_logger

# Library loggers (uvicorn, sqlalchemy, httpx) go through the root logger
logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"{settings.APP_NAME} starting ({settings.ENVIRONMENT}); "
        f"signature verification {'on' if settings.verify_signatures else 'off'}"
    )
    yield
    # The connection pool belongs to the process, not to request handlers
    await engine.dispose()
    logger.info("Database connections closed")


app = FastAPI(
    title="Leads Service API",
    description="Collects lead ads webhooks from Meta, Snapchat and TikTok and serves them to the CRM",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)


# Root endpoint for basic info
@app.get("/", tags=["Info"])
def root():
    return {
        "app_name": "Leads Service API",
        "description": "Unified lead inbox for Meta, Snapchat and TikTok lead ads.",
        "version": "1.0.0",
        "docs_url": "/docs",
        "api_base": "/api",
        "webhooks": ["/webhooks/meta", "/webhooks/snapchat", "/webhooks/tiktok"],
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(api_router, prefix="/api")
