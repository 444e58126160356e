"""FastAPI application entrypoint: logging, settings, middleware and the v1 router."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import router as v1_router
from app.core.config import settings
from app.services.jira_gateway import is_jira_configured

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    if not is_jira_configured(settings):
        logger.warning("Jira is not configured; POST %s/sync will return 503", settings.API_V1_PREFIX)
    logger.info(
        "Scan Ticket Sync starting",
        extra={"app_env": settings.APP_ENV, "project_key": settings.JIRA_PROJECT_KEY},
    )
    yield


app = FastAPI(
    title="Scan Ticket Sync API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Service name and where the API lives."""
    return {"service": "Scan Ticket Sync API", "api": settings.API_V1_PREFIX}
