"""FastAPI application entrypoint. No business logic; only wiring, startup checks, and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import router as v1_router
from app.core.config import settings
from app.core.tokens import TokenIssuer

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

# Origins of the web client during local development.
DEV_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:8080"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the token issuer once; a missing JWT_SECRET aborts startup."""
    app.state.token_issuer = TokenIssuer.from_settings(settings)
    logger.info(
        "Token issuer ready",
        extra={
            "access_ttl_minutes": settings.JWT_ACCESS_EXPIRE_MINUTES,
            "refresh_ttl_days": settings.JWT_REFRESH_EXPIRE_DAYS,
            "refresh_rotation": settings.JWT_REFRESH_ROTATION,
        },
    )
    yield


app = FastAPI(
    title="HomeLedger API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or (DEV_CORS_ORIGINS if settings.APP_ENV == "dev" else []),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "HomeLedger API"}
