# app/main.py
from __future__ import annotations

# Load .env early so os.getenv works everywhere
from dotenv import load_dotenv
load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import LoggingMiddleware, get_logger, setup_logging

setup_logging(
    debug=settings.is_development,
    max_log_length=settings.MAX_LOG_LENGTH,
    level=settings.LOG_LEVEL,
)
logger = get_logger(__name__)

from app.api.routes.graphql import close_services, router as graphql_router
from app.db.session import close_client, get_database


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_client()
    await close_services()
    logger.info("shutdown_complete")


app = FastAPI(
    title="Barbershop Booking",
    description="GraphQL API for barbers and appointments",
    lifespan=lifespan,
)

app.middleware("http")(
    LoggingMiddleware(
        log_requests=settings.is_development,
        log_responses=settings.is_development,
        slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
    )
)

app.include_router(graphql_router, prefix="/graphql")


# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


@app.get("/readyz", include_in_schema=False)
async def readyz():
    try:
        db = await get_database()
        await db.command("ping")
    except Exception as e:
        logger.warning("readiness_check_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=503, content={"db": "unavailable"})
    return {"db": "ok"}
