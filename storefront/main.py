"""
storefront/main.py

Purpose: Application entry point

- Builds the FastAPI app around the Telegram webhook
- Startup: settings check, store selection, routing table check, Bot API client
- Health endpoints for the store and the Bot API token
- No business logic should be written here
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from storefront.core.config import settings, validate_settings
from storefront.core.errors import add_exception_handlers
from storefront.core.logging import setup_logging, get_logger
from storefront.db.mongo import init_store, close_store, check_database_health
from storefront.flow.dispatcher import get_dispatcher
from storefront.services.telegram_service import telegram_sink
from storefront.api import webhook

setup_logging()
logger = get_logger(__name__)

VERSION = "1.0.0"
SLOW_UPDATE_SECONDS = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown of the bot.

    The dispatcher is built here so a broken routing table (duplicate or
    unclaimed callback verbs, ownerless wizard steps) stops the process
    before the first update arrives.
    """
    logger.info(f"🚀 Starting storefront bot ({settings.ENVIRONMENT})...")

    try:
        validate_settings()

        await init_store()
        logger.info(f"✅ {settings.STORAGE_BACKEND} store ready")
        if not await check_database_health():
            logger.warning("⚠️ Store health check failed during startup")

        dispatcher = get_dispatcher()
        logger.info(
            f"✅ Routing {len(dispatcher.verb_owners)} callback verbs and "
            f"{len(dispatcher.step_owners)} wizard steps through {len(dispatcher.handlers)} handlers"
        )

        await telegram_sink.start()
        if not telegram_sink.is_configured():
            logger.warning("⚠️ TELEGRAM_BOT_TOKEN not set; replies will only be logged")

        logger.info("🎉 Storefront bot is accepting updates")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield

    logger.info("🛑 Shutting down storefront bot...")
    try:
        await telegram_sink.close()
        await close_store()
        logger.info("👋 Storefront bot stopped")
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="Storefront Bot",
    description="Conversational storefront for Telegram",
    version=VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def time_updates(request: Request, call_next):
    """Adds X-Process-Time and flags slow webhook deliveries."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.4f}"

    # Telegram retries deliveries that take too long
    if elapsed > SLOW_UPDATE_SECONDS:
        logger.warning(
            f"🐢 Slow request: {request.method} {request.url.path} took {elapsed:.1f}s",
            extra={"process_time": elapsed}
        )

    return response


add_exception_handlers(app)

app.include_router(webhook.router, prefix=settings.API_PREFIX, tags=["Webhook"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "name": "Storefront Bot API",
        "version": VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT,
        "storage": settings.STORAGE_BACKEND,
        "webhook": f"{settings.API_PREFIX}/webhook",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Store and transport health.

    The store decides the status code; a missing bot token is reported but
    does not make the service unhealthy (replies are logged instead).
    """
    checks = {
        "database": "healthy" if await check_database_health() else "unhealthy",
        "telegram": "configured" if telegram_sink.is_configured() else "not_configured",
    }
    healthy = checks["database"] == "healthy"

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "timestamp": time.time(),
            "environment": settings.ENVIRONMENT,
            "storage": settings.STORAGE_BACKEND,
            "version": VERSION,
            "checks": checks,
        },
    )


@app.get("/ready", tags=["Health"])
async def readiness_check():
    """Ready once the store answers; in production the bot token is required too."""
    if not await check_database_health():
        return JSONResponse(status_code=503, content={"status": "not_ready", "reason": "database_unavailable"})
    if settings.is_production and not telegram_sink.is_configured():
        return JSONResponse(status_code=503, content={"status": "not_ready", "reason": "telegram_not_configured"})
    return {"status": "ready"}


@app.get("/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
