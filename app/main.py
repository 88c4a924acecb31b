from __future__ import annotations

import logging
from fastapi import FastAPI

from app.core.config import settings
from app.modules.api.router import connection_manager, event_bridge, router as api_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup():
    """Log configuration and start background connectivity tasks."""
    logger.info(f"{settings.APP_NAME} starting")
    logger.info(f"Port: {settings.APP_PORT}")
    logger.info(f"Exchange API base URL: {settings.EXCHANGE_API_BASE_URL}")
    logger.info(f"Internet probes: {', '.join(settings.CONNECTIVITY_INTERNET_ENDPOINTS)}")
    logger.info(f"Policy store: {settings.POLICY_STORE_PATH}")

    event_bridge.start()
    if settings.CONNECTIVITY_MONITOR_ENABLED:
        connection_manager.start()
    else:
        logger.info("Connectivity monitor disabled")


@app.on_event("shutdown")
async def shutdown():
    """Stop the monitor, the signal consumer and any in-flight check."""
    await event_bridge.stop()
    await connection_manager.stop()


@app.get("/healthz")
def healthz():
    """Health check endpoint."""
    status = connection_manager.status()
    return {
        "ok": True,
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
        "online": status.is_online,
        "exchange_url": settings.EXCHANGE_API_BASE_URL,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT)
