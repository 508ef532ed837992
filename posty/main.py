"""
Posty - Main FastAPI Application

Entry point for the application. Mounts all module routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from posty.core.config import settings
from posty.core.database import close_db, init_db
from posty.modules.auth.routes import router as auth_router
from posty.modules.auth.state_store import oauth_state_store
from posty.modules.mail_items.routes import router as mail_items_router
from posty.modules.notifications.routes import router as email_router
from posty.modules.profile.routes import router as profile_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events.

    Runs on startup and shutdown.
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # Initialize Sentry error monitoring
    from posty.core.sentry import init_sentry
    init_sentry()

    # Initialize database (only in development - use Alembic in production)
    if settings.ENVIRONMENT == "development":
        await init_db()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await oauth_state_store.close()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Scanned mail inbox - upload letters, get OCR text, categories and reminders",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,  # Disable docs in production
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173", "http://localhost:8000"] if settings.DEBUG else [settings.APP_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(auth_router)
app.include_router(mail_items_router)
app.include_router(profile_router)
app.include_router(email_router)


@app.get("/api/health")
async def health_check():
    """
    Health check endpoint for monitoring.

    Status codes:
    - 200: healthy or degraded (uploads still work without OpenAI/SMTP)
    - 503: database unreachable
    """
    from posty.core.health import get_health_metrics

    metrics = await get_health_metrics()
    body = {
        "service": settings.APP_NAME,
        "version": "0.1.0",
        "environment": settings.ENVIRONMENT,
        **metrics,
    }
    database_down = metrics["components"]["database"]["status"] == "unhealthy"
    return JSONResponse(status_code=503 if database_down else 200, content=body)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "posty.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
