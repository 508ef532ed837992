"""
Health check utilities for monitoring application components.

Checks:
- Database connectivity
- Redis connectivity (OAuth state store)
- OpenAI API reachability
- Upload directory writability
- Required environment variables
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict

import openai
import redis.asyncio as redis
from sqlalchemy import text

from posty.core.config import settings
from posty.core.database import AsyncSessionLocal

logger = logging.getLogger(__name__)

REQUIRED_ENV_VARS = ["DATABASE_URL", "SECRET_KEY", "ENCRYPTION_KEY", "OPENAI_API_KEY"]
OPTIONAL_ENV_VARS = ["SMTP_USER", "SMTP_PASS", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "APPLE_CLIENT_ID"]


async def check_database() -> Dict[str, Any]:
    """
    Check database connectivity.

    Returns:
        Dict with status, latency, and error (if any)
    """
    start_time = datetime.utcnow()

    try:
        async with AsyncSessionLocal() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()

        latency_ms = (datetime.utcnow() - start_time).total_seconds() * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e)[:100],
        }


async def check_redis() -> Dict[str, Any]:
    """
    Check Redis connectivity.

    Redis only backs OAuth state, so an outage is a warning, not unhealthy.
    """
    start_time = datetime.utcnow()

    try:
        redis_client = redis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
        try:
            await redis_client.ping()
        finally:
            await redis_client.close()

        latency_ms = (datetime.utcnow() - start_time).total_seconds() * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return {
            "status": "warning",
            "error": str(e)[:100],
        }


async def check_openai_api() -> Dict[str, Any]:
    """
    Check OpenAI API reachability by listing models.

    Uploads still succeed without OpenAI (filename fallback), so failures
    are reported as warnings.
    """
    if not settings.OPENAI_API_KEY:
        return {
            "status": "warning",
            "error": "OpenAI API key not configured",
        }

    try:
        from posty.modules.analyzer.openai_client import VisionClient

        await VisionClient().ping()
        return {"status": "healthy"}
    except openai.RateLimitError as e:
        return {"status": "warning", "error": f"quota_exceeded: {str(e)[:50]}"}
    except openai.AuthenticationError as e:
        return {"status": "warning", "error": f"auth_failed: {str(e)[:50]}"}
    except Exception as e:
        logger.warning(f"OpenAI health check failed: {e}")
        return {"status": "warning", "error": f"error: {str(e)[:50]}"}


async def check_uploads() -> Dict[str, Any]:
    """Check the upload directory exists and is writable."""
    path = settings.UPLOAD_DIR
    if not os.path.isdir(path):
        return {"status": "warning", "message": f"Upload directory {path} missing (created on first upload)"}
    if not os.access(path, os.W_OK):
        return {"status": "unhealthy", "error": f"Upload directory {path} not writable"}
    return {"status": "healthy"}


def check_environment() -> Dict[str, Any]:
    """Report which required and optional settings are present (never their values)."""
    missing_required = [name for name in REQUIRED_ENV_VARS if not getattr(settings, name, None)]
    missing_optional = [name for name in OPTIONAL_ENV_VARS if not getattr(settings, name, None)]
    return {
        "status": "unhealthy" if missing_required else ("warning" if missing_optional else "healthy"),
        "missing_required": missing_required,
        "missing_optional": missing_optional,
    }


async def get_health_metrics() -> Dict[str, Any]:
    """
    Get health metrics for all components.

    Returns:
        Dict with overall status and component-specific metrics
    """
    metrics = {
        "database": await check_database(),
        "redis": await check_redis(),
        "openai_api": await check_openai_api(),
        "uploads": await check_uploads(),
        "environment": check_environment(),
    }

    unhealthy_components = [
        component for component, status in metrics.items()
        if status.get("status") == "unhealthy"
    ]

    if unhealthy_components:
        overall_status = "unhealthy"
    elif any(status.get("status") == "warning" for status in metrics.values()):
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return {
        "status": overall_status,
        "timestamp": datetime.utcnow().isoformat(),
        "components": metrics,
    }
