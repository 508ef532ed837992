"""
Sentry initialization and error monitoring configuration.

Captures:
- Python exceptions
- FastAPI errors
- Degraded analysis and failed notifications (via capture_exception)

Context enrichment:
- User ID, mail item ID
- Environment (dev/staging/production)
"""

import logging
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from posty.core.config import settings

logger = logging.getLogger(__name__)

# Keys whose values are never sent to Sentry
SENSITIVE_KEYS = [
    "token",
    "password",
    "secret",
    "api_key",
    "encryption_key",
    "authorization",
    "cookie",
    "extracted_text",
]


def init_sentry():
    """
    Initialize Sentry error monitoring.

    Only initializes if SENTRY_DSN is configured.
    """
    if not settings.SENTRY_DSN:
        logger.info("Sentry DSN not configured - error monitoring disabled")
        return

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release="posty@0.1.0",

        # Integrations
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            LoggingIntegration(
                level=logging.INFO,  # Capture info and above as breadcrumbs
                event_level=logging.ERROR,  # Send errors to Sentry
            ),
        ],

        # Performance Monitoring (sample rate)
        traces_sample_rate=0.1 if settings.is_production else 1.0,

        # Privacy Settings
        send_default_pii=False,  # Don't send user IP, cookies, etc.
        max_breadcrumbs=50,

        # Filter sensitive data
        before_send=filter_sensitive_data,
    )

    logger.info(f"Sentry initialized - environment: {settings.ENVIRONMENT}")


def _redact(obj):
    """Recursively replace values of sensitive keys in place."""
    if isinstance(obj, dict):
        for key in list(obj.keys()):
            if isinstance(key, str) and any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
                obj[key] = "[REDACTED]"
            else:
                _redact(obj[key])
    elif isinstance(obj, list):
        for item in obj:
            _redact(item)


def filter_sensitive_data(event, hint):
    """
    Filter sensitive data before sending to Sentry.

    Removes tokens, passwords, API keys and OCR text from extra data,
    contexts and request payloads.

    Args:
        event: Sentry event dict
        hint: Additional context

    Returns:
        Modified event
    """
    for section in ("extra", "contexts", "request"):
        if event.get(section):
            _redact(event[section])
    return event
