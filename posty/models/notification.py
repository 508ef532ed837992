"""
Notification outcome models.

Email delivery is best-effort: the upload never fails because of it, so
the sender reports what happened instead of raising.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel

from posty.models.outcome import OutcomeStatus


class SkipReason(str, Enum):
    NOTIFICATIONS_DISABLED = "notifications_disabled"
    NO_RECIPIENT = "no_recipient"
    ATTACHMENT_MISSING = "attachment_missing"
    SMTP_NOT_CONFIGURED = "smtp_not_configured"
    SMTP_AUTH_FAILED = "smtp_auth_failed"
    SMTP_CONNECTION_FAILED = "smtp_connection_failed"
    DELIVERY_FAILED = "delivery_failed"


class NotificationOutcome(BaseModel):
    """FULL when the email was handed to the SMTP server, else SKIPPED with a reason."""
    status: OutcomeStatus
    reason: Optional[SkipReason] = None
    detail: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == OutcomeStatus.FULL

    @classmethod
    def sent(cls) -> "NotificationOutcome":
        return cls(status=OutcomeStatus.FULL)

    @classmethod
    def skipped(cls, reason: SkipReason, detail: Optional[str] = None) -> "NotificationOutcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason, detail=detail)
