"""
Status shared by best-effort operations (analysis, notification).

The orchestrator always sees a successful return value; the status tells
tests and logs whether the primary path ran, degraded or was skipped.
"""

from enum import Enum


class OutcomeStatus(str, Enum):
    FULL = "full"
    DEGRADED = "degraded"
    SKIPPED = "skipped"
