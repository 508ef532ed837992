"""
Analysis models for document OCR and categorization.

These models carry data between the two analyzer stages (transcription,
then metadata extraction) and out to the upload orchestrator.
"""

from datetime import date
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from posty.models.category import Category
from posty.models.outcome import OutcomeStatus


class DegradationReason(str, Enum):
    """
    Why the analyzer fell back from the full two-stage path.

    - CONVERSION_FAILED: PDF page could not be rasterized
    - TRANSCRIPTION_FAILED: OCR returned no usable text
    - CLASSIFICATION_PARSE_FAILED: metadata response was not valid JSON
    - QUOTA_EXCEEDED: upstream rate limit / quota (HTTP 429)
    - UPSTREAM_AUTH_FAILED: upstream rejected credentials (401/403)
    - SERVICE_ERROR: any other upstream or network error
    - UNSUPPORTED_FILE_TYPE: extension the analyzer cannot read
    """
    CONVERSION_FAILED = "conversion_failed"
    TRANSCRIPTION_FAILED = "transcription_failed"
    CLASSIFICATION_PARSE_FAILED = "classification_parse_failed"
    QUOTA_EXCEEDED = "quota_exceeded"
    UPSTREAM_AUTH_FAILED = "upstream_auth_failed"
    SERVICE_ERROR = "service_error"
    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"


class RawText(BaseModel):
    """
    Verbatim transcript produced by the OCR stage.

    source is 'image' for direct uploads and 'pdf' for rasterized PDFs.
    """
    text: str = Field(..., description="Transcribed text, untranslated")
    file_name: str = Field(..., description="Original filename of the upload")
    source: str = Field("image", description="'image' | 'pdf'")

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()

    @property
    def is_near_empty(self) -> bool:
        """Very short transcripts or model refusals ('unable to read...')."""
        stripped = self.text.strip()
        return len(stripped) < 20 or "unable to" in stripped.lower()


class ExtractedMetadata(BaseModel):
    """Structured metadata returned by the classification stage (pre-validation)."""
    title: Optional[str] = None
    summary: Optional[str] = None
    category: Optional[str] = None
    reminder_date: Optional[str] = Field(None, alias="reminderDate")

    model_config = {"populate_by_name": True}


class AnalysisResult(BaseModel):
    """
    Analyzer output contract, consumed immediately by persistence.

    category is always a member of the closed Category enum.
    """
    title: str
    summary: str
    category: Category = Category.PERSONAL
    categories: List[str] = Field(default_factory=list)
    custom_categories: List[str] = Field(default_factory=list)
    reminder_date: Optional[date] = None
    extracted_text: Optional[str] = None


class AnalysisOutcome(BaseModel):
    """
    Tagged analyzer result: FULL, or DEGRADED with the reason.

    result is always a valid AnalysisResult.
    """
    result: AnalysisResult
    status: OutcomeStatus = OutcomeStatus.FULL
    reason: Optional[DegradationReason] = None
    detail: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.status == OutcomeStatus.DEGRADED

    @classmethod
    def full(cls, result: AnalysisResult) -> "AnalysisOutcome":
        return cls(result=result, status=OutcomeStatus.FULL)

    @classmethod
    def degraded(
        cls,
        result: AnalysisResult,
        reason: DegradationReason,
        detail: Optional[str] = None,
    ) -> "AnalysisOutcome":
        return cls(result=result, status=OutcomeStatus.DEGRADED, reason=reason, detail=detail)
