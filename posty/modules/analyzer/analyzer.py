"""
Document analyzer: stored upload in, AnalysisOutcome out.

Paths by extension:
- .jpg/.jpeg/.png: transcribe, then extract metadata
- .pdf: rasterize page 1 and take the image path; if rasterization fails,
  classify from the filename with a single AI call
- anything else: filename fallback

analyze() never raises. Every failure is logged, reported to Sentry and
turned into a DEGRADED outcome built by the filename fallback classifier.
"""

import asyncio
import logging
import os
import re
from datetime import date
from typing import Optional

import openai
import sentry_sdk

from posty.models.analysis import (
    AnalysisOutcome,
    AnalysisResult,
    DegradationReason,
    ExtractedMetadata,
    RawText,
)
from posty.models.category import Category
from posty.modules.analyzer.fallback import annotate_degraded, classify_filename
from posty.modules.analyzer.openai_client import MetadataParseError, VisionClient
from posty.modules.analyzer.pdf_raster import PdfConversionError, rasterize_first_page

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}
PDF_EXTENSION = ".pdf"

REMINDER_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def pdf_placeholder_text(file_name: str) -> str:
    """extracted_text for PDFs that could not be rasterized."""
    return (
        f"PDF Processing Failed - {file_name}\n\n"
        "This PDF could not be converted to image for OCR processing. Possible reasons:\n"
        "- PDF format not compatible with conversion library\n"
        "- File corrupted or password protected\n"
        "- Insufficient system resources\n\n"
        "Try converting manually to image format (JPG/PNG) for full OCR processing.\n\n"
        "Analysis based on filename patterns."
    )


def parse_reminder_date(value: Optional[str]) -> Optional[date]:
    """Accept only a real YYYY-MM-DD calendar date; anything else is None."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if not REMINDER_DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def classify_error(error: Exception) -> DegradationReason:
    """
    Map an upstream exception onto a degradation reason.

    429 / quota -> QUOTA_EXCEEDED, 401/403 -> UPSTREAM_AUTH_FAILED,
    everything else -> SERVICE_ERROR.
    """
    if isinstance(error, openai.RateLimitError):
        return DegradationReason.QUOTA_EXCEEDED
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return DegradationReason.UPSTREAM_AUTH_FAILED
    if isinstance(error, openai.APIStatusError):
        if error.status_code == 429:
            return DegradationReason.QUOTA_EXCEEDED
        if error.status_code in (401, 403):
            return DegradationReason.UPSTREAM_AUTH_FAILED

    message = str(error).lower()
    if "quota" in message or "429" in message:
        return DegradationReason.QUOTA_EXCEEDED
    return DegradationReason.SERVICE_ERROR


def build_result(
    metadata: ExtractedMetadata,
    default_title: str,
    default_summary: str,
    extracted_text: Optional[str],
) -> AnalysisResult:
    """Validate model output into an AnalysisResult (closed category, strict dates)."""
    category = Category.coerce(metadata.category)
    return AnalysisResult(
        title=(metadata.title or "").strip() or default_title,
        summary=(metadata.summary or "").strip() or default_summary,
        category=category,
        categories=[category.value],
        reminder_date=parse_reminder_date(metadata.reminder_date),
        extracted_text=extracted_text,
    )


class DocumentAnalyzer:
    """
    Best-effort OCR and categorization for uploaded documents.

    Usage:
        analyzer = DocumentAnalyzer()
        outcome = await analyzer.analyze("/uploads/file-1.png", "letter.png")
        item_fields = outcome.result
    """

    def __init__(self, client: Optional[VisionClient] = None):
        self.client = client or VisionClient()

    async def analyze(
        self,
        file_path: str,
        original_file_name: str,
        today: Optional[date] = None,
    ) -> AnalysisOutcome:
        """
        Analyze a stored upload.

        Args:
            file_path: Path of the stored file on disk
            original_file_name: Filename as uploaded (drives branching and titles)
            today: Reference date for fallback reminders (defaults to date.today())

        Returns:
            AnalysisOutcome (FULL, or DEGRADED with a reason)
        """
        ext = os.path.splitext(original_file_name)[1].lower()

        try:
            if ext in IMAGE_MIME_TYPES:
                return await self._analyze_image(file_path, original_file_name, IMAGE_MIME_TYPES[ext], today)
            if ext == PDF_EXTENSION:
                return await self._analyze_pdf(file_path, original_file_name, today)
        except Exception as e:
            # Anything not already handled by a stage (e.g. unreadable file)
            return self._fallback(original_file_name, classify_error(e), today, error=e)

        logger.warning(
            f"Unsupported file type for analysis: {original_file_name}",
            extra={"file_name": original_file_name, "extension": ext},
        )
        return self._fallback(original_file_name, DegradationReason.UNSUPPORTED_FILE_TYPE, today)

    async def _analyze_image(
        self,
        file_path: str,
        file_name: str,
        mime_type: str,
        today: Optional[date],
    ) -> AnalysisOutcome:
        image_bytes = await asyncio.to_thread(_read_bytes, file_path)
        return await self._two_stage(
            image_bytes,
            mime_type,
            file_name,
            source="image",
            default_title=f"Document - {file_name}",
            default_summary="Document processed successfully.",
            today=today,
        )

    async def _analyze_pdf(self, file_path: str, file_name: str, today: Optional[date]) -> AnalysisOutcome:
        try:
            image_bytes = await rasterize_first_page(file_path)
        except PdfConversionError as e:
            logger.warning(
                f"PDF conversion failed for {file_name}, classifying from filename: {e}",
                extra={"file_name": file_name, "error": str(e)},
            )
            sentry_sdk.capture_exception(e)
            return await self._analyze_pdf_filename(file_name, today, conversion_error=e)

        logger.info(f"PDF converted to image for OCR: {file_name}", extra={"file_name": file_name})

        return await self._two_stage(
            image_bytes,
            "image/jpeg",
            file_name,
            source="pdf",
            default_title=f"PDF Document - {file_name}",
            default_summary="PDF document processed successfully via image conversion and OCR.",
            today=today,
        )

    async def _analyze_pdf_filename(
        self,
        file_name: str,
        today: Optional[date],
        conversion_error: Exception,
    ) -> AnalysisOutcome:
        """Single AI call on the filename alone; local fallback if that fails too."""
        try:
            metadata = await self.client.classify_filename(file_name, today=today)
        except MetadataParseError as e:
            return self._fallback(file_name, DegradationReason.CLASSIFICATION_PARSE_FAILED, today, error=e)
        except Exception as e:
            return self._fallback(file_name, classify_error(e), today, error=e)

        result = build_result(
            metadata,
            default_title=f"PDF - {file_name}",
            default_summary="PDF document analyzed based on filename.",
            extracted_text=pdf_placeholder_text(file_name),
        )
        return AnalysisOutcome.degraded(
            result,
            DegradationReason.CONVERSION_FAILED,
            detail=str(conversion_error),
        )

    async def _two_stage(
        self,
        image_bytes: bytes,
        mime_type: str,
        file_name: str,
        source: str,
        default_title: str,
        default_summary: str,
        today: Optional[date],
    ) -> AnalysisOutcome:
        """Stage 1 (transcribe) then stage 2 (metadata) with RawText in between."""
        try:
            raw = await self.client.transcribe(image_bytes, mime_type, file_name, source=source)
        except Exception as e:
            return self._fallback(file_name, classify_error(e), today, error=e)

        if raw.is_empty:
            return self._fallback(file_name, DegradationReason.TRANSCRIPTION_FAILED, today)

        if raw.is_near_empty:
            logger.warning(
                f"OCR extraction appears insufficient for {file_name}",
                extra={"file_name": file_name, "text_length": len(raw.text)},
            )

        return await self.classify_transcript(
            raw,
            default_title=default_title,
            default_summary=default_summary,
            today=today,
        )

    async def classify_transcript(
        self,
        raw: RawText,
        default_title: Optional[str] = None,
        default_summary: str = "Document processed successfully.",
        today: Optional[date] = None,
    ) -> AnalysisOutcome:
        """
        Stage 2 on its own: metadata from an existing transcript.

        The transcript is kept as extracted_text even when this stage fails.
        """
        try:
            metadata = await self.client.extract_metadata(raw)
        except MetadataParseError as e:
            return self._fallback(
                raw.file_name, DegradationReason.CLASSIFICATION_PARSE_FAILED, today, error=e, transcript=raw
            )
        except Exception as e:
            return self._fallback(raw.file_name, classify_error(e), today, error=e, transcript=raw)

        result = build_result(
            metadata,
            default_title=default_title or f"Document - {raw.file_name}",
            default_summary=default_summary,
            extracted_text=raw.text,
        )

        logger.info(
            f"Analyzed {raw.file_name}: category={result.category.value}",
            extra={"file_name": raw.file_name, "category": result.category.value, "source": raw.source},
        )
        return AnalysisOutcome.full(result)

    def _fallback(
        self,
        file_name: str,
        reason: DegradationReason,
        today: Optional[date],
        error: Optional[Exception] = None,
        transcript: Optional[RawText] = None,
    ) -> AnalysisOutcome:
        """Filename classification plus the degraded-mode note."""
        logger.error(
            f"AI analysis degraded for {file_name}: {reason.value}",
            extra={
                "file_name": file_name,
                "reason": reason.value,
                "error_type": type(error).__name__ if error else None,
                "error": str(error) if error else None,
            },
        )
        if error is not None:
            sentry_sdk.capture_exception(error)

        result = annotate_degraded(classify_filename(file_name, today=today), reason)
        if transcript is not None and not transcript.is_empty:
            result = result.model_copy(update={"extracted_text": transcript.text})

        return AnalysisOutcome.degraded(result, reason, detail=str(error) if error else None)


def _read_bytes(file_path: str) -> bytes:
    with open(file_path, "rb") as f:
        return f.read()
