"""
Unit tests for DocumentAnalyzer.

The vision client is mocked; PDFs are built with PyMuPDF where a real
page is needed.

Requirements:
- analyze() never raises
- Images: transcribe then extract metadata, transcript kept as extracted_text
- PDFs: rasterize page 1, or classify from the filename if that fails
- Every failure degrades to the filename fallback with a reason
"""

import pytest
from datetime import date, timedelta
from unittest.mock import patch

import fitz
import openai
import httpx

from posty.models.analysis import DegradationReason, ExtractedMetadata, RawText
from posty.models.category import Category
from posty.models.outcome import OutcomeStatus
from posty.modules.analyzer.analyzer import (
    DocumentAnalyzer,
    classify_error,
    parse_reminder_date,
    pdf_placeholder_text,
)
from posty.modules.analyzer.fallback import FAILURE_NOTE, QUOTA_NOTE
from posty.modules.analyzer.openai_client import MetadataParseError

TODAY = date(2024, 3, 1)

TRANSCRIPT = (
    "Westminster City Council\nCouncil Tax Bill 2024/25\n"
    "Amount due: £1,234.00\nFirst instalment due 15 April 2024"
)


def _status_error(cls, status_code):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status_code, request=request)
    return cls("upstream error", response=response, body=None)


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "file-1-abcd.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\nfake image bytes")
    return path


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "file-2-abcd.pdf"
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Council Tax Bill 2024")
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def analyzer(vision_client):
    return DocumentAnalyzer(client=vision_client)


class TestParseReminderDate:

    def test_valid_date(self):
        assert parse_reminder_date("2024-04-15") == date(2024, 4, 15)

    @pytest.mark.parametrize("value", [None, "", "null", "15/04/2024", "2024-02-30", "2024-4-5", "next week"])
    def test_invalid_values_become_none(self, value):
        assert parse_reminder_date(value) is None

    def test_surrounding_whitespace_allowed(self):
        assert parse_reminder_date(" 2024-04-15 ") == date(2024, 4, 15)


class TestClassifyError:

    def test_rate_limit_is_quota(self):
        assert classify_error(_status_error(openai.RateLimitError, 429)) == DegradationReason.QUOTA_EXCEEDED

    def test_authentication_is_auth_failure(self):
        error = _status_error(openai.AuthenticationError, 401)
        assert classify_error(error) == DegradationReason.UPSTREAM_AUTH_FAILED

    def test_permission_denied_is_auth_failure(self):
        error = _status_error(openai.PermissionDeniedError, 403)
        assert classify_error(error) == DegradationReason.UPSTREAM_AUTH_FAILED

    def test_quota_message_is_quota(self):
        assert classify_error(Exception("insufficient_quota")) == DegradationReason.QUOTA_EXCEEDED

    def test_other_errors_are_service_errors(self):
        assert classify_error(TimeoutError("read timed out")) == DegradationReason.SERVICE_ERROR


class TestImagePath:

    @pytest.mark.asyncio
    async def test_full_two_stage_result(self, analyzer, vision_client, image_file):
        raw = RawText(text=TRANSCRIPT, file_name="council.png", source="image")
        vision_client.transcribe.return_value = raw
        vision_client.extract_metadata.return_value = ExtractedMetadata(
            title="Council Tax Bill 2024/25",
            summary="Annual council tax bill.",
            category="bill",
            reminder_date="2024-04-15",
        )

        outcome = await analyzer.analyze(str(image_file), "council.png", today=TODAY)

        assert outcome.status == OutcomeStatus.FULL
        assert outcome.reason is None
        assert outcome.result.title == "Council Tax Bill 2024/25"
        assert outcome.result.category == Category.BILL
        assert outcome.result.reminder_date == date(2024, 4, 15)
        assert outcome.result.extracted_text == TRANSCRIPT

        args = vision_client.transcribe.call_args
        assert args.args[1] == "image/png"
        vision_client.extract_metadata.assert_awaited_once_with(raw)

    @pytest.mark.asyncio
    async def test_unknown_category_coerced_to_personal(self, analyzer, vision_client, image_file):
        vision_client.transcribe.return_value = RawText(text=TRANSCRIPT, file_name="a.png")
        vision_client.extract_metadata.return_value = ExtractedMetadata(
            title="Letter", summary="A letter.", category="spam", reminder_date="soon"
        )

        outcome = await analyzer.analyze(str(image_file), "a.png", today=TODAY)

        assert outcome.status == OutcomeStatus.FULL
        assert outcome.result.category == Category.PERSONAL
        assert outcome.result.reminder_date is None

    @pytest.mark.asyncio
    async def test_missing_fields_use_defaults(self, analyzer, vision_client, image_file):
        vision_client.transcribe.return_value = RawText(text=TRANSCRIPT, file_name="scan.jpg")
        vision_client.extract_metadata.return_value = ExtractedMetadata()

        outcome = await analyzer.analyze(str(image_file), "scan.jpg", today=TODAY)

        assert outcome.result.title == "Document - scan.jpg"
        assert outcome.result.summary == "Document processed successfully."

    @pytest.mark.asyncio
    async def test_transcription_failure_degrades_to_filename(self, analyzer, vision_client, image_file):
        vision_client.transcribe.side_effect = _status_error(openai.RateLimitError, 429)

        with patch("posty.modules.analyzer.analyzer.sentry_sdk") as sentry:
            outcome = await analyzer.analyze(str(image_file), "council_tax_bill_2024.png", today=TODAY)

        assert outcome.status == OutcomeStatus.DEGRADED
        assert outcome.reason == DegradationReason.QUOTA_EXCEEDED
        assert outcome.result.category == Category.BILL
        assert outcome.result.reminder_date == TODAY + timedelta(days=14)
        assert outcome.result.summary.endswith(QUOTA_NOTE)
        vision_client.extract_metadata.assert_not_awaited()
        sentry.capture_exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_empty_transcript_is_transcription_failure(self, analyzer, vision_client, image_file):
        vision_client.transcribe.return_value = RawText(text="   ", file_name="random_xyz.png")

        outcome = await analyzer.analyze(str(image_file), "random_xyz.png", today=TODAY)

        assert outcome.reason == DegradationReason.TRANSCRIPTION_FAILED
        assert outcome.result.category == Category.PERSONAL
        assert outcome.result.summary.endswith(FAILURE_NOTE)
        vision_client.extract_metadata.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_near_empty_transcript_still_classified(self, analyzer, vision_client, image_file):
        vision_client.transcribe.return_value = RawText(text="Unable to read", file_name="a.png")
        vision_client.extract_metadata.return_value = ExtractedMetadata(title="Unreadable", summary="s")

        outcome = await analyzer.analyze(str(image_file), "a.png", today=TODAY)

        assert outcome.status == OutcomeStatus.FULL
        vision_client.extract_metadata.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_metadata_parse_failure_keeps_transcript(self, analyzer, vision_client, image_file):
        vision_client.transcribe.return_value = RawText(text=TRANSCRIPT, file_name="letter.png")
        vision_client.extract_metadata.side_effect = MetadataParseError("not json")

        outcome = await analyzer.analyze(str(image_file), "letter.png", today=TODAY)

        assert outcome.reason == DegradationReason.CLASSIFICATION_PARSE_FAILED
        assert outcome.result.extracted_text == TRANSCRIPT
        assert outcome.result.title == "Document - letter"

    @pytest.mark.asyncio
    async def test_metadata_auth_failure(self, analyzer, vision_client, image_file):
        vision_client.transcribe.return_value = RawText(text=TRANSCRIPT, file_name="letter.png")
        vision_client.extract_metadata.side_effect = _status_error(openai.AuthenticationError, 401)

        outcome = await analyzer.analyze(str(image_file), "letter.png", today=TODAY)

        assert outcome.reason == DegradationReason.UPSTREAM_AUTH_FAILED
        assert outcome.result.summary.endswith(FAILURE_NOTE)

    @pytest.mark.asyncio
    async def test_missing_file_degrades(self, analyzer, tmp_path):
        outcome = await analyzer.analyze(str(tmp_path / "gone.png"), "gone.png", today=TODAY)

        assert outcome.status == OutcomeStatus.DEGRADED
        assert outcome.reason == DegradationReason.SERVICE_ERROR


class TestPdfPath:

    @pytest.mark.asyncio
    async def test_rasterized_pdf_uses_jpeg_and_pdf_source(self, analyzer, vision_client, pdf_file):
        vision_client.transcribe.return_value = RawText(text=TRANSCRIPT, file_name="tax.pdf", source="pdf")
        vision_client.extract_metadata.return_value = ExtractedMetadata(summary="Council tax.", category="bill")

        outcome = await analyzer.analyze(str(pdf_file), "tax.pdf", today=TODAY)

        assert outcome.status == OutcomeStatus.FULL
        assert outcome.result.title == "PDF Document - tax.pdf"
        args = vision_client.transcribe.call_args
        assert args.args[0][:2] == b"\xff\xd8"
        assert args.args[1] == "image/jpeg"
        assert args.kwargs["source"] == "pdf"

    @pytest.mark.asyncio
    async def test_conversion_failure_classifies_filename_with_ai(self, analyzer, vision_client, tmp_path):
        broken = tmp_path / "broken.pdf"
        broken.write_bytes(b"%PDF-1.4 not really a pdf")
        vision_client.classify_filename.return_value = ExtractedMetadata(
            title="Council Tax", summary="Council tax bill.", category="bill", reminder_date="2024-04-01"
        )

        outcome = await analyzer.analyze(str(broken), "council_tax.pdf", today=TODAY)

        assert outcome.status == OutcomeStatus.DEGRADED
        assert outcome.reason == DegradationReason.CONVERSION_FAILED
        assert outcome.result.title == "Council Tax"
        assert outcome.result.reminder_date == date(2024, 4, 1)
        assert outcome.result.extracted_text == pdf_placeholder_text("council_tax.pdf")
        vision_client.transcribe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_conversion_and_ai_failure_uses_local_fallback(self, analyzer, vision_client, tmp_path):
        broken = tmp_path / "broken.pdf"
        broken.write_bytes(b"garbage")
        vision_client.classify_filename.side_effect = Exception("429 Too Many Requests")

        outcome = await analyzer.analyze(str(broken), "council_tax_bill_2024.pdf", today=TODAY)

        assert outcome.reason == DegradationReason.QUOTA_EXCEEDED
        assert outcome.result.category == Category.BILL
        assert "Bill/Tax Document" in outcome.result.title
        assert outcome.result.reminder_date == TODAY + timedelta(days=14)


class TestOtherTypes:

    @pytest.mark.asyncio
    async def test_unsupported_extension(self, analyzer, vision_client, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        outcome = await analyzer.analyze(str(path), "notes.txt", today=TODAY)

        assert outcome.reason == DegradationReason.UNSUPPORTED_FILE_TYPE
        assert outcome.result.category == Category.PERSONAL
        vision_client.transcribe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_classify_transcript_directly(self, analyzer, vision_client):
        raw = RawText(text=TRANSCRIPT, file_name="dentist.png")
        vision_client.extract_metadata.return_value = ExtractedMetadata(
            title="Dentist", summary="Checkup.", category="Appointment"
        )

        outcome = await analyzer.classify_transcript(raw, today=TODAY)

        assert outcome.result.category == Category.APPOINTMENT
        assert outcome.result.categories == ["appointment"]
