"""
Unit tests for the OpenAI vision client.

The AsyncOpenAI instance is replaced with a mock; no network calls.
"""

import json
import pytest
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from posty.models.analysis import RawText
from posty.modules.analyzer.openai_client import (
    MetadataParseError,
    VisionClient,
    image_data_url,
    parse_metadata,
)


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openai_mock():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.models.list = AsyncMock()
    return client


@pytest.fixture
def vision(openai_mock):
    return VisionClient(client=openai_mock)


class TestParseMetadata:

    def test_valid_object(self):
        metadata = parse_metadata(json.dumps({
            "title": "Council Tax Bill",
            "summary": "Amount due £1,234",
            "category": "bill",
            "reminderDate": "2024-04-15",
        }))

        assert metadata.title == "Council Tax Bill"
        assert metadata.reminder_date == "2024-04-15"

    def test_non_string_values_are_stringified(self):
        metadata = parse_metadata(json.dumps({"title": 2024, "category": "bill", "reminderDate": None}))

        assert metadata.title == "2024"
        assert metadata.reminder_date is None

    def test_unknown_keys_ignored(self):
        metadata = parse_metadata(json.dumps({"title": "T", "confidence": 0.9}))

        assert metadata.title == "T"

    @pytest.mark.parametrize("content", [None, "", "not json", "```json\n{}```"])
    def test_invalid_json_raises(self, content):
        with pytest.raises(MetadataParseError):
            parse_metadata(content)

    def test_non_object_raises(self):
        with pytest.raises(MetadataParseError):
            parse_metadata(json.dumps(["title", "summary"]))


def test_image_data_url():
    assert image_data_url(b"abc", "image/png") == "data:image/png;base64,YWJj"


class TestVisionClient:

    def test_default_client_has_no_retries(self):
        with patch("posty.modules.analyzer.openai_client.AsyncOpenAI") as openai_cls:
            VisionClient(api_key="sk-test")

        kwargs = openai_cls.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["timeout"] > 0

    @pytest.mark.asyncio
    async def test_transcribe_sends_image_and_returns_raw_text(self, vision, openai_mock):
        openai_mock.chat.completions.create.return_value = _completion("  Council Tax\nAmount due  ")

        raw = await vision.transcribe(b"jpeg-bytes", "image/jpeg", "tax.pdf", source="pdf")

        assert raw == RawText(text="Council Tax\nAmount due", file_name="tax.pdf", source="pdf")
        kwargs = openai_mock.chat.completions.create.call_args.kwargs
        assert kwargs["max_tokens"] == 3000
        user_content = kwargs["messages"][1]["content"]
        assert user_content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
        assert "converted to image" in user_content[0]["text"]

    @pytest.mark.asyncio
    async def test_transcribe_empty_content(self, vision, openai_mock):
        openai_mock.chat.completions.create.return_value = _completion(None)

        raw = await vision.transcribe(b"png", "image/png", "blank.png")

        assert raw.is_empty

    @pytest.mark.asyncio
    async def test_extract_metadata_requests_json(self, vision, openai_mock):
        openai_mock.chat.completions.create.return_value = _completion(
            '{"title": "GP Appointment", "summary": "Checkup", "category": "appointment", "reminderDate": null}'
        )
        raw = RawText(text="Dr Smith, 10:30 on 4 May", file_name="gp.png")

        metadata = await vision.extract_metadata(raw)

        assert metadata.category == "appointment"
        kwargs = openai_mock.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Dr Smith, 10:30 on 4 May" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_extract_metadata_parse_error(self, vision, openai_mock):
        openai_mock.chat.completions.create.return_value = _completion("Sorry, I can't help with that.")

        with pytest.raises(MetadataParseError):
            await vision.extract_metadata(RawText(text="text", file_name="a.png"))

    @pytest.mark.asyncio
    async def test_classify_filename_includes_today(self, vision, openai_mock):
        openai_mock.chat.completions.create.return_value = _completion('{"title": "Bill", "category": "bill"}')

        metadata = await vision.classify_filename("council_tax.pdf", today=date(2024, 3, 1))

        assert metadata.title == "Bill"
        messages = openai_mock.chat.completions.create.call_args.kwargs["messages"]
        assert "2024-03-01" in messages[0]["content"]
        assert "council_tax.pdf" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_errors_propagate(self, vision, openai_mock):
        openai_mock.chat.completions.create.side_effect = TimeoutError("timed out")

        with pytest.raises(TimeoutError):
            await vision.transcribe(b"png", "image/png", "a.png")

        assert openai_mock.chat.completions.create.await_count == 1
