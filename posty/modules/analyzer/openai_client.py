"""
OpenAI API client for document transcription and categorization.

Two calls per document:
1. transcribe: vision call, image in, verbatim text out (RawText)
2. extract_metadata: text-only call, RawText in, JSON metadata out

No retries: the client is built with max_retries=0 so every request is
attempted exactly once. Errors propagate to the analyzer, which owns the
fallback policy.
"""

import base64
import json
import logging
from datetime import date
from typing import Optional
from openai import AsyncOpenAI
from pydantic import ValidationError

from posty.core.config import settings
from posty.models.analysis import ExtractedMetadata, RawText
from posty.modules.analyzer import prompts

logger = logging.getLogger(__name__)


class MetadataParseError(ValueError):
    """Metadata response was not a JSON object of the expected shape."""


def image_data_url(image_bytes: bytes, mime_type: str) -> str:
    """Encode image bytes as a base64 data URL for the vision API."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def parse_metadata(content: Optional[str]) -> ExtractedMetadata:
    """
    Parse the metadata-stage response body.

    Raises:
        MetadataParseError: If content is not a JSON object
    """
    try:
        data = json.loads(content or "")
    except json.JSONDecodeError as e:
        raise MetadataParseError(f"Invalid JSON in metadata response: {e}") from e

    if not isinstance(data, dict):
        raise MetadataParseError(f"Expected JSON object, got {type(data).__name__}")

    # Non-string values (e.g. numeric titles) are stringified, not rejected
    cleaned = {
        key: (value if value is None or isinstance(value, str) else str(value))
        for key, value in data.items()
        if key in ("title", "summary", "category", "reminderDate")
    }
    try:
        return ExtractedMetadata(**cleaned)
    except ValidationError as e:
        raise MetadataParseError(f"Invalid metadata structure: {e}") from e


class VisionClient:
    """
    Async OpenAI client for the analyzer.

    Usage:
        client = VisionClient()
        raw = await client.transcribe(image_bytes, "image/png", "letter.png")
        metadata = await client.extract_metadata(raw)
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (defaults to settings.OPENAI_API_KEY)
            client: Pre-built AsyncOpenAI instance (tests inject a mock here)
        """
        self.model = settings.OPENAI_MODEL
        self.client = client or AsyncOpenAI(
            api_key=api_key or settings.OPENAI_API_KEY,
            max_retries=0,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
        )

    async def transcribe(
        self,
        image_bytes: bytes,
        mime_type: str,
        file_name: str,
        source: str = "image",
    ) -> RawText:
        """
        Stage 1: transcribe all visible text from a page image.

        Args:
            image_bytes: Raw JPEG/PNG bytes
            mime_type: 'image/jpeg' or 'image/png'
            file_name: Original filename (included in the prompt)
            source: 'image' or 'pdf'

        Returns:
            RawText (text may be empty; the analyzer decides what that means)

        Raises:
            openai.OpenAIError: If the API call fails
        """
        logger.debug(
            f"Transcribing {file_name}",
            extra={"file_name": file_name, "source": source, "model": self.model, "bytes": len(image_bytes)},
        )

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": prompts.TRANSCRIPTION_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompts.build_transcription_prompt(file_name, source)},
                        {"type": "image_url", "image_url": {"url": image_data_url(image_bytes, mime_type)}},
                    ],
                },
            ],
            max_tokens=3000,
        )

        text = (response.choices[0].message.content or "").strip()

        logger.info(
            f"Transcribed {file_name}: {len(text)} chars",
            extra={"file_name": file_name, "source": source, "text_length": len(text)},
        )

        return RawText(text=text, file_name=file_name, source=source)

    async def extract_metadata(self, raw: RawText) -> ExtractedMetadata:
        """
        Stage 2: derive title/summary/category/reminderDate from a transcript.

        Raises:
            openai.OpenAIError: If the API call fails
            MetadataParseError: If the response is not a valid JSON object
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": prompts.METADATA_SYSTEM_PROMPT},
                {"role": "user", "content": prompts.build_metadata_prompt(raw.file_name, raw.text, raw.source)},
            ],
            response_format={"type": "json_object"},
            max_tokens=1000,
        )

        metadata = parse_metadata(response.choices[0].message.content)

        logger.info(
            f"Extracted metadata for {raw.file_name}: category={metadata.category}",
            extra={"file_name": raw.file_name, "category": metadata.category},
        )

        return metadata

    async def classify_filename(self, file_name: str, today: Optional[date] = None) -> ExtractedMetadata:
        """
        Single-call classification from the filename only.

        Used when a PDF cannot be rasterized.

        Raises:
            openai.OpenAIError: If the API call fails
            MetadataParseError: If the response is not a valid JSON object
        """
        today = today or date.today()

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": prompts.build_filename_system_prompt(today)},
                {"role": "user", "content": prompts.build_filename_prompt(file_name)},
            ],
            response_format={"type": "json_object"},
            max_tokens=1000,
        )

        return parse_metadata(response.choices[0].message.content)

    async def ping(self) -> None:
        """Lightweight reachability check (lists models). Raises on failure."""
        await self.client.models.list()
