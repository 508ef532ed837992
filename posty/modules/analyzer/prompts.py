"""
Prompt text for the two analyzer stages and the filename-only path.

Stage 1 (transcription) must never translate or interpret; stage 2
(metadata) works from the transcript only.
"""

from datetime import date

from posty.models.category import Category

TRANSCRIPTION_SYSTEM_PROMPT = """You are a professional OCR system. Your ONLY job is to extract ALL visible text from documents exactly as written.

CRITICAL OCR RULES:
- Extract EVERY word, number, symbol visible in the document
- Preserve original spelling, capitalization, and punctuation
- Keep the original language and script - DO NOT translate
- Maintain line breaks and spacing where possible
- Include headers, footers, stamps, watermarks, handwritten text
- Transcribe EVERYTHING readable, even if partially obscured

For non-Latin scripts: preserve characters exactly (e.g. Cyrillic е, і, ї, є, ґ)
For numbers: include ALL digits, decimals, currency symbols
For dates: extract exactly as shown (28.11.2022, 11/28/2022, etc.)

Output the complete text transcription only - no analysis, no summary, just pure text extraction."""


CATEGORY_GUIDE = """Categories:
- bill: Utilities, invoices, taxes, payments
- appointment: Medical, meetings, bookings
- personal: Letters, tickets, receipts
- government: Official documents, permits
- insurance: Policies, claims, coverage
- nhs: Medical records, prescriptions
- promotional: Marketing, offers"""


METADATA_SYSTEM_PROMPT = f"""Analyze the extracted text to provide comprehensive document metadata. Return JSON with:
{{
  "title": "Descriptive title based on content",
  "summary": "COMPREHENSIVE analysis including: document type, key details (names, addresses, dates, amounts, reference numbers), purpose, required actions, deadlines, and all important information from the document",
  "category": "{', '.join(Category.values())}",
  "reminderDate": "YYYY-MM-DD if action needed, null otherwise"
}}

Make the summary very detailed with ALL specific information:
- Company/organization names and contact details
- Personal names, addresses, phone numbers
- All dates, amounts, reference numbers
- Document purpose and key details
- Required actions or deadlines
- Any important terms or conditions

{CATEGORY_GUIDE}"""


def build_transcription_prompt(file_name: str, source: str) -> str:
    """User-turn text sent alongside the page image."""
    what = "this PDF document (converted to image)" if source == "pdf" else "this document"
    return f"""Extract ALL visible text from {what}. Include everything readable:
- Every word and number exactly as written
- All company names, addresses, phone numbers
- Dates, amounts, reference numbers
- Headers, footers, stamps
- Any non-Latin text in original form
- Handwritten notes or annotations

File: {file_name}

Provide complete text transcription without any analysis."""


def build_metadata_prompt(file_name: str, text: str, source: str) -> str:
    """User-turn text for the metadata stage (transcript only, no image)."""
    kind = "PDF document" if source == "pdf" else "document"
    return f"""Analyze this extracted text from {kind} "{file_name}":

{text}

Provide comprehensive analysis including:
- Document type and purpose
- ALL names, addresses, phone numbers, emails
- ALL dates, amounts, reference/account numbers
- Key terms, conditions, or requirements
- Required actions and deadlines
- Important details for document management

Create a detailed summary with specific information for easy reference."""


def build_filename_system_prompt(today: date) -> str:
    """System prompt for classifying a PDF from its filename alone."""
    return f"""You are a document analysis expert. Analyze PDF filenames to provide intelligent categorization and detailed insights.

Provide JSON response with:
- title: Descriptive document title
- summary: Comprehensive analysis with likely content details
- category: {', '.join(Category.values())}
- reminderDate: Estimated deadline if applicable (YYYY-MM-DD or null)

Include specific details like likely amounts, dates, organizations, and purposes based on filename patterns.

Current date: {today.isoformat()}"""


def build_filename_prompt(file_name: str) -> str:
    return f"""Analyze PDF filename: {file_name}

Provide intelligent analysis with specific details based on document type patterns. Include likely amounts, dates, contact information, and action items that would typically appear in this type of document."""
