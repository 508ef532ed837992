"""
Deterministic filename-based classifier.

Used when the AI path is unavailable. Total and pure: every filename maps
to a valid AnalysisResult, and the only input besides the filename is the
date used for the 14-day bill reminder.

Rules are checked in order; the first match wins.
"""

import os
from datetime import date, timedelta
from typing import Optional, Tuple

from posty.models.analysis import AnalysisResult, DegradationReason
from posty.models.category import Category

BILL_REMINDER_DAYS = 14

QUOTA_NOTE = " (AI analysis temporarily unavailable due to quota limits)"
FAILURE_NOTE = " (Detailed AI analysis failed - document processed based on filename)"

# (keywords, category, title prefix, summary, sets reminder)
FILENAME_RULES: Tuple[Tuple[Tuple[str, ...], Category, str, str, bool], ...] = (
    (
        ("council", "tax", "bill", "invoice"),
        Category.BILL,
        "Bill/Tax Document",
        "Billing or tax document. Review payment details, due dates, and account information. "
        "Set reminder for payment if needed.",
        True,
    ),
    (
        ("appointment", "doctor", "medical", "clinic"),
        Category.APPOINTMENT,
        "Medical Appointment",
        "Medical appointment or healthcare document. Verify appointment details, time, and location. "
        "Prepare required documents or follow pre-appointment instructions.",
        False,
    ),
    (
        ("bank", "statement", "finance"),
        Category.BILL,
        "Financial Document",
        "Financial statement or banking document. Review transactions, account balance, "
        "and any important notices or changes.",
        False,
    ),
    (
        ("insurance", "policy", "claim"),
        Category.INSURANCE,
        "Insurance Document",
        "Insurance policy, claim, or coverage document. Review policy details, coverage limits, "
        "renewal dates, and any required actions.",
        False,
    ),
    (
        ("nhs", "health"),
        Category.NHS,
        "NHS/Health Document",
        "NHS or health service document. Review appointment details, treatment information, "
        "test results, or health records.",
        False,
    ),
    (
        ("gov", "hmrc", "dvla", "government"),
        Category.GOVERNMENT,
        "Government Document",
        "Official government correspondence or document. Review requirements, deadlines, "
        "and respond by specified dates if action is required.",
        False,
    ),
    (
        ("ticket", "travel", "train", "flight"),
        Category.PERSONAL,
        "Travel Document",
        "Travel ticket or booking confirmation. Verify travel details, departure times, "
        "seat assignments, and any special requirements.",
        False,
    ),
)

GENERIC_SUMMARY = (
    "Document uploaded and categorized based on filename. AI analysis will provide "
    "detailed content extraction once service is available."
)


def placeholder_text(file_name: str, category: Category) -> str:
    """Fixed explanatory text stored as extracted_text for filename-only results."""
    return (
        f"Filename-based analysis for: {file_name}\n\n"
        "This document could not be processed with OCR due to service limitations. "
        "The content analysis is based on the filename pattern.\n\n"
        "For complete text extraction, please ensure:\n"
        "- Document is a clear image (JPG, PNG)\n"
        "- Text is readable and well-lit\n"
        "- AI service is available\n\n"
        f"Document type: {category.value}\n"
        "Expected content based on filename patterns."
    )


def classify_filename(file_name: str, today: Optional[date] = None) -> AnalysisResult:
    """
    Classify a document from its filename alone.

    Args:
        file_name: Original upload filename (extension included)
        today: Reference date for reminders (defaults to date.today())

    Returns:
        AnalysisResult with the placeholder extracted_text

    Example:
        classify_filename("council_tax_bill_2024.pdf").category == Category.BILL
    """
    today = today or date.today()
    lowered = file_name.lower()
    stem = os.path.splitext(file_name)[0]

    for keywords, category, prefix, summary, with_reminder in FILENAME_RULES:
        if any(keyword in lowered for keyword in keywords):
            return AnalysisResult(
                title=f"{prefix} - {stem}",
                summary=summary,
                category=category,
                categories=[category.value],
                reminder_date=today + timedelta(days=BILL_REMINDER_DAYS) if with_reminder else None,
                extracted_text=placeholder_text(file_name, category),
            )

    return AnalysisResult(
        title=f"Document - {stem}",
        summary=GENERIC_SUMMARY,
        category=Category.PERSONAL,
        categories=[Category.PERSONAL.value],
        reminder_date=None,
        extracted_text=placeholder_text(file_name, Category.PERSONAL),
    )


def annotate_degraded(result: AnalysisResult, reason: DegradationReason) -> AnalysisResult:
    """Append the degraded-mode note to the summary (quota vs. generic failure)."""
    note = QUOTA_NOTE if reason == DegradationReason.QUOTA_EXCEEDED else FAILURE_NOTE
    return result.model_copy(update={"summary": result.summary + note})
