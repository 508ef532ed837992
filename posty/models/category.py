"""
Mail item categories.

The closed set of standard categories. Users may also attach free-form
custom labels, stored as MailItemCategory rows with is_custom=True.
"""

from enum import Enum


class Category(str, Enum):
    """Standard categories assigned by the analyzer or chosen by the user."""
    BILL = "bill"
    APPOINTMENT = "appointment"
    PERSONAL = "personal"
    PROMOTIONAL = "promotional"
    GOVERNMENT = "government"
    INSURANCE = "insurance"
    NHS = "nhs"

    @classmethod
    def values(cls) -> list[str]:
        return [c.value for c in cls]

    @classmethod
    def coerce(cls, value, default: "Category" = None) -> "Category":
        """
        Map an arbitrary value onto the closed enum.

        Returns default (PERSONAL unless given) when value is missing or
        not a known category.
        """
        fallback = default or cls.PERSONAL
        if not isinstance(value, str):
            return fallback
        try:
            return cls(value.strip().lower())
        except ValueError:
            return fallback
