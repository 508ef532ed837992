"""Request/response models for mail item endpoints (camelCase on the wire)."""

from datetime import date, datetime
from typing import List, Optional
from pydantic import Field, field_validator

from posty.models.category import Category
from posty.modules.auth.schemas import CamelModel


class MailItemResponse(CamelModel):
    id: int
    user_id: str
    title: str
    summary: str
    category: str
    categories: List[str] = Field(default_factory=list)
    custom_categories: List[str] = Field(default_factory=list)
    reminder_date: Optional[date] = None
    image_url: str
    file_name: str
    extracted_text: Optional[str] = None
    upload_date: datetime


class MailItemUpdate(CamelModel):
    """Partial update; only fields present in the request body are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    summary: Optional[str] = None
    category: Optional[Category] = None
    categories: Optional[List[Category]] = None
    custom_categories: Optional[List[str]] = None
    reminder_date: Optional[date] = None

    @field_validator("custom_categories")
    @classmethod
    def validate_custom_categories(cls, v):
        """Trim labels and reject empty or overlong ones."""
        if v is None:
            return v
        cleaned = []
        for label in v:
            label = label.strip()
            if not label:
                raise ValueError("Custom category labels cannot be empty")
            if len(label) > 50:
                raise ValueError("Custom category labels must be 50 characters or fewer")
            cleaned.append(label)
        return cleaned

    def to_updates(self) -> dict:
        """Fields explicitly sent by the client, as repository updates."""
        updates = self.model_dump(exclude_unset=True)
        if updates.get("category") is not None:
            updates["category"] = Category(updates["category"]).value
        elif "category" in updates:
            # category is NOT NULL; an explicit null is ignored
            updates.pop("category")
        if updates.get("categories") is not None:
            updates["categories"] = [Category(c).value for c in updates["categories"]]
        for key in ("title", "summary"):
            if key in updates and updates[key] is None:
                updates.pop(key)
        return updates


class CategoriesResponse(CamelModel):
    standard: List[str]
    custom: List[str]


class DeleteResponse(CamelModel):
    success: bool


class BulkDeleteResponse(CamelModel):
    deleted: int
