"""
Mail item routes.

Endpoints:
- GET /api/mail-items - List (optional q / category filters)
- GET /api/mail-items/search/{query} - Search
- GET /api/mail-items/category/{category} - Filter by category or label
- GET /api/mail-items/{id} - Get one
- POST /api/mail-items - Upload and analyze a document
- PATCH /api/mail-items/{id} - Partial update
- DELETE /api/mail-items/{id} - Delete one
- DELETE /api/mail-items - Delete all
- GET /api/categories - Standard categories and the user's custom labels
- GET /uploads/{name} - Stored file (owner only)
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from posty.core.database import get_db
from posty.models.category import Category
from posty.models.user import User
from posty.modules.auth.dependencies import get_current_user
from posty.modules.mail_items.intake import discard_upload, mime_type_for, upload_path
from posty.modules.mail_items.repository import MailItemRepository
from posty.modules.mail_items.schemas import (
    BulkDeleteResponse,
    CategoriesResponse,
    DeleteResponse,
    MailItemResponse,
    MailItemUpdate,
)
from posty.modules.mail_items.service import UploadProcessor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mail-items"])


def get_upload_processor(db: AsyncSession = Depends(get_db)) -> UploadProcessor:
    return UploadProcessor(db)


def _to_response(items) -> List[MailItemResponse]:
    return [MailItemResponse.model_validate(item) for item in items]


@router.get("/api/mail-items", response_model=List[MailItemResponse], response_model_by_alias=True)
async def list_mail_items(
    q: Optional[str] = Query(None, description="Search text"),
    category: Optional[str] = Query(None, description="Category or custom label"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the current user's mail items, newest first."""
    items = MailItemRepository(db)
    if q:
        results = await items.search(q, user.id)
        if category:
            results = [
                item for item in results
                if item.category == category or category in item.categories or category in item.custom_categories
            ]
    elif category:
        results = await items.by_category(category, user.id)
    else:
        results = await items.list(user.id)
    return _to_response(results)


@router.get("/api/mail-items/search/{query}", response_model=List[MailItemResponse], response_model_by_alias=True)
async def search_mail_items(
    query: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _to_response(await MailItemRepository(db).search(query, user.id))


@router.get("/api/mail-items/category/{category}", response_model=List[MailItemResponse], response_model_by_alias=True)
async def mail_items_by_category(
    category: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _to_response(await MailItemRepository(db).by_category(category, user.id))


@router.get("/api/mail-items/{item_id}", response_model=MailItemResponse, response_model_by_alias=True)
async def get_mail_item(
    item_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await MailItemRepository(db).get(item_id, user.id)
    if not item:
        raise HTTPException(status_code=404, detail="Mail item not found")
    return MailItemResponse.model_validate(item)


@router.post(
    "/api/mail-items",
    response_model=MailItemResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def upload_mail_item(
    file: UploadFile = File(..., description="JPEG, PNG or PDF, max 10MB"),
    user: User = Depends(get_current_user),
    processor: UploadProcessor = Depends(get_upload_processor),
):
    """
    Upload a scanned document.

    Analysis and email notification never fail the request; the created
    record is returned even when either degraded.
    """
    item = await processor.process(user, file)
    return MailItemResponse.model_validate(item)


@router.patch("/api/mail-items/{item_id}", response_model=MailItemResponse, response_model_by_alias=True)
async def update_mail_item(
    item_id: int,
    body: MailItemUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    item = await MailItemRepository(db).update(item_id, user.id, body.to_updates())
    if not item:
        raise HTTPException(status_code=404, detail="Mail item not found")
    await db.commit()
    return MailItemResponse.model_validate(item)


@router.delete("/api/mail-items/{item_id}", response_model=DeleteResponse)
async def delete_mail_item(
    item_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = MailItemRepository(db)
    item = await items.get(item_id, user.id)
    if not item:
        raise HTTPException(status_code=404, detail="Mail item not found")

    stored_name = item.stored_file_name
    await items.delete(item_id, user.id)
    await db.commit()
    discard_upload(stored_name)
    return DeleteResponse(success=True)


@router.delete("/api/mail-items", response_model=BulkDeleteResponse)
async def delete_all_mail_items(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = MailItemRepository(db)
    stored_names = await items.stored_file_names(user.id)
    deleted = await items.delete_all(user.id)
    await db.commit()
    for name in stored_names:
        discard_upload(name)
    return BulkDeleteResponse(deleted=deleted)


@router.get("/api/categories", response_model=CategoriesResponse)
async def list_categories(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    custom = await MailItemRepository(db).custom_labels(user.id)
    return CategoriesResponse(standard=Category.values(), custom=custom)


@router.get("/uploads/{name}")
async def get_upload(
    name: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Serve a stored upload, only to the user who owns the mail item."""
    path = upload_path(name)
    if path is None or not await MailItemRepository(db).owner_of_upload(name, user.id):
        raise HTTPException(status_code=404, detail="File not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(str(path), media_type=mime_type_for(name))
