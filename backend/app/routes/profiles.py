"""Profiles API routes."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.schemas.common import SuccessResponse
from app.schemas.profile import ProfileUpdate, ProfileResponse, ProfileListResponse
from app.schemas.tag import TagAssign
from app.services import profile_store
from app.services.errors import InvalidInputError
from app.services.profile_service import ProfileService, get_profile_service

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


def _parse_tag_ids(tag_id: Optional[int], tag_ids: Optional[str]) -> list[int]:
    """Merge ``tagId`` and comma-separated ``tagIds`` into one id list."""
    ids = [tag_id] if tag_id is not None else []
    if tag_ids:
        for part in tag_ids.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                ids.append(int(part))
            except ValueError:
                raise InvalidInputError(f"Invalid tag id: {part!r}")
    return ids


@router.get("", response_model=ProfileListResponse)
async def list_profiles(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, alias="pageSize"),
    tag_id: Optional[int] = Query(None, alias="tagId"),
    tag_ids: Optional[str] = Query(None, alias="tagIds", description="Comma-separated tag ids"),
    tag_filter_mode: str = Query("and", alias="tagFilterMode"),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Paginated profiles, newest first, filtered by tags and/or a search term."""
    mode = tag_filter_mode.lower()
    if mode not in profile_store.TAG_FILTER_MODES:
        raise InvalidInputError("tagFilterMode must be 'and' or 'or'")

    result = await profile_store.list_profiles(
        db,
        page=page,
        page_size=min(page_size, settings.MAX_PAGE_SIZE),
        tag_ids=_parse_tag_ids(tag_id, tag_ids),
        tag_filter_mode=mode,
        search=search or None,
    )
    return ProfileListResponse(
        profiles=[ProfileResponse.model_validate(p) for p in result.profiles],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get("/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get a single profile with its tags."""
    return await profile_store.require_profile(db, profile_id)


@router.patch("/{profile_id}", response_model=ProfileResponse)
async def update_profile(
    profile_id: str,
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a profile's description."""
    return await profile_store.update_description(db, profile_id, body.description)


@router.delete("/{profile_id}", response_model=SuccessResponse)
async def delete_profile(
    profile_id: str,
    db: AsyncSession = Depends(get_db),
    service: ProfileService = Depends(get_profile_service),
):
    """Delete a backup directory and its record."""
    await service.delete_backup(db, profile_id)
    return SuccessResponse(message=f"Profile {profile_id} deleted")


@router.post("/{profile_id}/tags", response_model=ProfileResponse)
async def assign_tag(
    profile_id: str,
    body: TagAssign,
    db: AsyncSession = Depends(get_db),
):
    """Tag a profile, creating the tag on first use."""
    return await profile_store.assign_tag(db, profile_id, body.tag_name)


@router.delete("/{profile_id}/tags/{tag_id}", response_model=SuccessResponse)
async def remove_tag(
    profile_id: str,
    tag_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Untag a profile. A tag with no profiles left is deleted."""
    tag_deleted = await profile_store.remove_tag(db, profile_id, tag_id)
    message = f"Tag {tag_id} removed from {profile_id}"
    if tag_deleted:
        message += " and deleted"
    return SuccessResponse(message=message)
