"""Profile and tag metadata queries.

Every function takes the caller's AsyncSession. Mutations commit before
returning; any SQLAlchemyError rolls the session back and is re-raised as
StoreFailureError.
"""
import logging
import math
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, desc, func, or_, delete as sql_delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.profile import Profile
from app.models.tag import Tag, ProfileTag
from app.services.errors import InvalidInputError, NotFoundError, StoreFailureError

logger = logging.getLogger(__name__)

TAG_FILTER_MODES = ("and", "or")

# Largest OFFSET a signed 64-bit SQL integer holds
MAX_OFFSET = 2**63 - 1


@dataclass
class ProfilePage:
    profiles: list[Profile]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


@asynccontextmanager
async def _store_errors(db: AsyncSession, action: str):
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Database error while trying to %s: %s", action, e)
        raise StoreFailureError(f"Failed to {action}: {e}") from e


def _filtered_profiles(
    tag_ids: Optional[list[int]] = None,
    tag_filter_mode: str = "and",
    search: Optional[str] = None,
):
    """Base select for profiles matching every given filter."""
    query = select(Profile)

    if tag_ids:
        wanted = set(tag_ids)
        tagged = select(ProfileTag.profile_id).where(ProfileTag.tag_id.in_(wanted))
        if tag_filter_mode == "and":
            tagged = (
                tagged.group_by(ProfileTag.profile_id)
                .having(func.count(func.distinct(ProfileTag.tag_id)) == len(wanted))
            )
        query = query.where(Profile.profile_id.in_(tagged))

    if search:
        query = query.where(
            or_(
                Profile.profile_id.contains(search, autoescape=True),
                Profile.description.contains(search, autoescape=True),
            )
        )

    return query


async def list_profiles(
    db: AsyncSession,
    page: int,
    page_size: int,
    tag_ids: Optional[list[int]] = None,
    tag_filter_mode: str = "and",
    search: Optional[str] = None,
) -> ProfilePage:
    """One page of profiles, newest first, with tags attached.

    ``tag_filter_mode`` "and" keeps profiles carrying every id in ``tag_ids``;
    "or" keeps profiles carrying at least one. The search term is a substring
    match over profile id and description. Filters combine with AND.
    """
    offset = (page - 1) * page_size
    if page < 1 or page_size < 1 or offset > MAX_OFFSET:
        raise InvalidInputError(f"Invalid pagination: page={page}, pageSize={page_size}")

    base = _filtered_profiles(tag_ids, tag_filter_mode, search)

    async with _store_errors(db, "list profiles"):
        total = await db.scalar(select(func.count()).select_from(base.subquery()))
        result = await db.execute(
            base.options(selectinload(Profile.tags))
            .order_by(desc(Profile.created_at), desc(Profile.profile_id))
            .limit(page_size)
            .offset(offset)
        )
        profiles = list(result.scalars().all())

    return ProfilePage(profiles=profiles, total=total or 0, page=page, page_size=page_size)


async def get_profile(db: AsyncSession, profile_id: str) -> Optional[Profile]:
    async with _store_errors(db, f"load profile {profile_id}"):
        result = await db.execute(
            select(Profile)
            .options(selectinload(Profile.tags), selectinload(Profile.profile_tags))
            .where(Profile.profile_id == profile_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


async def require_profile(db: AsyncSession, profile_id: str) -> Profile:
    profile = await get_profile(db, profile_id)
    if profile is None:
        raise NotFoundError(f"Profile {profile_id} not found in database")
    return profile


async def create_profile(
    db: AsyncSession,
    profile_id: str,
    description: Optional[str] = None,
    size_bytes: Optional[int] = None,
) -> Profile:
    async with _store_errors(db, f"create profile {profile_id}"):
        db.add(Profile(profile_id=profile_id, description=description or None, size_bytes=size_bytes))
        await db.commit()
    return await require_profile(db, profile_id)


async def update_description(db: AsyncSession, profile_id: str, description: str) -> Profile:
    profile = await require_profile(db, profile_id)
    async with _store_errors(db, f"update profile {profile_id}"):
        profile.description = description
        await db.commit()
    return await require_profile(db, profile_id)


async def update_size(db: AsyncSession, profile_id: str, size_bytes: int) -> Profile:
    profile = await require_profile(db, profile_id)
    async with _store_errors(db, f"update size of profile {profile_id}"):
        profile.size_bytes = size_bytes
        await db.commit()
    return await require_profile(db, profile_id)


async def _delete_orphan_tags(db: AsyncSession) -> None:
    await db.execute(
        sql_delete(Tag).where(Tag.id.not_in(select(ProfileTag.tag_id)))
    )


async def delete_profile(db: AsyncSession, profile_id: str) -> None:
    """Delete the record and its tag links; tags left unused go too."""
    profile = await require_profile(db, profile_id)
    async with _store_errors(db, f"delete profile {profile_id}"):
        await db.delete(profile)
        await db.flush()
        await _delete_orphan_tags(db)
        await db.commit()


async def list_tags(db: AsyncSession) -> list[Tag]:
    async with _store_errors(db, "list tags"):
        result = await db.execute(select(Tag).order_by(Tag.name))
        return list(result.scalars().all())


def _clean_tag_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Tag name must not be empty")
    return name


async def get_or_create_tag(db: AsyncSession, name: str) -> Tag:
    """Existing tag by name, or a new one flushed into the current transaction.

    Surrounding whitespace is ignored; a blank name is InvalidInputError.
    """
    name = _clean_tag_name(name)
    result = await db.execute(select(Tag).where(Tag.name == name))
    tag = result.scalar_one_or_none()
    if tag is not None:
        return tag

    tag = Tag(name=name)
    db.add(tag)
    await db.flush()
    await db.refresh(tag)
    return tag


async def assign_tag(db: AsyncSession, profile_id: str, tag_name: str) -> Profile:
    """Attach a tag by name, creating it on first use. Re-assigning is a no-op."""
    tag_name = _clean_tag_name(tag_name)
    await require_profile(db, profile_id)
    async with _store_errors(db, f"assign tag '{tag_name}' to {profile_id}"):
        tag = await get_or_create_tag(db, tag_name)
        linked = await db.scalar(
            select(ProfileTag.id).where(
                ProfileTag.profile_id == profile_id, ProfileTag.tag_id == tag.id
            )
        )
        if linked is None:
            db.add(ProfileTag(profile_id=profile_id, tag_id=tag.id))
        await db.commit()
    return await require_profile(db, profile_id)


async def remove_tag(db: AsyncSession, profile_id: str, tag_id: int) -> bool:
    """Detach a tag. Returns True when the tag itself was deleted as an orphan."""
    async with _store_errors(db, f"remove tag {tag_id} from {profile_id}"):
        result = await db.execute(
            sql_delete(ProfileTag).where(
                ProfileTag.profile_id == profile_id, ProfileTag.tag_id == tag_id
            )
        )
        if result.rowcount == 0:
            await db.rollback()
            raise NotFoundError(f"Tag {tag_id} is not assigned to profile {profile_id}")

        remaining = await db.scalar(
            select(func.count()).select_from(ProfileTag).where(ProfileTag.tag_id == tag_id)
        )
        orphaned = not remaining
        if orphaned:
            await db.execute(sql_delete(Tag).where(Tag.id == tag_id))
        await db.commit()

    if orphaned:
        logger.info("Deleted tag %s after its last profile was untagged", tag_id)
    return orphaned
