"""Tests for profile and tag metadata queries."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.models import Profile, ProfileTag, Tag
from app.services import profile_store
from app.services.errors import InvalidInputError, NotFoundError


async def _seed(db, *profile_ids, descriptions=None):
    """Insert profiles with strictly increasing created_at (last is newest)."""
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    descriptions = descriptions or {}
    for i, profile_id in enumerate(profile_ids):
        db.add(Profile(
            profile_id=profile_id,
            description=descriptions.get(profile_id),
            created_at=base + timedelta(minutes=i),
            updated_at=base + timedelta(minutes=i),
        ))
    await db.commit()


async def _tag_id(db, name):
    return await db.scalar(select(Tag.id).where(Tag.name == name))


def _ids(page):
    return [p.profile_id for p in page.profiles]


async def test_create_and_get_profile(db):
    created = await profile_store.create_profile(db, "p1", "work laptop", 42)

    assert created.profile_id == "p1"
    assert created.description == "work laptop"
    assert created.size_bytes == 42
    assert created.created_at is not None
    assert created.tags == []

    assert (await profile_store.get_profile(db, "p1")).description == "work laptop"
    assert await profile_store.get_profile(db, "missing") is None


async def test_empty_description_is_stored_as_none(db):
    created = await profile_store.create_profile(db, "p1", "")
    assert created.description is None


async def test_update_description_and_size(db):
    await profile_store.create_profile(db, "p1")

    updated = await profile_store.update_description(db, "p1", "new text")
    assert updated.description == "new text"

    resized = await profile_store.update_size(db, "p1", 2048)
    assert resized.size_bytes == 2048
    assert resized.description == "new text"


async def test_update_missing_profile_raises_not_found(db):
    with pytest.raises(NotFoundError):
        await profile_store.update_description(db, "ghost", "x")


async def test_list_profiles_newest_first_with_pagination(db):
    await _seed(db, "a", "b", "c", "d", "e")

    first = await profile_store.list_profiles(db, page=1, page_size=2)
    assert _ids(first) == ["e", "d"]
    assert first.total == 5
    assert first.total_pages == 3

    last = await profile_store.list_profiles(db, page=3, page_size=2)
    assert _ids(last) == ["a"]

    beyond = await profile_store.list_profiles(db, page=4, page_size=2)
    assert beyond.profiles == []
    assert beyond.total == 5


async def test_list_profiles_empty_store(db):
    page = await profile_store.list_profiles(db, page=1, page_size=20)
    assert page.profiles == []
    assert page.total == 0
    assert page.total_pages == 0


async def test_tag_filter_and_or(db):
    await _seed(db, "both", "only_a", "only_b", "none")
    await profile_store.assign_tag(db, "both", "A")
    await profile_store.assign_tag(db, "both", "B")
    await profile_store.assign_tag(db, "only_a", "A")
    await profile_store.assign_tag(db, "only_b", "B")
    a, b = await _tag_id(db, "A"), await _tag_id(db, "B")

    and_page = await profile_store.list_profiles(db, 1, 20, tag_ids=[a, b], tag_filter_mode="and")
    assert _ids(and_page) == ["both"]
    assert and_page.total == 1

    or_page = await profile_store.list_profiles(db, 1, 20, tag_ids=[a, b], tag_filter_mode="or")
    assert set(_ids(or_page)) == {"both", "only_a", "only_b"}
    assert or_page.total == 3

    single = await profile_store.list_profiles(db, 1, 20, tag_ids=[a])
    assert set(_ids(single)) == {"both", "only_a"}


async def test_and_filter_ignores_duplicate_ids(db):
    await _seed(db, "p1")
    await profile_store.assign_tag(db, "p1", "A")
    a = await _tag_id(db, "A")

    page = await profile_store.list_profiles(db, 1, 20, tag_ids=[a, a], tag_filter_mode="and")
    assert _ids(page) == ["p1"]


async def test_search_matches_id_or_description(db):
    await _seed(db, "alpha", "beta", "gamma", descriptions={"gamma": "shopping account"})

    page = await profile_store.list_profiles(db, 1, 20, search="lph")
    assert _ids(page) == ["alpha"]

    page = await profile_store.list_profiles(db, 1, 20, search="shopping")
    assert _ids(page) == ["gamma"]


async def test_search_treats_wildcards_literally(db):
    await _seed(db, "p1", "p2", descriptions={"p1": "100% done", "p2": "1000 done"})

    page = await profile_store.list_profiles(db, 1, 20, search="0%")
    assert _ids(page) == ["p1"]


async def test_search_combined_with_tag_filter(db):
    await _seed(db, "work-1", "work-2", "home-1")
    await profile_store.assign_tag(db, "work-1", "vip")
    await profile_store.assign_tag(db, "home-1", "vip")
    vip = await _tag_id(db, "vip")

    page = await profile_store.list_profiles(db, 1, 20, tag_ids=[vip], search="work")
    assert _ids(page) == ["work-1"]
    assert page.total == 1


async def test_list_profiles_attaches_tags(db):
    await _seed(db, "p1")
    await profile_store.assign_tag(db, "p1", "zeta")
    await profile_store.assign_tag(db, "p1", "alpha")

    page = await profile_store.list_profiles(db, 1, 20)
    assert [t.name for t in page.profiles[0].tags] == ["alpha", "zeta"]


async def test_assign_tag_twice_is_idempotent(db):
    await _seed(db, "p1")

    await profile_store.assign_tag(db, "p1", "work")
    profile = await profile_store.assign_tag(db, "p1", "work")

    assert [t.name for t in profile.tags] == ["work"]
    assert await db.scalar(select(func.count()).select_from(ProfileTag)) == 1
    assert [t.name for t in await profile_store.list_tags(db)] == ["work"]


async def test_assign_tag_to_missing_profile(db):
    with pytest.raises(NotFoundError):
        await profile_store.assign_tag(db, "ghost", "work")
    assert await profile_store.list_tags(db) == []


async def test_get_or_create_tag_reuses_existing(db):
    first = await profile_store.get_or_create_tag(db, "shared")
    await db.commit()
    second = await profile_store.get_or_create_tag(db, "shared")

    assert first.id == second.id


async def test_list_tags_sorted_by_name(db):
    await _seed(db, "p1")
    for name in ("c", "a", "b"):
        await profile_store.assign_tag(db, "p1", name)

    assert [t.name for t in await profile_store.list_tags(db)] == ["a", "b", "c"]


async def test_removing_last_association_deletes_tag(db):
    await _seed(db, "p1")
    await profile_store.assign_tag(db, "p1", "temp")
    tag_id = await _tag_id(db, "temp")

    assert await profile_store.remove_tag(db, "p1", tag_id) is True
    assert await profile_store.list_tags(db) == []


async def test_removing_non_last_association_keeps_tag(db):
    await _seed(db, "p1", "p2")
    await profile_store.assign_tag(db, "p1", "shared")
    await profile_store.assign_tag(db, "p2", "shared")
    tag_id = await _tag_id(db, "shared")

    assert await profile_store.remove_tag(db, "p1", tag_id) is False
    assert [t.name for t in await profile_store.list_tags(db)] == ["shared"]
    assert (await profile_store.get_profile(db, "p1")).tags == []
    assert [t.name for t in (await profile_store.get_profile(db, "p2")).tags] == ["shared"]


async def test_remove_unassigned_tag_raises_not_found(db):
    await _seed(db, "p1")
    with pytest.raises(NotFoundError):
        await profile_store.remove_tag(db, "p1", 999)


async def test_delete_profile_removes_links_and_orphan_tags(db):
    await _seed(db, "p1", "p2")
    await profile_store.assign_tag(db, "p1", "solo")
    await profile_store.assign_tag(db, "p1", "shared")
    await profile_store.assign_tag(db, "p2", "shared")

    await profile_store.delete_profile(db, "p1")

    assert await profile_store.get_profile(db, "p1") is None
    assert [t.name for t in await profile_store.list_tags(db)] == ["shared"]
    assert await db.scalar(select(func.count()).select_from(ProfileTag)) == 1


async def test_delete_missing_profile_raises_not_found(db):
    with pytest.raises(NotFoundError):
        await profile_store.delete_profile(db, "ghost")


async def test_assign_tag_trims_name(db):
    await _seed(db, "p1")

    await profile_store.assign_tag(db, "p1", "work")
    profile = await profile_store.assign_tag(db, "p1", "  work ")

    assert [t.name for t in profile.tags] == ["work"]
    assert [t.name for t in await profile_store.list_tags(db)] == ["work"]


async def test_blank_tag_name_is_invalid(db):
    await _seed(db, "p1")

    for name in ("", "   "):
        with pytest.raises(InvalidInputError):
            await profile_store.assign_tag(db, "p1", name)
    with pytest.raises(InvalidInputError):
        await profile_store.get_or_create_tag(db, " ")
    assert await profile_store.list_tags(db) == []


async def test_list_profiles_rejects_offset_beyond_sql_integer(db):
    with pytest.raises(InvalidInputError):
        await profile_store.list_profiles(db, page=10**20, page_size=20)
