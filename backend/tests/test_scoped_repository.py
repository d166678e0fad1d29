from datetime import datetime, timedelta, timezone

import pytest

from zhe.core.exceptions import SlugConflictError, StoreError, ValidationError
from zhe.core.scoped import ScopedRepository
from zhe.schemas import (
    ClickEvent,
    FolderCreate,
    FolderUpdate,
    LinkCreate,
    LinkMetadataUpdate,
    LinkUpdate,
    TagCreate,
    TagUpdate,
    UploadCreate,
)
from zhe.services.links import record_click


def new_link(slug, url="https://example.com", **kwargs):
    return LinkCreate(original_url=url, slug=slug, **kwargs)


def test_owner_id_is_required(executor):
    with pytest.raises(ValueError):
        ScopedRepository("", executor=executor)
    with pytest.raises(ValueError):
        ScopedRepository("   ", executor=executor)


def test_owner_id_is_exposed_read_only(alice):
    assert alice.owner_id == "user-alice"
    with pytest.raises(AttributeError):
        alice.owner_id = "user-bob"


# ---- Links ----

async def test_create_link_binds_owner(alice):
    link = await alice.create_link(new_link("abc123", "https://a.com"))

    assert link.id == 1
    assert link.user_id == "user-alice"
    assert link.slug == "abc123"
    assert link.clicks == 0
    assert link.is_custom is False
    assert link.created_at.tzinfo is not None


async def test_get_links_newest_first_and_scoped(alice, bob):
    first = await alice.create_link(new_link("first1"))
    second = await alice.create_link(new_link("second"))
    await bob.create_link(new_link("bobs01"))

    links = await alice.get_links()

    assert [link.id for link in links] == [second.id, first.id]


async def test_other_owner_cannot_see_or_touch_link(alice, bob):
    link = await alice.create_link(new_link("mine01", "https://a.com"))

    assert await bob.get_link_by_id(link.id) is None
    assert await bob.update_link(link.id, LinkUpdate(original_url="https://evil.com")) is None
    assert await bob.update_link_note(link.id, "hi") is None
    assert await bob.delete_link(link.id) is False

    unchanged = await alice.get_link_by_id(link.id)
    assert unchanged.original_url == "https://a.com"
    assert unchanged.note is None


async def test_slug_is_unique_across_owners(alice, bob):
    await alice.create_link(new_link("taken1"))

    with pytest.raises(SlugConflictError) as exc_info:
        await bob.create_link(new_link("taken1"))

    assert exc_info.value.slug == "taken1"
    assert isinstance(exc_info.value, StoreError)
    assert await bob.get_links() == []


async def test_create_link_rejects_bad_url(alice):
    with pytest.raises(ValidationError):
        await alice.create_link(new_link("badurl", "ftp://example.com"))


async def test_create_link_rejects_foreign_folder(alice, bob):
    folder = await bob.create_folder(FolderCreate(name="Bob's"))

    with pytest.raises(ValidationError):
        await alice.create_link(new_link("infold", folder_id=folder.id))


async def test_update_link_writes_only_set_fields(alice):
    expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
    link = await alice.create_link(new_link("upd001", "https://a.com", expires_at=expires))

    updated = await alice.update_link(link.id, LinkUpdate(original_url="https://b.com"))

    assert updated.original_url == "https://b.com"
    assert updated.slug == "upd001"
    assert updated.expires_at == expires


async def test_update_link_explicit_none_clears_expiry(alice):
    link = await alice.create_link(
        new_link("exp001", expires_at=datetime.now(timezone.utc) + timedelta(days=1))
    )

    updated = await alice.update_link(link.id, LinkUpdate(expires_at=None))

    assert updated.expires_at is None


async def test_update_link_without_fields_returns_current(alice):
    link = await alice.create_link(new_link("noop01"))

    assert (await alice.update_link(link.id, LinkUpdate())).id == link.id
    assert await alice.update_link(9999, LinkUpdate()) is None


async def test_update_link_slug_conflict(alice):
    await alice.create_link(new_link("slug-a"))
    other = await alice.create_link(new_link("slug-b"))

    with pytest.raises(SlugConflictError):
        await alice.update_link(other.id, LinkUpdate(slug="slug-a"))


async def test_update_link_metadata_and_note(alice):
    link = await alice.create_link(new_link("meta01"))

    updated = await alice.update_link_metadata(
        link.id, LinkMetadataUpdate(meta_title="Example", meta_favicon="https://example.com/f.ico")
    )
    assert updated.meta_title == "Example"
    assert updated.meta_description is None

    noted = await alice.update_link_note(link.id, "read later")
    assert noted.note == "read later"

    cleared = await alice.update_link_note(link.id, None)
    assert cleared.note is None


async def test_create_update_delete_scenario(alice):
    link = await alice.create_link(new_link("scen01", "https://a.com"))

    updated = await alice.update_link(link.id, LinkUpdate(original_url="https://b.com"))
    assert updated.original_url == "https://b.com"

    assert await alice.delete_link(link.id) is True
    assert await alice.get_link_by_id(link.id) is None
    assert await alice.delete_link(link.id) is False


# ---- Dirty tracking ----

async def test_link_mutations_mark_dirty(alice, tracker):
    link = await alice.create_link(new_link("dirty1"))
    assert tracker.is_dirty()

    tracker.clear_dirty()
    await alice.get_links()
    assert not tracker.is_dirty()

    await alice.update_link(link.id, LinkUpdate(is_custom=True))
    assert tracker.is_dirty()

    tracker.clear_dirty()
    await alice.delete_link(link.id)
    assert tracker.is_dirty()


async def test_failed_mutations_leave_tracker_clean(alice, bob, tracker):
    link = await alice.create_link(new_link("clean1"))
    tracker.clear_dirty()

    await bob.update_link(link.id, LinkUpdate(original_url="https://x.com"))
    await bob.delete_link(link.id)

    assert not tracker.is_dirty()


# ---- Folders ----

async def test_folder_crud(alice, bob):
    folder = await alice.create_folder(FolderCreate(name="Reading"))
    assert folder.icon == "folder"

    renamed = await alice.update_folder(folder.id, FolderUpdate(name="Later", icon="book"))
    assert renamed.name == "Later"
    assert renamed.icon == "book"

    assert await bob.get_folder_by_id(folder.id) is None
    assert await bob.update_folder(folder.id, FolderUpdate(name="Mine")) is None
    assert [f.id for f in await alice.get_folders()] == [folder.id]
    assert await bob.get_folders() == []


async def test_delete_folder_nulls_links_but_keeps_them(alice):
    folder = await alice.create_folder(FolderCreate(name="Work"))
    inside = await alice.create_link(new_link("infld1", folder_id=folder.id))
    outside = await alice.create_link(new_link("outfl1"))

    assert await alice.delete_folder(folder.id) is True

    assert await alice.get_folder_by_id(folder.id) is None
    assert (await alice.get_link_by_id(inside.id)).folder_id is None
    assert (await alice.get_link_by_id(outside.id)) is not None
    assert len(await alice.get_links()) == 2


async def test_delete_foreign_folder_is_refused(alice, bob):
    folder = await alice.create_folder(FolderCreate(name="Work"))
    link = await alice.create_link(new_link("keepf1", folder_id=folder.id))

    assert await bob.delete_folder(folder.id) is False
    assert (await alice.get_link_by_id(link.id)).folder_id == folder.id


# ---- Tags ----

async def test_create_tag_trims_and_validates(alice):
    tag = await alice.create_tag(TagCreate(name="  news  ", color="blue"))
    assert tag.name == "news"

    with pytest.raises(ValidationError):
        await alice.create_tag(TagCreate(name="   ", color="blue"))
    with pytest.raises(ValidationError):
        await alice.create_tag(TagCreate(name="x" * 31, color="blue"))
    with pytest.raises(ValidationError):
        await alice.create_tag(TagCreate(name="ok", color="neon"))

    assert len(await alice.get_tags()) == 1


async def test_update_tag(alice, bob):
    tag = await alice.create_tag(TagCreate(name="news", color="blue"))

    updated = await alice.update_tag(tag.id, TagUpdate(color="rose"))
    assert updated.color == "rose"
    assert updated.name == "news"

    assert await bob.update_tag(tag.id, TagUpdate(name="stolen")) is None
    assert [t.name for t in await alice.get_tags()] == ["news"]
    with pytest.raises(ValidationError):
        await alice.update_tag(tag.id, TagUpdate(color="neon"))


async def test_add_tag_to_link_is_idempotent(alice):
    link = await alice.create_link(new_link("tagme1"))
    tag = await alice.create_tag(TagCreate(name="news", color="blue"))

    assert await alice.add_tag_to_link(link.id, tag.id) is True
    assert await alice.add_tag_to_link(link.id, tag.id) is True

    associations = await alice.get_link_tags()
    assert [(a.link_id, a.tag_id) for a in associations] == [(link.id, tag.id)]


async def test_cross_tenant_tagging_is_refused(alice, bob):
    alice_link = await alice.create_link(new_link("alink1"))
    bob_tag = await bob.create_tag(TagCreate(name="spam", color="red"))

    assert await alice.add_tag_to_link(alice_link.id, bob_tag.id) is False
    assert await bob.add_tag_to_link(alice_link.id, bob_tag.id) is False

    assert await alice.get_link_tags() == []
    assert await bob.get_link_tags() == []


async def test_remove_tag_from_link_requires_link_owner(alice, bob):
    link = await alice.create_link(new_link("rmtag1"))
    tag = await alice.create_tag(TagCreate(name="news", color="blue"))
    await alice.add_tag_to_link(link.id, tag.id)

    assert await bob.remove_tag_from_link(link.id, tag.id) is False
    assert len(await alice.get_link_tags()) == 1

    assert await alice.remove_tag_from_link(link.id, tag.id) is True
    assert await alice.get_link_tags() == []
    assert await alice.remove_tag_from_link(link.id, tag.id) is False


async def test_delete_tag_removes_associations(alice):
    link = await alice.create_link(new_link("deltg1"))
    tag = await alice.create_tag(TagCreate(name="news", color="blue"))
    await alice.add_tag_to_link(link.id, tag.id)

    assert await alice.delete_tag(tag.id) is True

    assert await alice.get_tags() == []
    assert await alice.get_link_tags() == []
    assert await alice.get_link_by_id(link.id) is not None


async def test_delete_link_removes_associations(alice):
    link = await alice.create_link(new_link("dellk1"))
    tag = await alice.create_tag(TagCreate(name="news", color="blue"))
    await alice.add_tag_to_link(link.id, tag.id)

    assert await alice.delete_link(link.id) is True

    assert await alice.get_link_tags() == []
    assert [t.id for t in await alice.get_tags()] == [tag.id]


# ---- Uploads ----

def new_upload(key, size=100, file_type="image/png"):
    return UploadCreate(
        key=key,
        file_name=f"{key}.png",
        file_type=file_type,
        file_size=size,
        public_url=f"https://files.example.com/{key}",
    )


async def test_uploads_are_scoped(alice, bob):
    first = await alice.create_upload(new_upload("k1"))
    second = await alice.create_upload(new_upload("k2"))

    assert [u.id for u in await alice.get_uploads()] == [second.id, first.id]
    assert await bob.get_uploads() == []

    assert await alice.get_upload_key(first.id) == "k1"
    assert await bob.get_upload_key(first.id) is None

    assert await bob.delete_upload(first.id) is False
    assert await alice.delete_upload(first.id) is True
    assert [u.id for u in await alice.get_uploads()] == [second.id]


# ---- Webhook ----

async def test_webhook_upsert_replaces(alice):
    assert await alice.get_webhook() is None

    created = await alice.upsert_webhook("token-1")
    assert created.rate_limit == 5

    replaced = await alice.upsert_webhook("token-2", rate_limit=8)
    assert replaced.id == created.id
    assert replaced.token == "token-2"
    assert replaced.rate_limit == 8


async def test_webhook_rate_limit_bounds(alice):
    with pytest.raises(ValidationError):
        await alice.upsert_webhook("token", rate_limit=0)
    with pytest.raises(ValidationError):
        await alice.upsert_webhook("token", rate_limit=11)

    assert await alice.update_webhook_rate_limit(3) is None

    await alice.upsert_webhook("token")
    assert (await alice.update_webhook_rate_limit(10)).rate_limit == 10
    with pytest.raises(ValidationError):
        await alice.update_webhook_rate_limit(11)


async def test_delete_webhook(alice, bob):
    await alice.upsert_webhook("token")

    assert await bob.delete_webhook() is False
    assert await alice.delete_webhook() is True
    assert await alice.get_webhook() is None


# ---- Settings ----

async def test_preview_style_upsert(alice, bob):
    assert await alice.get_user_settings() is None

    settings = await alice.upsert_preview_style("screenshot")
    assert settings.preview_style == "screenshot"

    settings = await alice.upsert_preview_style("favicon")
    assert settings.preview_style == "favicon"

    with pytest.raises(ValidationError):
        await alice.upsert_preview_style("thumbnail")

    assert await bob.get_user_settings() is None


async def test_backy_pull_key(alice):
    assert await alice.get_backy_pull_key() is None

    await alice.upsert_backy_pull_key("pull-key")
    assert await alice.get_backy_pull_key() == "pull-key"
    assert (await alice.get_user_settings()).preview_style == "favicon"

    await alice.upsert_backy_pull_key(None)
    assert await alice.get_backy_pull_key() is None


# ---- Analytics ----

async def test_analytics_scoped_through_link(alice, bob, executor):
    link = await alice.create_link(new_link("click1"))
    await record_click(ClickEvent(link_id=link.id, country="US", device="mobile", browser="Safari", os="iOS"), executor)
    await record_click(ClickEvent(link_id=link.id, country="DE", device="desktop", browser="Firefox", os="Linux"), executor)
    await record_click(ClickEvent(link_id=link.id, country="US", device="mobile"), executor)

    records = await alice.get_analytics_by_link_id(link.id)
    assert len(records) == 3
    assert await bob.get_analytics_by_link_id(link.id) == []

    stats = await alice.get_analytics_stats(link.id)
    assert stats.total_clicks == 3
    assert stats.unique_countries == ["DE", "US"]
    assert stats.device_breakdown == {"mobile": 2, "desktop": 1}
    assert stats.browser_breakdown == {"Safari": 1, "Firefox": 1}
    assert stats.os_breakdown == {"iOS": 1, "Linux": 1}

    foreign = await bob.get_analytics_stats(link.id)
    assert foreign.total_clicks == 0
    assert foreign.device_breakdown == {}


async def test_overview_stats(alice, bob, executor):
    popular = await alice.create_link(new_link("popul1"))
    await alice.create_link(new_link("quiet1"))
    await bob.create_link(new_link("bobs01"))
    await alice.create_upload(new_upload("a.png", size=300))
    await alice.create_upload(new_upload("b.pdf", size=200, file_type="application/pdf"))

    await record_click(ClickEvent(link_id=popular.id, device="mobile"), executor)
    await record_click(ClickEvent(link_id=popular.id, device="desktop"), executor)

    overview = await alice.get_overview_stats()

    assert overview.total_links == 2
    assert overview.total_clicks == 2
    assert overview.total_uploads == 2
    assert overview.total_storage_bytes == 500
    assert len(overview.click_timestamps) == 2
    assert len(overview.upload_timestamps) == 2
    assert overview.top_links[0].slug == "popul1"
    assert overview.top_links[0].clicks == 2
    assert overview.device_breakdown == {"mobile": 1, "desktop": 1}
    assert overview.file_type_breakdown == {"image/png": 1, "application/pdf": 1}


async def test_overview_stats_empty_owner(bob):
    overview = await bob.get_overview_stats()

    assert overview.total_links == 0
    assert overview.total_clicks == 0
    assert overview.top_links == []


async def test_webhook_token_generated_when_missing(alice, bob):
    first = await alice.upsert_webhook()
    other = await bob.upsert_webhook()

    assert len(first.token) >= 32
    assert first.token != other.token
