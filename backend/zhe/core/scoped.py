"""
Owner-scoped data access.

Every owned-data operation goes through ScopedRepository. The owner id is
bound once at construction and added to every statement, so no method can
be called without it. Public lookups that intentionally have no owner
(slug resolution for redirects, webhook token lookup) live in
``zhe.services.links``.

Absence and foreign ownership look the same to callers: getters return
None, updates return None, deletes return False.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import Integer, String, and_, delete, func, insert, literal, select, update
from sqlalchemy.sql import Executable

from ..database import QueryExecutor, Row, get_executor
from ..models import Analytics, Folder, Link, LinkTag, Tag, Upload, UserSettings, Webhook
from ..schemas import (
    AnalyticsRead,
    AnalyticsStats,
    FolderCreate,
    FolderRead,
    FolderUpdate,
    LinkCreate,
    LinkMetadataUpdate,
    LinkRead,
    LinkTagRead,
    LinkUpdate,
    OverviewStats,
    TagCreate,
    TagRead,
    TagUpdate,
    TopLinkEntry,
    UploadCreate,
    UploadRead,
    UserSettingsRead,
    WebhookRead,
)
from ..services.dirty import DirtyTracker, get_tracker
from ..utils.validators import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_MAX,
    clean_tag_name,
    is_valid_preview_style,
    is_valid_rate_limit,
    is_valid_tag_color,
    is_valid_url,
)
from .codec import (
    row_to_analytics,
    row_to_folder,
    row_to_link,
    row_to_link_tag,
    row_to_tag,
    row_to_upload,
    row_to_user_settings,
    row_to_webhook,
    to_datetime,
    utcnow,
)
from .exceptions import SlugConflictError, UniqueViolationError, ValidationError
from .security import generate_webhook_token
from .shortener import is_valid_slug

logger = logging.getLogger(__name__)

links = Link.__table__
folders = Folder.__table__
tags = Tag.__table__
link_tags = LinkTag.__table__
uploads = Upload.__table__
webhooks = Webhook.__table__
user_settings = UserSettings.__table__
analytics = Analytics.__table__

# Link columns that may be cleared with an explicit None
NULLABLE_LINK_FIELDS = {"folder_id", "expires_at", "screenshot_url"}

TOP_LINKS_LIMIT = 10


def _breakdown(rows: List[Row]) -> Dict[str, int]:
    return {row["value"]: row["count"] for row in rows}


class ScopedRepository:
    def __init__(
        self,
        owner_id: str,
        executor: Optional[QueryExecutor] = None,
        tracker: Optional[DirtyTracker] = None,
    ):
        if not owner_id or not owner_id.strip():
            raise ValueError("ScopedRepository requires a non-empty owner id")
        self._owner_id = owner_id
        self._executor = executor or get_executor()
        self._tracker = tracker or get_tracker()

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def executor(self) -> QueryExecutor:
        return self._executor

    async def _fetch(self, statement: Executable) -> List[Row]:
        return await self._executor.execute(statement)

    async def _fetch_one(self, statement: Executable) -> Optional[Row]:
        rows = await self._executor.execute(statement)
        return rows[0] if rows else None

    def _owned_link_ids(self, link_id: Optional[int] = None):
        query = select(links.c.id).where(links.c.user_id == self._owner_id)
        if link_id is not None:
            query = query.where(links.c.id == link_id)
        return query

    # ---- Links ------------------------------------------------

    async def get_links(self) -> List[LinkRead]:
        """All links owned by this owner, newest first."""
        rows = await self._fetch(
            select(links)
            .where(links.c.user_id == self._owner_id)
            .order_by(links.c.created_at.desc(), links.c.id.desc())
        )
        return [row_to_link(row) for row in rows]

    async def get_link_by_id(self, link_id: int) -> Optional[LinkRead]:
        row = await self._fetch_one(
            select(links).where(links.c.id == link_id, links.c.user_id == self._owner_id).limit(1)
        )
        return row_to_link(row) if row else None

    async def create_link(self, data: LinkCreate) -> LinkRead:
        """
        Insert a link owned by this owner.

        Raises:
            ValidationError: bad URL or slug, or a folder this owner does not have
            SlugConflictError: the slug is used by any link of any owner
        """
        self._check_url(data.original_url)
        if not is_valid_slug(data.slug):
            raise ValidationError(f"Invalid slug: {data.slug!r}")
        if data.folder_id is not None:
            await self._require_folder(data.folder_id)

        statement = (
            insert(links)
            .values(
                user_id=self._owner_id,
                folder_id=data.folder_id,
                original_url=data.original_url,
                slug=data.slug,
                is_custom=data.is_custom,
                expires_at=to_datetime(data.expires_at),
                clicks=data.clicks,
                created_at=utcnow(),
            )
            .returning(*links.c)
        )
        try:
            rows = await self._fetch(statement)
        except UniqueViolationError as e:
            raise SlugConflictError(data.slug) from e

        self._tracker.mark_dirty()
        return row_to_link(rows[0])

    async def update_link(self, link_id: int, data: LinkUpdate) -> Optional[LinkRead]:
        """Write only the fields set on ``data``; no fields returns the current link."""
        fields = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_LINK_FIELDS
        }
        if not fields:
            return await self.get_link_by_id(link_id)

        if "original_url" in fields:
            self._check_url(fields["original_url"])
        if "slug" in fields and not is_valid_slug(fields["slug"]):
            raise ValidationError(f"Invalid slug: {fields['slug']!r}")
        if fields.get("folder_id") is not None:
            await self._require_folder(fields["folder_id"])
        if "expires_at" in fields:
            fields["expires_at"] = to_datetime(fields["expires_at"])

        try:
            row = await self._update_link_row(link_id, fields)
        except UniqueViolationError as e:
            raise SlugConflictError(fields.get("slug", "")) from e
        return self._changed_link(row)

    async def update_link_metadata(self, link_id: int, data: LinkMetadataUpdate) -> Optional[LinkRead]:
        fields = data.model_dump(exclude_unset=True)
        if not fields:
            return await self.get_link_by_id(link_id)
        row = await self._update_link_row(link_id, fields)
        return self._changed_link(row)

    async def update_link_note(self, link_id: int, note: Optional[str]) -> Optional[LinkRead]:
        row = await self._update_link_row(link_id, {"note": note})
        return self._changed_link(row)

    def _changed_link(self, row: Optional[Row]) -> Optional[LinkRead]:
        if row is None:
            return None
        self._tracker.mark_dirty()
        return row_to_link(row)

    async def _update_link_row(self, link_id: int, fields: Dict[str, Any]) -> Optional[Row]:
        return await self._fetch_one(
            update(links)
            .where(links.c.id == link_id, links.c.user_id == self._owner_id)
            .values(**fields)
            .returning(*links.c)
        )

    async def delete_link(self, link_id: int) -> bool:
        """Delete a link together with its tag associations and click records."""
        async with self._executor.transaction() as tx:
            deleted = await tx.execute(
                delete(links)
                .where(links.c.id == link_id, links.c.user_id == self._owner_id)
                .returning(links.c.id)
            )
            if not deleted:
                return False
            await tx.execute(delete(link_tags).where(link_tags.c.link_id == link_id))
            await tx.execute(delete(analytics).where(analytics.c.link_id == link_id))

        self._tracker.mark_dirty()
        return True

    # ---- Analytics (ownership through the parent link) --------

    def _owned_clicks(self):
        return analytics.join(links, analytics.c.link_id == links.c.id)

    async def get_analytics_by_link_id(self, link_id: int) -> List[AnalyticsRead]:
        rows = await self._fetch(
            select(*analytics.c)
            .select_from(self._owned_clicks())
            .where(analytics.c.link_id == link_id, links.c.user_id == self._owner_id)
            .order_by(analytics.c.created_at.desc(), analytics.c.id.desc())
        )
        return [row_to_analytics(row) for row in rows]

    def _click_breakdown(self, column, *conditions):
        return (
            select(column.label("value"), func.count(analytics.c.id).label("count"))
            .select_from(self._owned_clicks())
            .where(links.c.user_id == self._owner_id, column.isnot(None), *conditions)
            .group_by(column)
        )

    async def get_analytics_stats(self, link_id: int) -> AnalyticsStats:
        """Click totals and breakdowns for one link; empty stats for a link this owner does not have."""
        for_link = analytics.c.link_id == link_id

        total_rows, country_rows, device_rows, browser_rows, os_rows = await asyncio.gather(
            self._fetch(
                select(func.count(analytics.c.id).label("count"))
                .select_from(self._owned_clicks())
                .where(links.c.user_id == self._owner_id, for_link)
            ),
            self._fetch(
                select(analytics.c.country)
                .distinct()
                .select_from(self._owned_clicks())
                .where(links.c.user_id == self._owner_id, for_link, analytics.c.country.isnot(None))
                .order_by(analytics.c.country)
            ),
            self._fetch(self._click_breakdown(analytics.c.device, for_link)),
            self._fetch(self._click_breakdown(analytics.c.browser, for_link)),
            self._fetch(self._click_breakdown(analytics.c.os, for_link)),
        )

        return AnalyticsStats(
            total_clicks=total_rows[0]["count"] if total_rows else 0,
            unique_countries=[row["country"] for row in country_rows],
            device_breakdown=_breakdown(device_rows),
            browser_breakdown=_breakdown(browser_rows),
            os_breakdown=_breakdown(os_rows),
        )

    async def get_overview_stats(self) -> OverviewStats:
        """Owner-wide totals for the dashboard overview."""
        owner = links.c.user_id == self._owner_id
        owns_upload = uploads.c.user_id == self._owner_id

        (
            link_totals, click_rows, top_rows,
            device_rows, browser_rows, os_rows,
            upload_totals, upload_rows, file_type_rows,
        ) = await asyncio.gather(
            self._fetch(
                select(
                    func.count(links.c.id).label("total_links"),
                    func.coalesce(func.sum(links.c.clicks), 0).label("total_clicks"),
                ).where(owner)
            ),
            self._fetch(
                select(analytics.c.created_at)
                .select_from(self._owned_clicks())
                .where(owner)
                .order_by(analytics.c.created_at)
            ),
            self._fetch(
                select(links.c.slug, links.c.original_url, links.c.clicks)
                .where(owner)
                .order_by(links.c.clicks.desc(), links.c.id)
                .limit(TOP_LINKS_LIMIT)
            ),
            self._fetch(self._click_breakdown(analytics.c.device)),
            self._fetch(self._click_breakdown(analytics.c.browser)),
            self._fetch(self._click_breakdown(analytics.c.os)),
            self._fetch(
                select(
                    func.count(uploads.c.id).label("total_uploads"),
                    func.coalesce(func.sum(uploads.c.file_size), 0).label("total_bytes"),
                ).where(owns_upload)
            ),
            self._fetch(select(uploads.c.created_at).where(owns_upload).order_by(uploads.c.created_at)),
            self._fetch(
                select(uploads.c.file_type.label("value"), func.count(uploads.c.id).label("count"))
                .where(owns_upload)
                .group_by(uploads.c.file_type)
            ),
        )

        return OverviewStats(
            total_links=link_totals[0]["total_links"],
            total_clicks=link_totals[0]["total_clicks"],
            total_uploads=upload_totals[0]["total_uploads"],
            total_storage_bytes=upload_totals[0]["total_bytes"],
            click_timestamps=[to_datetime(row["created_at"]) for row in click_rows],
            upload_timestamps=[to_datetime(row["created_at"]) for row in upload_rows],
            top_links=[
                TopLinkEntry(slug=row["slug"], original_url=row["original_url"], clicks=row["clicks"] or 0)
                for row in top_rows
            ],
            device_breakdown=_breakdown(device_rows),
            browser_breakdown=_breakdown(browser_rows),
            os_breakdown=_breakdown(os_rows),
            file_type_breakdown=_breakdown(file_type_rows),
        )

    # ---- Folders -----------------------------------------------

    async def get_folders(self) -> List[FolderRead]:
        rows = await self._fetch(
            select(folders)
            .where(folders.c.user_id == self._owner_id)
            .order_by(folders.c.created_at.desc())
        )
        return [row_to_folder(row) for row in rows]

    async def get_folder_by_id(self, folder_id: str) -> Optional[FolderRead]:
        row = await self._fetch_one(
            select(folders).where(folders.c.id == folder_id, folders.c.user_id == self._owner_id).limit(1)
        )
        return row_to_folder(row) if row else None

    async def create_folder(self, data: FolderCreate) -> FolderRead:
        rows = await self._fetch(
            insert(folders)
            .values(
                id=str(uuid.uuid4()),
                user_id=self._owner_id,
                name=data.name,
                icon=data.icon or "folder",
                created_at=utcnow(),
            )
            .returning(*folders.c)
        )
        return row_to_folder(rows[0])

    async def update_folder(self, folder_id: str, data: FolderUpdate) -> Optional[FolderRead]:
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not fields:
            return await self.get_folder_by_id(folder_id)

        row = await self._fetch_one(
            update(folders)
            .where(folders.c.id == folder_id, folders.c.user_id == self._owner_id)
            .values(**fields)
            .returning(*folders.c)
        )
        return row_to_folder(row) if row else None

    async def delete_folder(self, folder_id: str) -> bool:
        """Delete a folder; its links stay and lose their folder."""
        async with self._executor.transaction() as tx:
            deleted = await tx.execute(
                delete(folders)
                .where(folders.c.id == folder_id, folders.c.user_id == self._owner_id)
                .returning(folders.c.id)
            )
            if not deleted:
                return False
            await tx.execute(
                update(links)
                .where(links.c.folder_id == folder_id, links.c.user_id == self._owner_id)
                .values(folder_id=None)
            )
        self._tracker.mark_dirty()
        return True

    async def _require_folder(self, folder_id: str) -> None:
        if await self.get_folder_by_id(folder_id) is None:
            raise ValidationError("Folder not found")

    # ---- Tags --------------------------------------------------

    async def get_tags(self) -> List[TagRead]:
        rows = await self._fetch(
            select(tags)
            .where(tags.c.user_id == self._owner_id)
            .order_by(tags.c.created_at.desc())
        )
        return [row_to_tag(row) for row in rows]

    async def get_tag_by_id(self, tag_id: str) -> Optional[TagRead]:
        row = await self._fetch_one(
            select(tags).where(tags.c.id == tag_id, tags.c.user_id == self._owner_id).limit(1)
        )
        return row_to_tag(row) if row else None

    async def create_tag(self, data: TagCreate) -> TagRead:
        name = self._check_tag_name(data.name)
        self._check_tag_color(data.color)

        rows = await self._fetch(
            insert(tags)
            .values(
                id=str(uuid.uuid4()),
                user_id=self._owner_id,
                name=name,
                color=data.color,
                created_at=utcnow(),
            )
            .returning(*tags.c)
        )
        return row_to_tag(rows[0])

    async def update_tag(self, tag_id: str, data: TagUpdate) -> Optional[TagRead]:
        fields = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "name" in fields:
            fields["name"] = self._check_tag_name(fields["name"])
        if "color" in fields:
            self._check_tag_color(fields["color"])
        if not fields:
            return await self.get_tag_by_id(tag_id)

        row = await self._fetch_one(
            update(tags)
            .where(tags.c.id == tag_id, tags.c.user_id == self._owner_id)
            .values(**fields)
            .returning(*tags.c)
        )
        return row_to_tag(row) if row else None

    async def delete_tag(self, tag_id: str) -> bool:
        """Delete a tag and every association that points at it."""
        async with self._executor.transaction() as tx:
            deleted = await tx.execute(
                delete(tags)
                .where(tags.c.id == tag_id, tags.c.user_id == self._owner_id)
                .returning(tags.c.id)
            )
            if not deleted:
                return False
            await tx.execute(delete(link_tags).where(link_tags.c.tag_id == tag_id))
        return True

    @staticmethod
    def _check_tag_name(name: str) -> str:
        cleaned = clean_tag_name(name)
        if cleaned is None:
            raise ValidationError("Tag name must be 1-30 characters")
        return cleaned

    @staticmethod
    def _check_tag_color(color: str) -> None:
        if not is_valid_tag_color(color):
            raise ValidationError(f"Invalid tag color: {color!r}")

    # ---- Link-tag associations --------------------------------

    async def get_link_tags(self) -> List[LinkTagRead]:
        """Associations on links owned by this owner."""
        rows = await self._fetch(
            select(link_tags.c.link_id, link_tags.c.tag_id)
            .where(link_tags.c.link_id.in_(self._owned_link_ids()))
            .order_by(link_tags.c.link_id, link_tags.c.tag_id)
        )
        return [row_to_link_tag(row) for row in rows]

    async def add_tag_to_link(self, link_id: int, tag_id: str) -> bool:
        """
        Associate a tag with a link when this owner owns both.

        Returns False without inserting if either side belongs to someone
        else or does not exist. Adding an existing pair is a no-op that
        still returns True.
        """
        tag_owned = select(tags.c.id).where(tags.c.id == tag_id, tags.c.user_id == self._owner_id)
        pair_exists = (
            select(link_tags.c.link_id)
            .where(link_tags.c.link_id == link_id, link_tags.c.tag_id == tag_id)
            .correlate(None)
        )

        async with self._executor.transaction() as tx:
            owned = await tx.execute(
                self._owned_link_ids(link_id).where(tag_owned.exists())
            )
            if not owned:
                return False

            await tx.execute(
                insert(link_tags).from_select(
                    ["link_id", "tag_id"],
                    select(literal(link_id, Integer), literal(tag_id, String)).where(~pair_exists.exists()),
                )
            )
        return True

    async def remove_tag_from_link(self, link_id: int, tag_id: str) -> bool:
        rows = await self._fetch(
            delete(link_tags)
            .where(
                and_(
                    link_tags.c.link_id == link_id,
                    link_tags.c.tag_id == tag_id,
                    link_tags.c.link_id.in_(self._owned_link_ids(link_id)),
                )
            )
            .returning(link_tags.c.link_id)
        )
        return bool(rows)

    # ---- Uploads -----------------------------------------------

    async def get_uploads(self) -> List[UploadRead]:
        rows = await self._fetch(
            select(uploads)
            .where(uploads.c.user_id == self._owner_id)
            .order_by(uploads.c.created_at.desc(), uploads.c.id.desc())
        )
        return [row_to_upload(row) for row in rows]

    async def create_upload(self, data: UploadCreate) -> UploadRead:
        rows = await self._fetch(
            insert(uploads)
            .values(
                user_id=self._owner_id,
                key=data.key,
                file_name=data.file_name,
                file_type=data.file_type,
                file_size=data.file_size,
                public_url=data.public_url,
                created_at=utcnow(),
            )
            .returning(*uploads.c)
        )
        return row_to_upload(rows[0])

    async def delete_upload(self, upload_id: int) -> bool:
        rows = await self._fetch(
            delete(uploads)
            .where(uploads.c.id == upload_id, uploads.c.user_id == self._owner_id)
            .returning(uploads.c.id)
        )
        return bool(rows)

    async def get_upload_key(self, upload_id: int) -> Optional[str]:
        """Storage key of an owned upload, for removing the object itself."""
        row = await self._fetch_one(
            select(uploads.c.key)
            .where(uploads.c.id == upload_id, uploads.c.user_id == self._owner_id)
            .limit(1)
        )
        return row["key"] if row else None

    # ---- Webhook -----------------------------------------------

    async def _upsert(self, update_statement: Executable, insert_statement: Executable) -> Row:
        """Update the owner's row, inserting it when missing."""
        row = await self._fetch_one(update_statement)
        if row is not None:
            return row
        try:
            rows = await self._fetch(insert_statement)
        except UniqueViolationError:
            # Lost an insert race for the same owner
            row = await self._fetch_one(update_statement)
            if row is None:
                raise
            return row
        return rows[0]

    async def get_webhook(self) -> Optional[WebhookRead]:
        row = await self._fetch_one(
            select(webhooks).where(webhooks.c.user_id == self._owner_id).limit(1)
        )
        return row_to_webhook(row) if row else None

    async def upsert_webhook(self, token: Optional[str] = None, rate_limit: int = RATE_LIMIT_DEFAULT) -> WebhookRead:
        """Create or replace this owner's webhook; a fresh token is generated when none is given."""
        if token is None:
            token = generate_webhook_token()
        if not token:
            raise ValidationError("Webhook token cannot be empty")
        self._check_rate_limit(rate_limit)

        row = await self._upsert(
            update(webhooks)
            .where(webhooks.c.user_id == self._owner_id)
            .values(token=token, rate_limit=rate_limit)
            .returning(*webhooks.c),
            insert(webhooks)
            .values(user_id=self._owner_id, token=token, rate_limit=rate_limit, created_at=utcnow())
            .returning(*webhooks.c),
        )
        return row_to_webhook(row)

    async def update_webhook_rate_limit(self, rate_limit: int) -> Optional[WebhookRead]:
        self._check_rate_limit(rate_limit)
        row = await self._fetch_one(
            update(webhooks)
            .where(webhooks.c.user_id == self._owner_id)
            .values(rate_limit=rate_limit)
            .returning(*webhooks.c)
        )
        return row_to_webhook(row) if row else None

    async def delete_webhook(self) -> bool:
        rows = await self._fetch(
            delete(webhooks).where(webhooks.c.user_id == self._owner_id).returning(webhooks.c.id)
        )
        return bool(rows)

    @staticmethod
    def _check_rate_limit(rate_limit: int) -> None:
        if not is_valid_rate_limit(rate_limit):
            raise ValidationError(f"Rate limit must be an integer between 1 and {RATE_LIMIT_MAX}")

    # ---- Settings ----------------------------------------------

    async def get_user_settings(self) -> Optional[UserSettingsRead]:
        row = await self._fetch_one(
            select(user_settings).where(user_settings.c.user_id == self._owner_id).limit(1)
        )
        return row_to_user_settings(row) if row else None

    async def upsert_preview_style(self, preview_style: str) -> UserSettingsRead:
        if not is_valid_preview_style(preview_style):
            raise ValidationError(f"Invalid preview style: {preview_style!r}")

        row = await self._upsert(
            update(user_settings)
            .where(user_settings.c.user_id == self._owner_id)
            .values(preview_style=preview_style)
            .returning(*user_settings.c),
            insert(user_settings)
            .values(user_id=self._owner_id, preview_style=preview_style)
            .returning(*user_settings.c),
        )
        return row_to_user_settings(row)

    async def get_backy_pull_key(self) -> Optional[str]:
        settings = await self.get_user_settings()
        return settings.backy_pull_key if settings else None

    async def upsert_backy_pull_key(self, key: Optional[str]) -> UserSettingsRead:
        """Set (or clear with None) the key that identifies this owner to the backup puller."""
        row = await self._upsert(
            update(user_settings)
            .where(user_settings.c.user_id == self._owner_id)
            .values(backy_pull_key=key)
            .returning(*user_settings.c),
            insert(user_settings)
            .values(user_id=self._owner_id, backy_pull_key=key)
            .returning(*user_settings.c),
        )
        return row_to_user_settings(row)

    # ---- Validation --------------------------------------------

    @staticmethod
    def _check_url(url: str) -> None:
        is_valid, error_msg = is_valid_url(url)
        if not is_valid:
            raise ValidationError(error_msg)
