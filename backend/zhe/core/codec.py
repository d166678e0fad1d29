"""
Row codec: column-name-keyed rows <-> typed entities.

Pure functions, no I/O. Rows come from the query executor with the
store's snake_case column names; timestamps may arrive as datetimes
(naive ones are UTC), epoch milliseconds or ISO strings depending on
the backend.
"""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from ..schemas import (
    AnalyticsRead,
    FolderRead,
    KVLinkData,
    LinkRead,
    LinkTagRead,
    TagRead,
    UploadRead,
    UserSettingsRead,
    WebhookRead,
)

Row = Mapping[str, Any]

DEFAULT_FOLDER_ICON = "folder"
DEFAULT_PREVIEW_STYLE = "favicon"
DEFAULT_RATE_LIMIT = 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """Normalize a stored timestamp to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        return to_datetime(datetime.fromisoformat(value))
    raise TypeError(f"Unsupported timestamp value: {value!r}")


def to_epoch_ms(value: Union[datetime, int, float, str, None]) -> Optional[int]:
    dt = to_datetime(value)
    if dt is None:
        return None
    return int(dt.timestamp() * 1000)


def row_to_link(row: Row) -> LinkRead:
    return LinkRead(
        id=row["id"],
        user_id=row["user_id"],
        folder_id=row.get("folder_id"),
        original_url=row["original_url"],
        slug=row["slug"],
        is_custom=bool(row.get("is_custom")),
        expires_at=to_datetime(row.get("expires_at")),
        clicks=row.get("clicks") or 0,
        meta_title=row.get("meta_title"),
        meta_description=row.get("meta_description"),
        meta_favicon=row.get("meta_favicon"),
        screenshot_url=row.get("screenshot_url"),
        note=row.get("note"),
        created_at=to_datetime(row["created_at"]),
    )


def row_to_analytics(row: Row) -> AnalyticsRead:
    return AnalyticsRead(
        id=row["id"],
        link_id=row["link_id"],
        country=row.get("country"),
        city=row.get("city"),
        device=row.get("device"),
        browser=row.get("browser"),
        os=row.get("os"),
        referer=row.get("referer"),
        created_at=to_datetime(row["created_at"]),
    )


def row_to_folder(row: Row) -> FolderRead:
    return FolderRead(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        icon=row.get("icon") or DEFAULT_FOLDER_ICON,
        created_at=to_datetime(row["created_at"]),
    )


def row_to_tag(row: Row) -> TagRead:
    return TagRead(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        color=row["color"],
        created_at=to_datetime(row["created_at"]),
    )


def row_to_link_tag(row: Row) -> LinkTagRead:
    return LinkTagRead(link_id=row["link_id"], tag_id=row["tag_id"])


def row_to_upload(row: Row) -> UploadRead:
    return UploadRead(
        id=row["id"],
        user_id=row["user_id"],
        key=row["key"],
        file_name=row["file_name"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        public_url=row["public_url"],
        created_at=to_datetime(row["created_at"]),
    )


def row_to_webhook(row: Row) -> WebhookRead:
    rate_limit = row.get("rate_limit")
    return WebhookRead(
        id=row["id"],
        user_id=row["user_id"],
        token=row["token"],
        rate_limit=DEFAULT_RATE_LIMIT if rate_limit is None else rate_limit,
        created_at=to_datetime(row["created_at"]),
    )


def row_to_user_settings(row: Row) -> UserSettingsRead:
    return UserSettingsRead(
        user_id=row["user_id"],
        preview_style=row.get("preview_style") or DEFAULT_PREVIEW_STYLE,
        backy_pull_key=row.get("backy_pull_key"),
    )


def row_to_kv_data(row: Row) -> KVLinkData:
    """Project a link row onto the edge cache payload."""
    return KVLinkData(
        id=row["id"],
        original_url=row["original_url"],
        expires_at=to_epoch_ms(row.get("expires_at")),
    )
