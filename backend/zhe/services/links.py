"""
Public (unscoped) link queries.

These intentionally take no owner: the redirect path resolves slugs for
anonymous visitors, the sync reads every link, and the webhook route
finds its owner from the token. Anything that reads or writes one
owner's data belongs in ScopedRepository instead; the link actions at
the bottom wrap it only to keep the edge cache in step.
"""

import logging
from datetime import datetime
from functools import partial
from typing import List, Optional

from sqlalchemy import func, insert, select, update

from ..core.codec import row_to_analytics, row_to_folder, row_to_link, row_to_webhook, to_epoch_ms, utcnow
from ..core.exceptions import SlugConflictError, ValidationError
from ..core.scoped import ScopedRepository
from ..core.shortener import generate_unique_slug, sanitize_slug
from ..database import QueryExecutor, Row, get_executor
from ..models import Analytics, Folder, Link, Webhook
from ..schemas import (
    AnalyticsRead,
    ClickEvent,
    FolderRead,
    KVLinkData,
    LinkCreate,
    LinkRead,
    LinkUpdate,
    WebhookRead,
)
from ..utils.validators import is_valid_url
from .kv_client import kv_delete_link, kv_put_link

logger = logging.getLogger(__name__)

links = Link.__table__
analytics = Analytics.__table__
folders = Folder.__table__
webhooks = Webhook.__table__


async def get_link_by_slug(slug: str, executor: Optional[QueryExecutor] = None) -> Optional[LinkRead]:
    """Get a link by slug, whoever owns it."""
    executor = executor or get_executor()
    rows = await executor.execute(select(links).where(links.c.slug == slug).limit(1))
    return row_to_link(rows[0]) if rows else None


async def slug_exists(slug: str, executor: Optional[QueryExecutor] = None) -> bool:
    executor = executor or get_executor()
    rows = await executor.execute(select(links.c.id).where(links.c.slug == slug).limit(1))
    return bool(rows)


async def get_link_by_user_and_url(
    user_id: str, url: str, executor: Optional[QueryExecutor] = None
) -> Optional[LinkRead]:
    """Existing link for this destination, so the webhook route can answer idempotently."""
    executor = executor or get_executor()
    rows = await executor.execute(
        select(links).where(links.c.user_id == user_id, links.c.original_url == url).limit(1)
    )
    return row_to_link(rows[0]) if rows else None


async def record_click(event: ClickEvent, executor: Optional[QueryExecutor] = None) -> AnalyticsRead:
    """Store one click and bump the link's counter in the same transaction."""
    executor = executor or get_executor()
    async with executor.transaction() as tx:
        rows = await tx.execute(
            insert(analytics)
            .values(
                link_id=event.link_id,
                country=event.country,
                city=event.city,
                device=event.device,
                browser=event.browser,
                os=event.os,
                referer=event.referer,
                created_at=utcnow(),
            )
            .returning(*analytics.c)
        )
        await tx.execute(
            update(links).where(links.c.id == event.link_id).values(clicks=links.c.clicks + 1)
        )
    return row_to_analytics(rows[0])


async def get_all_links_for_kv(executor: Optional[QueryExecutor] = None) -> List[Row]:
    """Every link, reduced to the columns the edge cache payload needs."""
    executor = executor or get_executor()
    return await executor.execute(
        select(links.c.id, links.c.slug, links.c.original_url, links.c.expires_at).order_by(links.c.id)
    )


async def get_webhook_by_token(token: str, executor: Optional[QueryExecutor] = None) -> Optional[WebhookRead]:
    executor = executor or get_executor()
    rows = await executor.execute(select(webhooks).where(webhooks.c.token == token).limit(1))
    return row_to_webhook(rows[0]) if rows else None


async def get_folder_by_user_and_name(
    user_id: str, name: str, executor: Optional[QueryExecutor] = None
) -> Optional[FolderRead]:
    """Case-insensitive folder lookup; the webhook route addresses folders by name."""
    executor = executor or get_executor()
    rows = await executor.execute(
        select(folders)
        .where(folders.c.user_id == user_id, func.lower(folders.c.name) == name.lower())
        .limit(1)
    )
    return row_to_folder(rows[0]) if rows else None


async def shorten_link(
    repo: ScopedRepository,
    original_url: str,
    custom_slug: Optional[str] = None,
    folder_id: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> LinkRead:
    """
    Create a short link for the repository's owner.

    Uses the custom slug when given (trimmed and lowercased), otherwise
    picks a random free one. The new slug is pushed to the edge cache
    right away; a cache failure only leaves it for the next full sync.

    Raises:
        ValidationError: bad URL or custom slug
        SlugConflictError: the custom slug is already taken
    """
    is_valid, error_msg = is_valid_url(original_url)
    if not is_valid:
        raise ValidationError(error_msg)

    if custom_slug:
        slug = sanitize_slug(custom_slug)
        if slug is None:
            raise ValidationError("Invalid slug format or reserved word")
        if await slug_exists(slug, repo.executor):
            raise SlugConflictError(slug)
    else:
        slug = await generate_unique_slug(partial(slug_exists, executor=repo.executor))

    link = await repo.create_link(
        LinkCreate(
            original_url=original_url,
            slug=slug,
            is_custom=bool(custom_slug),
            folder_id=folder_id,
            expires_at=expires_at,
        )
    )
    logger.info("Created link %s -> %s", link.slug, link.original_url)

    await _cache_link(link)
    return link


async def edit_link(repo: ScopedRepository, link_id: int, data: LinkUpdate) -> Optional[LinkRead]:
    """
    Update one of the owner's links and bring the edge cache in line.

    A renamed slug is dropped from the cache before the new one is written,
    so the old short URL stops resolving at the edge.
    """
    before = await repo.get_link_by_id(link_id)
    if before is None:
        return None

    link = await repo.update_link(link_id, data)
    if link is None:
        return None

    if link.slug != before.slug:
        await kv_delete_link(before.slug)
    if (link.slug, link.original_url, link.expires_at) != (before.slug, before.original_url, before.expires_at):
        await _cache_link(link)
    return link


async def remove_link(repo: ScopedRepository, link_id: int) -> bool:
    """Delete one of the owner's links and evict its slug from the edge cache."""
    link = await repo.get_link_by_id(link_id)
    if link is None:
        return False
    if not await repo.delete_link(link_id):
        return False

    logger.info("Deleted link %s", link.slug)
    await kv_delete_link(link.slug)
    return True


async def _cache_link(link: LinkRead) -> bool:
    return await kv_put_link(
        link.slug,
        KVLinkData(
            id=link.id,
            original_url=link.original_url,
            expires_at=to_epoch_ms(link.expires_at),
        ),
    )
