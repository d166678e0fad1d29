"""
Cloudflare KV REST client for the edge redirect cache.

Stores the minimal ``{id, originalUrl, expiresAt}`` payload per slug so an
edge worker can resolve redirects without touching the database.

- Every call is fire-and-forget safe: failures are logged, never raised.
- Without account id, namespace id and API token (local dev, tests) every
  write is a silent no-op and every read returns None.
- Every request carries a timeout; bulk writes get three times as long.
"""

import logging
from typing import List, Optional, Sequence
from urllib.parse import quote

import httpx

from ..config import get_settings
from ..schemas import BulkPutResult, KVEntry, KVLinkData
from .dirty import DirtyTracker, get_tracker

logger = logging.getLogger(__name__)

KV_TIMEOUT_SECONDS = 3.0
KV_BULK_BATCH_SIZE = 10_000
KV_API_BASE = "https://api.cloudflare.com/client/v4"


class KVClient:
    def __init__(
        self,
        account_id: Optional[str],
        namespace_id: Optional[str],
        api_token: Optional[str],
        api_base: str = KV_API_BASE,
        timeout: float = KV_TIMEOUT_SECONDS,
        batch_size: int = KV_BULK_BATCH_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tracker: Optional[DirtyTracker] = None,
    ):
        self.account_id = account_id
        self.namespace_id = namespace_id
        self.api_token = api_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.bulk_timeout = timeout * 3
        self.batch_size = batch_size
        self._transport = transport
        self._tracker = tracker

    @property
    def is_configured(self) -> bool:
        return bool(self.account_id and self.namespace_id and self.api_token)

    @property
    def tracker(self) -> DirtyTracker:
        return self._tracker or get_tracker()

    def _namespace_url(self) -> str:
        return f"{self.api_base}/accounts/{self.account_id}/storage/kv/namespaces/{self.namespace_id}"

    def _value_url(self, key: str) -> str:
        return f"{self._namespace_url()}/values/{quote(key, safe='')}"

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_token}"},
        )

    async def put_link(self, slug: str, data: KVLinkData) -> bool:
        """Write (or overwrite) one slug. Returns True if the cache accepted it."""
        if not self.is_configured:
            return False

        self.tracker.mark_dirty()
        try:
            async with self._client(self.timeout) as client:
                response = await client.put(self._value_url(slug), json=data.to_wire())
        except httpx.HTTPError as e:
            logger.error("KV put error for slug %r: %s", slug, e)
            return False

        if response.is_success:
            return True
        logger.error("KV put failed for slug %r: %s %s", slug, response.status_code, response.text)
        return False

    async def delete_link(self, slug: str) -> bool:
        """Remove one slug. Returns True if the cache accepted the delete."""
        if not self.is_configured:
            return False

        self.tracker.mark_dirty()
        try:
            async with self._client(self.timeout) as client:
                response = await client.delete(self._value_url(slug))
        except httpx.HTTPError as e:
            logger.error("KV delete error for slug %r: %s", slug, e)
            return False

        if response.is_success:
            return True
        logger.error("KV delete failed for slug %r: %s %s", slug, response.status_code, response.text)
        return False

    async def get_link(self, slug: str) -> Optional[KVLinkData]:
        """Read one slug. None when missing, unreadable or unreachable."""
        if not self.is_configured:
            return None

        try:
            async with self._client(self.timeout) as client:
                response = await client.get(self._value_url(slug))
            if not response.is_success:
                return None
            return KVLinkData.model_validate(response.json())
        except httpx.HTTPError as e:
            logger.error("KV get error for slug %r: %s", slug, e)
            return None
        except ValueError as e:
            logger.warning("KV value for slug %r is malformed: %s", slug, e)
            return None

    async def bulk_put_links(self, entries: Sequence[KVEntry]) -> BulkPutResult:
        """
        Write many slugs, ``batch_size`` per request, one request after another.

        A batch either lands whole or fails whole, so the counts are exact
        per entry even when only some batches succeed.
        """
        result = BulkPutResult()
        if not self.is_configured or not entries:
            return result

        url = f"{self._namespace_url()}/bulk"
        async with self._client(self.bulk_timeout) as client:
            for batch_index, start in enumerate(range(0, len(entries), self.batch_size)):
                batch = entries[start:start + self.batch_size]
                payload = _bulk_payload(batch)

                try:
                    response = await client.put(url, json=payload)
                except httpx.HTTPError as e:
                    logger.error("KV bulk put error (batch %d): %s", batch_index, e)
                    result.failed += len(batch)
                    continue

                if response.is_success:
                    result.success += len(batch)
                else:
                    logger.error(
                        "KV bulk put failed (batch %d): %s %s",
                        batch_index, response.status_code, response.text,
                    )
                    result.failed += len(batch)

        return result


def _bulk_payload(batch: Sequence[KVEntry]) -> List[dict]:
    return [
        {"key": entry.slug, "value": entry.data.model_dump_json(by_alias=True)}
        for entry in batch
    ]


_client: Optional[KVClient] = None


def build_kv_client() -> KVClient:
    settings = get_settings()
    return KVClient(
        account_id=settings.CLOUDFLARE_ACCOUNT_ID,
        namespace_id=settings.CLOUDFLARE_KV_NAMESPACE_ID,
        api_token=settings.CLOUDFLARE_API_TOKEN,
        api_base=settings.KV_API_BASE,
        timeout=settings.KV_TIMEOUT_SECONDS,
        batch_size=settings.KV_BULK_BATCH_SIZE,
    )


def get_kv_client() -> KVClient:
    global _client
    if _client is None:
        _client = build_kv_client()
    return _client


def set_kv_client(client: Optional[KVClient]) -> None:
    """Replace the process-wide client; None rebuilds it from settings on next use."""
    global _client
    _client = client


def is_kv_configured() -> bool:
    return get_kv_client().is_configured


async def kv_put_link(slug: str, data: KVLinkData) -> bool:
    return await get_kv_client().put_link(slug, data)


async def kv_delete_link(slug: str) -> bool:
    return await get_kv_client().delete_link(slug)


async def kv_get_link(slug: str) -> Optional[KVLinkData]:
    return await get_kv_client().get_link(slug)


async def kv_bulk_put_links(entries: Sequence[KVEntry]) -> BulkPutResult:
    return await get_kv_client().bulk_put_links(entries)
