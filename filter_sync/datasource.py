"""Data layer for filtered catalog pages.

Provides:
- AbstractDataSource: the fetch / prefetch / invalidate contract the orchestrator drives
- CachedDataSource: TTL cache, in-flight de-duplication and prefetch bookkeeping over a backend
- InMemoryCatalog: backend that filters, sorts and pages a list of product dicts
"""

from __future__ import annotations

import asyncio
import json
import math
import time
from importlib import resources
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import DEFAULT_PAGE_SIZE, FILTER_CACHE_TTL, MAX_PAGE_SIZE
from .hierarchy import CategoryHierarchy
from .logger import get_logger
from .models import RequestParams, ResultMeta, ResultPage

logger = get_logger("datasource")

CacheKey = Tuple[Any, ...]


class AbstractDataSource:
    """Interface the fetch orchestrator talks to."""

    async def fetch(self, params: RequestParams) -> ResultPage:
        #Return one page of results for params
        raise NotImplementedError

    async def prefetch(self, params: RequestParams) -> None:
        #Warm whatever cache backs fetch(); failures must not propagate
        raise NotImplementedError

    def invalidate(self, params: Optional[RequestParams] = None) -> None:
        #Forget cached results for params, or for everything when params is None
        raise NotImplementedError


class AbstractCatalogClient:
    """Interface for catalog backends."""

    async def search(self, params: RequestParams) -> ResultPage:
        #Run one filtered, sorted, paged query
        raise NotImplementedError


class CachedDataSource(AbstractDataSource):
    """Caches backend pages for ``ttl`` seconds and shares identical in-flight requests."""

    def __init__(
        self,
        client: AbstractCatalogClient,
        ttl: float = FILTER_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.ttl = ttl
        self._clock = clock
        self._cache: Dict[CacheKey, Tuple[float, ResultPage]] = {}
        self._inflight: Dict[CacheKey, asyncio.Task] = {}
        self._prefetching: Dict[CacheKey, asyncio.Task] = {}

    def _cleanup_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._cache.items() if expires_at <= now]:
            del self._cache[key]

    def cached(self, params: RequestParams) -> Optional[ResultPage]:
        entry = self._cache.get(params.cache_key())
        if entry and entry[0] > self._clock():
            return entry[1]
        return None

    async def fetch(self, params: RequestParams) -> ResultPage:
        self._cleanup_expired()
        key = params.cache_key()

        hit = self.cached(params)
        if hit is not None:
            logger.debug("Cache HIT for page %d", params.page)
            return hit

        task = self._inflight.get(key)
        if task is not None:
            logger.debug("Joining in-flight request for page %d", params.page)
        else:
            task = asyncio.create_task(self._load(key, params))
            self._inflight[key] = task
        # A cancelled caller must not cancel the shared request
        return await asyncio.shield(task)

    async def _load(self, key: CacheKey, params: RequestParams) -> ResultPage:
        current = asyncio.current_task()
        try:
            page = await self.client.search(params)
            # Invalidated while in flight: hand the result back but do not cache it
            if self._inflight.get(key) is current:
                self._cache[key] = (self._clock() + self.ttl, page)
            logger.debug("Fetched page %d from backend (%d items)", params.page, len(page.data))
            return page
        finally:
            if self._inflight.get(key) is current:
                del self._inflight[key]

    async def prefetch(self, params: RequestParams) -> None:
        self._cleanup_expired()
        key = params.cache_key()
        if self.cached(params) is not None or key in self._prefetching:
            return

        self._prefetching[key] = asyncio.current_task()
        try:
            await self.fetch(params)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Prefetch of page %d failed: %s", params.page, e)
        finally:
            if self._prefetching.get(key) is asyncio.current_task():
                del self._prefetching[key]

    def invalidate(self, params: Optional[RequestParams] = None) -> None:
        if params is None:
            self._cache.clear()
            self._inflight.clear()
            for task in self._prefetching.values():
                task.cancel()
            self._prefetching.clear()
            return

        key = params.cache_key()
        self._cache.pop(key, None)
        self._inflight.pop(key, None)
        task = self._prefetching.pop(key, None)
        if task is not None:
            task.cancel()


def _sort_key(sort: Optional[str]) -> Tuple[Callable[[Mapping[str, Any]], Any], bool]:
    # (key, reverse); ties keep catalog order because sorted() is stable
    if sort == "price_asc":
        return (lambda p: p.get("price", 0)), False
    if sort == "price_desc":
        return (lambda p: p.get("price", 0)), True
    if sort == "date_asc":
        return (lambda p: p.get("createdAt", "")), False
    if sort == "views_desc":
        return (lambda p: p.get("viewCount", 0)), True
    if sort == "sales_desc":
        return (lambda p: p.get("salesCount", 0)), True
    return (lambda p: p.get("createdAt", "")), True


class InMemoryCatalog(AbstractCatalogClient):
    """Answers data-layer requests from a list of product dicts.

    Product shape: {"id", "name", "price", "categoryId", "attributes": {key: [values]},
    "createdAt", "viewCount", "salesCount"}.
    """

    def __init__(self, products: Iterable[Mapping[str, Any]]) -> None:
        self.products: List[Dict[str, Any]] = [dict(p) for p in products]
        self.calls = 0

    def _matches(self, p: Mapping[str, Any], params: RequestParams) -> bool:
        price = p.get("price", 0)
        if params.price_min is not None and price < params.price_min:
            return False
        if params.price_max is not None and price > params.price_max:
            return False
        if params.category_ids and p.get("categoryId") not in params.category_ids:
            return False
        # AND across attribute keys, OR within one key
        product_attrs = p.get("attributes") or {}
        for key, values in params.attributes:
            if not set(product_attrs.get(key) or []) & set(values):
                return False
        if params.search and params.search.lower() not in (p.get("name") or "").lower():
            return False
        return True

    async def search(self, params: RequestParams) -> ResultPage:
        self.calls += 1
        current_page = params.page if params.page >= 1 else 1
        size = params.page_size if 0 < params.page_size <= MAX_PAGE_SIZE else DEFAULT_PAGE_SIZE

        filtered = [p for p in self.products if self._matches(p, params)]
        key, reverse = _sort_key(params.sort)
        ordered = sorted(filtered, key=key, reverse=reverse)

        start = (current_page - 1) * size
        total_pages = max(1, math.ceil(len(filtered) / size))
        meta = ResultMeta(
            total=len(self.products),
            filtered=len(filtered),
            page=current_page,
            page_size=size,
            total_pages=total_pages,
            has_next=current_page < total_pages,
            has_prev=current_page > 1,
        )
        return ResultPage(data=ordered[start:start + size], meta=meta)


def load_sample_catalog() -> Tuple[InMemoryCatalog, CategoryHierarchy]:
    """Bundled demo products and category tree."""
    raw = resources.files("filter_sync").joinpath("data/sample_catalog.json").read_text(encoding="utf-8")
    payload = json.loads(raw)
    return InMemoryCatalog(payload["products"]), CategoryHierarchy.from_dicts(payload["categories"])
