"""
Tech catalog collaborator.

Fetches the per-platform tech tree (and the platform list) from the
optimizer API, flattens the tree into a `(tech, module_id) -> record`
lookup, and caches results per key with at most one fetch in flight.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar
from urllib.parse import quote

import httpx

from constants import PLATFORMS_CACHE_KEY, TECH_API_BASE, TECH_API_TIMEOUT_S

T = TypeVar("T")

ModuleRecord = Dict[str, Any]
ModuleLookup = Dict[str, Dict[str, ModuleRecord]]


class CatalogFetchError(RuntimeError):
    pass


def flatten_tech_tree(tree: Dict[str, Any]) -> ModuleLookup:
    """Flatten `{category: [{key, modules: [...]}, ...]}` into `{tech: {module_id: record}}`."""
    lookup: ModuleLookup = {}
    for category, items in tree.items():
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                continue
            tech_key = item.get("key")
            if not isinstance(tech_key, str) or not tech_key:
                continue
            modules = lookup.setdefault(tech_key, {})
            for module in item.get("modules") or []:
                if isinstance(module, dict) and module.get("id") is not None:
                    modules[str(module["id"])] = module
    return lookup


class KeyedFetchCache(Generic[T]):
    """Per-key cache of async fetch results.

    A key is missing, pending (one shared task every caller awaits) or ready.
    Failed fetches are not remembered, so the next caller retries.
    """

    def __init__(self, fetcher: Callable[[str], Awaitable[T]]) -> None:
        self._fetcher = fetcher
        self._ready: Dict[str, T] = {}
        self._pending: Dict[str, "asyncio.Task[T]"] = {}

    def status(self, key: str) -> str:
        if key in self._ready:
            return "ready"
        if key in self._pending:
            return "pending"
        return "missing"

    async def get(self, key: str) -> T:
        if key in self._ready:
            return self._ready[key]
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key))
            self._pending[key] = task
        # Shielded so one cancelled caller does not cancel the shared fetch.
        return await asyncio.shield(task)

    async def _load(self, key: str) -> T:
        try:
            value = await self._fetcher(key)
        finally:
            self._pending.pop(key, None)
        self._ready[key] = value
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._ready.clear()
        else:
            self._ready.pop(key, None)


class TechCatalog:
    """HTTP client for `/tech_tree/{platform}` and `/platforms` with caching."""

    def __init__(
        self,
        api_base: str = TECH_API_BASE,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = TECH_API_TIMEOUT_S,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self._client = client
        self._timeout_s = timeout_s
        self.module_cache: KeyedFetchCache[ModuleLookup] = KeyedFetchCache(self._fetch_modules)
        self.platform_cache: KeyedFetchCache[Dict[str, Any]] = KeyedFetchCache(self._fetch_platforms)

    async def modules_for(self, ship_type: str) -> ModuleLookup:
        return await self.module_cache.get(ship_type)

    async def platforms(self) -> Dict[str, Any]:
        return await self.platform_cache.get(PLATFORMS_CACHE_KEY)

    async def _get_json(self, path: str) -> Any:
        url = f"{self.api_base}{path}"
        try:
            if self._client is not None:
                resp = await self._client.get(url, timeout=self._timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                    resp = await client.get(url)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logging.error("Tech catalog request %s failed: HTTP %s", url, exc.response.status_code)
            raise CatalogFetchError(f"HTTP {exc.response.status_code} fetching {url}") from exc
        except httpx.HTTPError as exc:
            logging.exception("Tech catalog request %s failed", url)
            raise CatalogFetchError(f"Failed to fetch {url}: {exc}") from exc
        except ValueError as exc:
            raise CatalogFetchError(f"Invalid JSON from {url}") from exc

    async def _fetch_modules(self, ship_type: str) -> ModuleLookup:
        data = await self._get_json(f"/tech_tree/{quote(ship_type, safe='')}")
        if not isinstance(data, dict):
            raise CatalogFetchError(f"tech tree for {ship_type!r} is not an object")
        lookup = flatten_tech_tree(data)
        logging.info("Loaded tech catalog for %s: %d techs", ship_type, len(lookup))
        return lookup

    async def _fetch_platforms(self, _key: str) -> Dict[str, Any]:
        data = await self._get_json("/platforms")
        if not isinstance(data, dict):
            raise CatalogFetchError("platform list is not an object")
        return data


def list_platform_keys(platforms: Dict[str, Any]) -> List[str]:
    return sorted(str(k) for k in platforms.keys())
