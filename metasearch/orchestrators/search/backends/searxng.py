"""Free-tier backend: SearXNG meta-search aggregator."""

import logging

import httpx

from metasearch.contracts.search_v1 import QueryFilters, SearchHit, Tier
from metasearch.core.config import config
from metasearch.orchestrators.search.backends._http import request_json, results_list, text_field
from metasearch.orchestrators.search.interface import SearchBackend

logger = logging.getLogger(__name__)


class SearxngBackend(SearchBackend):
    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        search_url = base_url or config.searxng_url or ""
        self._base_url = search_url.rstrip("/") if search_url else ""
        if self._base_url and not self._base_url.endswith("/search"):
            self._base_url = self._base_url + "/search"
        self._client = client
        self._timeout = timeout or config.request_timeout_secs

    async def search(
        self,
        query: str,
        limit: int = 10,
        filters: QueryFilters | None = None,
    ) -> list[SearchHit]:
        if not self._base_url or not query.strip():
            return []

        params: dict[str, str | int] = {"q": query, "format": "json"}
        if filters is not None:
            if filters.category:
                params["categories"] = filters.category
            if filters.language:
                params["language"] = filters.language
            if filters.time_range:
                params["time_range"] = str(filters.time_range)

        data = await request_json(
            self.get_source_name(),
            "GET",
            self._base_url,
            client=self._client,
            timeout=self._timeout,
            params=params,
        )

        unresponsive = data.get("unresponsive_engines") or []
        if unresponsive:
            logger.warning("SearXNG: unresponsive engines %s", unresponsive)

        source = self.get_source_name()
        hits: list[SearchHit] = []
        for item in results_list(data, source)[:limit]:
            url = text_field(item, "url", source)
            if not url:
                continue
            engines = item.get("engines")
            if isinstance(engines, list) and engines:
                engine = ",".join(str(e) for e in engines)
            else:
                engine = str(item.get("engine") or "searxng")
            hits.append(
                SearchHit(
                    title=text_field(item, "title", source) or "No Title",
                    url=url,
                    snippet=text_field(item, "content", source) or None,
                    content=None,
                    engine=engine,
                    tier=Tier.FREE,
                )
            )
        return hits

    async def health_check(self) -> bool:
        """True when the aggregator answers a trivial JSON query with a 2xx."""
        if not self._base_url:
            return False
        params = {"q": "test", "format": "json"}
        try:
            if self._client is None:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._base_url, params=params)
            else:
                response = await self._client.get(
                    self._base_url, params=params, timeout=self._timeout
                )
        except httpx.HTTPError as e:
            logger.warning("SearXNG health check failed: %s", e)
            return False
        if not response.is_success:
            logger.warning("SearXNG health check returned HTTP %s", response.status_code)
            return False
        return True

    def get_source_name(self) -> str:
        return "searxng"

    def get_tier(self) -> Tier:
        return Tier.FREE
