"""Free-tier backend: DuckDuckGo Instant Answer API (no key required)."""

from typing import Any

import httpx

from metasearch.contracts.search_v1 import QueryFilters, SearchHit, Tier
from metasearch.core.config import config
from metasearch.orchestrators.search.backends._http import request_json, text_field
from metasearch.orchestrators.search.interface import SearchBackend

DUCKDUCKGO_API_URL = "https://api.duckduckgo.com/"


def _flatten_topics(topics: Any) -> list[dict[str, Any]]:
    """RelatedTopics mixes plain topics with named groups that nest their own Topics."""
    flat: list[dict[str, Any]] = []
    if not isinstance(topics, list):
        return flat
    for topic in topics:
        if not isinstance(topic, dict):
            continue
        if isinstance(topic.get("Topics"), list):
            flat.extend(_flatten_topics(topic["Topics"]))
        elif topic.get("Text"):
            flat.append(topic)
    return flat


class DuckDuckGoBackend(SearchBackend):
    def __init__(
        self,
        api_url: str = DUCKDUCKGO_API_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self._api_url = api_url
        self._client = client
        self._timeout = timeout or config.request_timeout_secs

    async def search(
        self,
        query: str,
        limit: int = 10,
        filters: QueryFilters | None = None,
    ) -> list[SearchHit]:
        if not query.strip():
            return []

        data = await request_json(
            self.get_source_name(),
            "GET",
            self._api_url,
            client=self._client,
            timeout=self._timeout,
            params={"q": query, "format": "json", "no_html": 1, "skip_disambig": 1},
        )

        source = self.get_source_name()
        hits: list[SearchHit] = []
        abstract = text_field(data, "Abstract", source).strip()
        if abstract:
            hits.append(
                SearchHit(
                    title=text_field(data, "Heading", source) or "DuckDuckGo Result",
                    url=text_field(data, "AbstractURL", source),
                    snippet=abstract,
                    engine="duckduckgo",
                    tier=Tier.FREE,
                )
            )

        for topic in _flatten_topics(data.get("RelatedTopics")):
            if len(hits) >= limit:
                break
            text = text_field(topic, "Text", source)
            hits.append(
                SearchHit(
                    title=text.split(" - ")[0],
                    url=text_field(topic, "FirstURL", source),
                    snippet=text,
                    engine="duckduckgo",
                    tier=Tier.FREE,
                )
            )
        return hits[:limit]

    def get_source_name(self) -> str:
        return "duckduckgo"

    def get_tier(self) -> Tier:
        return Tier.FREE
