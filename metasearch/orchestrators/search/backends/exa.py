"""Semantic-tier backend: Exa neural search (paid)."""

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from metasearch.contracts.search_v1 import QueryFilters, SearchHit, Tier, TimeRange
from metasearch.core.config import config
from metasearch.orchestrators.search.backends._http import request_json, results_list, text_field
from metasearch.orchestrators.search.interface import SearchBackend

EXA_SEARCH_URL = "https://api.exa.ai/search"
_MAX_TEXT_CHARS = 1000

_TIME_RANGE_DAYS = {
    TimeRange.DAY: 1,
    TimeRange.WEEK: 7,
    TimeRange.MONTH: 31,
    TimeRange.YEAR: 365,
}


class ExaBackend(SearchBackend):
    def __init__(
        self,
        api_key: str | None = None,
        search_url: str = EXA_SEARCH_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self._api_key = api_key if api_key is not None else config.exa_api_key
        self._search_url = search_url
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

        body: dict[str, Any] = {
            "query": query,
            "type": "auto",
            "numResults": limit,
            "contents": {
                "text": {"maxCharacters": _MAX_TEXT_CHARS},
                "highlights": {"numSentences": 2},
            },
        }
        if filters is not None and filters.time_range:
            since = datetime.now(timezone.utc) - timedelta(
                days=_TIME_RANGE_DAYS[filters.time_range]
            )
            body["startPublishedDate"] = since.strftime("%Y-%m-%dT%H:%M:%S.000Z")

        data = await request_json(
            self.get_source_name(),
            "POST",
            self._search_url,
            client=self._client,
            timeout=self._timeout,
            headers={"x-api-key": self._api_key},
            json=body,
        )

        source = self.get_source_name()
        hits: list[SearchHit] = []
        for item in results_list(data, source)[:limit]:
            url = text_field(item, "url", source)
            if not url:
                continue
            highlights = item.get("highlights")
            snippet = None
            if isinstance(highlights, list) and highlights:
                snippet = " ".join(str(h) for h in highlights)
            hits.append(
                SearchHit(
                    title=text_field(item, "title", source) or "No Title",
                    url=url,
                    snippet=snippet or text_field(item, "summary", source) or None,
                    content=text_field(item, "text", source) or None,
                    engine="exa",
                    tier=Tier.SEMANTIC,
                )
            )
        return hits

    def get_source_name(self) -> str:
        return "exa"

    def get_tier(self) -> Tier:
        return Tier.SEMANTIC
