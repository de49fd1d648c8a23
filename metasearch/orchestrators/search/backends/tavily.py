"""Deep-extraction backend: Tavily Extract (paid). Only ever receives candidate URLs."""

import logging

import httpx

from metasearch.contracts.search_v1 import SearchHit, Tier
from metasearch.core.config import config
from metasearch.orchestrators.search.backends._http import request_json, results_list, text_field
from metasearch.orchestrators.search.interface import ExtractionBackend

logger = logging.getLogger(__name__)

TAVILY_EXTRACT_URL = "https://api.tavily.com/extract"


def _title_from_content(content: str, url: str) -> str:
    for line in content.splitlines():
        line = line.strip().lstrip("#").strip()
        if line:
            return line[:120]
    return url


class TavilyBackend(ExtractionBackend):
    def __init__(
        self,
        api_key: str | None = None,
        extract_url: str = TAVILY_EXTRACT_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self._api_key = api_key if api_key is not None else config.tavily_api_key
        self._extract_url = extract_url
        self._client = client
        self._timeout = timeout or config.request_timeout_secs

    async def extract(self, urls: list[str]) -> list[SearchHit]:
        urls = [u for u in urls if u and u.strip()]
        if not urls:
            return []

        data = await request_json(
            self.get_source_name(),
            "POST",
            self._extract_url,
            client=self._client,
            timeout=self._timeout,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"urls": urls, "extract_depth": "advanced"},
        )

        failed = data.get("failed_results") or []
        if failed:
            logger.warning("Tavily: %s URL(s) failed extraction", len(failed))

        source = self.get_source_name()
        hits: list[SearchHit] = []
        for item in results_list(data, source):
            url = text_field(item, "url", source)
            content = text_field(item, "raw_content", source)
            if not url or not content.strip():
                continue
            hits.append(
                SearchHit(
                    title=text_field(item, "title", source) or _title_from_content(content, url),
                    url=url,
                    snippet=None,
                    content=content,
                    engine="tavily",
                    tier=Tier.DEEP_EXTRACT,
                )
            )
        return hits

    def get_source_name(self) -> str:
        return "tavily"
