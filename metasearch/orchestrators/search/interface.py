"""Standard interfaces for search providers used by the backend adapter.

Providers return SearchHit lists and signal failure by raising BackendError.
"""

from abc import ABC, abstractmethod

from metasearch.contracts.search_v1 import QueryFilters, SearchHit, Tier


class SearchBackend(ABC):
    """A provider that answers free-text queries."""

    @abstractmethod
    async def search(
        self,
        query: str,
        limit: int = 10,
        filters: QueryFilters | None = None,
    ) -> list[SearchHit]:
        """Execute search and return hits, or raise BackendError."""

    @abstractmethod
    def get_source_name(self) -> str:
        """Canonical provider identifier."""

    @abstractmethod
    def get_tier(self) -> Tier:
        """Tier this provider serves."""


class ExtractionBackend(ABC):
    """A provider that extracts full content from known URLs. Never sees query text."""

    @abstractmethod
    async def extract(self, urls: list[str]) -> list[SearchHit]:
        """Fetch and extract content for the given URLs, or raise BackendError."""

    @abstractmethod
    def get_source_name(self) -> str:
        """Canonical provider identifier."""

    def get_tier(self) -> Tier:
        return Tier.DEEP_EXTRACT
