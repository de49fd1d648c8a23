from metasearch.orchestrators.search.backends.duckduckgo import DuckDuckGoBackend
from metasearch.orchestrators.search.backends.exa import ExaBackend
from metasearch.orchestrators.search.backends.searxng import SearxngBackend
from metasearch.orchestrators.search.backends.tavily import TavilyBackend

__all__ = [
    "DuckDuckGoBackend",
    "ExaBackend",
    "SearxngBackend",
    "TavilyBackend",
]
