"""Post-retrieval text processing."""

from metasearch.processing.html_cleaner import clean_html

__all__ = ["clean_html"]
