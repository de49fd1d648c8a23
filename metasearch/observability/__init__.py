"""Observability: LangSmith tracing (optional, env-controlled)."""

from metasearch.observability.langsmith import flush, get_client, traceable

__all__ = ["traceable", "flush", "get_client"]
