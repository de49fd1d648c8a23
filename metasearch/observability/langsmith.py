"""LangSmith tracing integration.

Tracing is off unless LANGSMITH_TRACING=true; when off, `traceable` leaves the
decorated function untouched.
"""

from __future__ import annotations

import atexit
import os
from collections.abc import Callable
from typing import Any

from langsmith import Client as LangSmithClient
from langsmith import traceable as _ls_traceable

_ENABLED = os.getenv("LANGSMITH_TRACING", "").strip().lower() == "true"
_PROJECT = os.getenv("LANGSMITH_PROJECT", "metasearch")

_client: LangSmithClient | None = None


def get_client() -> LangSmithClient | None:
    global _client
    if not _ENABLED:
        return None
    if _client is None:
        _client = LangSmithClient()
    return _client


def traceable(
    name: str | None = None,
    run_type: str = "chain",
    **kwargs: Any,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    if not _ENABLED:

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            return fn

        return decorator
    return _ls_traceable(  # type: ignore[call-overload]
        name=name,
        run_type=run_type,
        project_name=_PROJECT,
        **kwargs,
    )


def flush() -> None:
    c = get_client()
    if c is not None:
        c.flush()


if _ENABLED:
    atexit.register(flush)
