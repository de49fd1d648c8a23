"""Shared HTTP plumbing for provider backends."""

from typing import Any

import httpx

from metasearch.core.errors import BackendError, BackendErrorKind, error_from_status

USER_AGENT = "metasearch/0.1"


async def request_json(
    source: str,
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 10.0,
    **kwargs: Any,
) -> dict[str, Any]:
    """Send one request and return the decoded JSON object, or raise BackendError."""
    headers = {"User-Agent": USER_AGENT, **kwargs.pop("headers", {})}
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as owned:
                response = await owned.request(
                    method, url, headers=headers, follow_redirects=True, **kwargs
                )
        else:
            response = await client.request(
                method, url, headers=headers, follow_redirects=True, **kwargs
            )
    except httpx.TimeoutException as e:
        raise BackendError(BackendErrorKind.TIMEOUT, source, str(e) or "timed out") from e
    except httpx.HTTPError as e:
        raise BackendError(BackendErrorKind.UNREACHABLE, source, str(e)) from e

    if not response.is_success:
        raise error_from_status(response.status_code, source, response.text)

    try:
        data = response.json()
    except ValueError as e:
        raise BackendError(BackendErrorKind.MALFORMED, source, "invalid JSON body") from e
    if not isinstance(data, dict):
        raise BackendError(BackendErrorKind.MALFORMED, source, "expected a JSON object")
    return data


def results_list(data: dict[str, Any], source: str, key: str = "results") -> list[dict]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise BackendError(BackendErrorKind.MALFORMED, source, f"'{key}' is not a list")
    return [item for item in raw if isinstance(item, dict)]


def text_field(item: dict[str, Any], key: str, source: str) -> str:
    """String value of `key`, "" when absent; any other type is a malformed payload."""
    value = item.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise BackendError(
            BackendErrorKind.MALFORMED,
            source,
            f"'{key}' is {type(value).__name__}, expected a string",
        )
    return value
