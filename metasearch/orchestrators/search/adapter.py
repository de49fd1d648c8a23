"""Backend adapter: uniform tier-addressed access to search providers.

One adapter holds every registered provider. Each outbound call is admitted
through the shared AdmissionGate and bounded by a timeout; failures surface as
BackendError so the retrieval engine only ever sees hits or typed errors. A
provider exception outside the transport taxonomy is reported as MALFORMED.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

from metasearch.contracts.search_v1 import QueryFilters, SearchHit, Tier
from metasearch.core.errors import BackendError, BackendErrorKind
from metasearch.orchestrators.search.admission import AdmissionGate
from metasearch.orchestrators.search.interface import ExtractionBackend, SearchBackend

logger = logging.getLogger(__name__)


class BackendAdapter:
    """Routes tier-level search/extract calls to registered providers."""

    def __init__(self, gate: AdmissionGate, timeout_secs: float = 10.0) -> None:
        self._gate = gate
        self._timeout_secs = timeout_secs
        # tier -> providers, in registration order
        self._search_backends: dict[Tier, list[SearchBackend]] = {}
        self._extractor: ExtractionBackend | None = None

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    def register(self, backend: SearchBackend) -> None:
        tier = backend.get_tier()
        if tier == Tier.DEEP_EXTRACT:
            raise ValueError("deep extraction tier takes an ExtractionBackend")
        self._search_backends.setdefault(tier, []).append(backend)
        logger.info(
            "Adapter: registered %s for tier %s", backend.get_source_name(), tier.label
        )

    def register_extractor(self, backend: ExtractionBackend) -> None:
        self._extractor = backend
        logger.info(
            "Adapter: registered %s for tier %s",
            backend.get_source_name(),
            Tier.DEEP_EXTRACT.label,
        )

    def has_tier(self, tier: Tier) -> bool:
        if tier == Tier.DEEP_EXTRACT:
            return self._extractor is not None
        return bool(self._search_backends.get(tier))

    def available_tiers(self) -> list[Tier]:
        return [t for t in Tier if self.has_tier(t)]

    def source_label(self, tier: Tier) -> str:
        if tier == Tier.DEEP_EXTRACT:
            return self._extractor.get_source_name() if self._extractor else ""
        return "+".join(b.get_source_name() for b in self._search_backends.get(tier, []))

    async def search(
        self,
        tier: Tier,
        query: str,
        limit: int = 10,
        filters: QueryFilters | None = None,
    ) -> list[SearchHit]:
        """Query every provider of `tier` in parallel and merge their hits.

        Raises the auth failure if any provider reports one; otherwise raises only
        when every provider failed.
        """
        backends = self._search_backends.get(tier, [])
        if not backends:
            raise BackendError(
                BackendErrorKind.UNREACHABLE, tier.label, "no backend registered"
            )

        if len(backends) == 1:
            backend = backends[0]
            return await self._call(
                backend.get_source_name(),
                lambda: backend.search(query, limit=limit, filters=filters),
            )

        outcomes = await asyncio.gather(
            *[
                self._call(
                    b.get_source_name(),
                    lambda b=b: b.search(query, limit=limit, filters=filters),
                )
                for b in backends
            ],
            return_exceptions=True,
        )

        merged: list[SearchHit] = []
        failures: list[BackendError] = []
        for backend, outcome in zip(backends, outcomes):
            if isinstance(outcome, BackendError):
                failures.append(outcome)
                logger.warning(
                    "Adapter: %s failed (%s): %s",
                    backend.get_source_name(),
                    outcome.kind,
                    outcome.message,
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            merged.extend(outcome)

        for failure in failures:
            if failure.is_fatal:
                raise failure
        if failures and len(failures) == len(backends):
            raise failures[0]
        return merged

    async def extract(self, urls: list[str]) -> list[SearchHit]:
        if self._extractor is None:
            raise BackendError(
                BackendErrorKind.UNREACHABLE,
                Tier.DEEP_EXTRACT.label,
                "no extraction backend registered",
            )
        extractor = self._extractor
        return await self._call(
            extractor.get_source_name(), lambda: extractor.extract(list(urls))
        )

    async def _call(
        self,
        source: str,
        fn: Callable[[], Awaitable[list[SearchHit]]],
    ) -> list[SearchHit]:
        """Run one provider call inside a gate permit with a bounded wait."""

        async def guarded() -> list[SearchHit]:
            async with self._gate.permit():
                return await fn()

        t0 = time.monotonic()
        try:
            hits = await asyncio.wait_for(guarded(), timeout=self._timeout_secs)
        except TimeoutError as e:
            raise BackendError(
                BackendErrorKind.TIMEOUT,
                source,
                f"no response within {self._timeout_secs:g}s",
            ) from e
        except httpx.TimeoutException as e:
            raise BackendError(BackendErrorKind.TIMEOUT, source, str(e)) from e
        except httpx.HTTPError as e:
            raise BackendError(BackendErrorKind.UNREACHABLE, source, str(e)) from e
        except BackendError:
            raise
        except ValueError as e:
            raise BackendError(BackendErrorKind.MALFORMED, source, str(e)) from e
        except Exception as e:
            logger.warning("Adapter: %s raised %s: %s", source, type(e).__name__, e)
            raise BackendError(
                BackendErrorKind.MALFORMED, source, f"{type(e).__name__}: {e}"
            ) from e
        elapsed_ms = round((time.monotonic() - t0) * 1000, 1)
        logger.debug("Adapter: %s returned %s hits in %.1fms", source, len(hits), elapsed_ms)
        return hits
