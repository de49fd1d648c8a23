"""Confidence calculator: scores one tier's hits as a scalar in [0, 1].

Every component is a saturating sum over hits (normalized by a saturation count
derived from the requested limit), so adding hits can never lower the score and
an empty hit set scores exactly 0.0.

Score = sum(component * weight) over:
  count       - how many hits came back
  relevance   - query-term coverage of each title
  authority   - hits from well-known reference domains
  content     - snippet / full-content richness of each hit
  density     - query-term density of title + snippet text
  agreement   - URLs or titles reported by two or more distinct engines
"""

import logging
import re
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from metasearch.contracts.search_v1 import ConfidenceScore, SearchHit, Tier

logger = logging.getLogger(__name__)

DEFAULT_AUTHORITY_DOMAINS = (
    "github.com",
    "stackoverflow.com",
    "docs.rs",
    "docs.python.org",
    "rust-lang.org",
    "arxiv.org",
    "wikipedia.org",
    "cve.mitre.org",
    "nvd.nist.gov",
    "developer.mozilla.org",
)

_WORD = re.compile(r"\w+")


@dataclass
class ConfidenceWeights:
    count: float = 0.15
    relevance: float = 0.25
    authority: float = 0.15
    content: float = 0.20
    density: float = 0.10
    agreement: float = 0.15

    def as_dict(self) -> dict[str, float]:
        return {
            "count": self.count,
            "relevance": self.relevance,
            "authority": self.authority,
            "content": self.content,
            "density": self.density,
            "agreement": self.agreement,
        }


@dataclass
class ConfidenceConfig:
    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    # Hit count at which every component saturates, capped by the requested limit.
    saturation_hits: int = 5
    # Agreeing URL/title groups needed for a full agreement component.
    agreement_saturation: int = 2
    authority_domains: tuple[str, ...] = DEFAULT_AUTHORITY_DOMAINS


def _query_terms(query: str | None) -> list[str]:
    if not query:
        return []
    seen: list[str] = []
    for w in _WORD.findall(query.lower()):
        if len(w) > 2 and w not in seen:
            seen.append(w)
    return seen


def _hit_relevance(hit: SearchHit, terms: list[str]) -> float:
    if not terms:
        return 0.5
    title = hit.title.lower()
    return sum(1 for t in terms if t in title) / len(terms)


def _hit_content_quality(hit: SearchHit) -> float:
    score = 0.0
    if hit.snippet and hit.snippet.strip():
        score += 0.3
    if hit.has_content:
        score += 0.3
        length = len(hit.content or "")
        if length > 500:
            score += 0.2
        if length > 1000:
            score += 0.2
    return min(score, 1.0)


def _hit_density(hit: SearchHit, terms: list[str]) -> float:
    if not terms:
        return 0.5
    words = _WORD.findall(f"{hit.title} {hit.snippet or ''}".lower())
    if not words:
        return 0.0
    relevant = sum(1 for w in words if any(t in w for t in terms))
    diversity = len(set(words)) / len(words)
    # Raw density rarely exceeds ~0.1 on real snippets; scale into [0, 1].
    return min((relevant / len(words)) * diversity * 10.0, 1.0)


class ConfidenceCalculator:
    """Scores hit sets; never raises."""

    def __init__(self, confidence_config: ConfidenceConfig | None = None) -> None:
        self._config = confidence_config or ConfidenceConfig()

    def score(
        self,
        hits: Iterable[SearchHit] | None,
        query: str | None = None,
        limit: int = 10,
        tier: Tier | None = None,
    ) -> ConfidenceScore:
        try:
            valid = [h for h in (hits or []) if isinstance(h, SearchHit)]
        except TypeError:
            valid = []
        if not valid:
            return ConfidenceScore(value=0.0, tier=tier)

        saturation = max(1, min(max(1, limit), self._config.saturation_hits))
        terms = _query_terms(query)

        components = {
            "count": min(len(valid) / saturation, 1.0),
            "relevance": self._saturate(
                (_hit_relevance(h, terms) for h in valid), saturation
            ),
            "authority": self._saturate(
                (1.0 if self._is_authority(h) else 0.0 for h in valid), saturation
            ),
            "content": self._saturate((_hit_content_quality(h) for h in valid), saturation),
            "density": self._saturate((_hit_density(h, terms) for h in valid), saturation),
            "agreement": min(
                self._agreement_groups(valid) / max(1, self._config.agreement_saturation),
                1.0,
            ),
        }
        weights = self._config.weights.as_dict()
        total = sum(components[name] * weights[name] for name in components)
        return ConfidenceScore(
            value=total,
            tier=tier,
            components={k: round(v, 4) for k, v in components.items()},
        )

    @staticmethod
    def _saturate(values: Iterable[float], saturation: int) -> float:
        return min(sum(values) / saturation, 1.0)

    def _is_authority(self, hit: SearchHit) -> bool:
        url = hit.normalized_url
        host = url.split("/", 1)[0]
        return any(
            host == d or host.endswith("." + d) for d in self._config.authority_domains
        )

    @staticmethod
    def _agreement_groups(hits: list[SearchHit]) -> int:
        """Count URLs and titles reported by at least two distinct engines."""
        by_url: dict[str, set[str]] = defaultdict(set)
        by_title: dict[str, set[str]] = defaultdict(set)
        for h in hits:
            engines = h.engines or {f"{h.tier.label}:unknown"}
            if h.normalized_url:
                by_url[h.normalized_url].update(engines)
            if h.normalized_title:
                by_title[h.normalized_title].update(engines)
        agreeing_urls = {u for u, e in by_url.items() if len(e) >= 2}
        agreeing_titles = {t for t, e in by_title.items() if len(e) >= 2}
        return max(len(agreeing_urls), len(agreeing_titles))
