"""Deterministic semantic router: query complexity -> starting tier + model hint.

Classification is a pure function of the query text and its explicit filters;
the same query always starts at the same tier.
"""

import logging
import re
from dataclasses import dataclass, field

from metasearch.contracts.search_v1 import Complexity, Query, RoutingDecision, Tier
from metasearch.core.config import Config, config

logger = logging.getLogger(__name__)

DEFAULT_COMPLEX_KEYWORDS = (
    "分析",
    "比較",
    "為什麼",
    "如何",
    "evaluate",
    "analyze",
    "analyse",
    "compare",
    "versus",
    " vs ",
    "trade-off",
    "tradeoff",
    "why does",
    "explain how",
)

DEFAULT_TECHNICAL_MARKERS = (
    "arxiv",
    "doi:",
    "cve-",
    "rfc ",
    "paper",
    "benchmark",
    "theorem",
    "algorithm",
    "architecture",
    "vulnerability",
    "specification",
    "survey of",
)

DEFAULT_MODEL_HINTS = {
    Complexity.SIMPLE: "claude-haiku-4-5",
    Complexity.MEDIUM: "claude-sonnet-4-5",
    Complexity.COMPLEX: "claude-opus-4-5",
}

_CLAUSE_SEPARATORS = re.compile(r"[,，、;；]")
_QUESTION_MARKS = re.compile(r"[?？]")


@dataclass
class RouterConfig:
    simple_max_length: int = 50
    complex_min_length: int = 100
    max_simple_clauses: int = 2
    complex_keywords: tuple[str, ...] = DEFAULT_COMPLEX_KEYWORDS
    technical_markers: tuple[str, ...] = DEFAULT_TECHNICAL_MARKERS
    medium_free_threshold: float = 0.80
    model_hints: dict[Complexity, str] = field(
        default_factory=lambda: dict(DEFAULT_MODEL_HINTS)
    )

    @classmethod
    def from_config(cls, cfg: Config | None = None) -> "RouterConfig":
        cfg = cfg or config
        return cls(medium_free_threshold=cfg.medium_free_threshold)


class SemanticRouter:
    """Classifies a query and picks the tier the retrieval ladder starts at."""

    def __init__(self, router_config: RouterConfig | None = None) -> None:
        self._config = router_config or RouterConfig()

    def classify(self, query: Query | str) -> RoutingDecision:
        """Never raises; unusable input falls back to Simple / Free."""
        text = query.text if isinstance(query, Query) else str(query or "")
        override = query.filters.complexity if isinstance(query, Query) else None

        if override is not None:
            return self._decision(override, [f"explicit override: {override}"])

        text = text.strip()
        if not text:
            return self._decision(Complexity.SIMPLE, ["empty query"])

        complexity, reasons = self._classify_text(text)
        return self._decision(complexity, reasons)

    def select_model(self, complexity: Complexity) -> str:
        return self._config.model_hints.get(complexity, "")

    def _classify_text(self, text: str) -> tuple[Complexity, list[str]]:
        lowered = f" {text.lower()} "
        length = len(text)
        clause_count = len(_CLAUSE_SEPARATORS.findall(text)) + 1
        question_count = len(_QUESTION_MARKS.findall(text))
        keywords = [kw.strip() for kw in self._config.complex_keywords if kw.lower() in lowered]
        markers = [m.strip() for m in self._config.technical_markers if m.lower() in lowered]

        if question_count > 1:
            return Complexity.COMPLEX, [f"{question_count} questions"]
        if clause_count > self._config.max_simple_clauses:
            return Complexity.COMPLEX, [f"{clause_count} clauses"]
        if keywords and length > self._config.complex_min_length:
            return Complexity.COMPLEX, [
                f"complex keyword {keywords[0]!r} in long query ({length} chars)"
            ]

        reasons: list[str] = []
        if keywords:
            reasons.append(f"complex keyword {keywords[0]!r}")
        if markers:
            reasons.append(f"technical marker {markers[0]!r}")
        if length > self._config.simple_max_length:
            reasons.append(f"length {length} > {self._config.simple_max_length}")
        if reasons:
            return Complexity.MEDIUM, reasons
        return Complexity.SIMPLE, ["short factual query"]

    def _decision(self, complexity: Complexity, reasons: list[str]) -> RoutingDecision:
        if complexity == Complexity.COMPLEX:
            start_tier = Tier.SEMANTIC
            free_threshold = None
        elif complexity == Complexity.MEDIUM:
            start_tier = Tier.FREE
            free_threshold = self._config.medium_free_threshold
        else:
            start_tier = Tier.FREE
            free_threshold = None

        decision = RoutingDecision(
            complexity=complexity,
            start_tier=start_tier,
            free_threshold=free_threshold,
            model_hint=self.select_model(complexity),
            reasons=tuple(reasons),
        )
        logger.debug(
            "Router: %s -> start=%s reasons=%s",
            complexity,
            start_tier.label,
            reasons,
        )
        return decision
