"""Configuration from environment variables (.env)."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    project_root: Path
    logs_dir: Path
    searxng_url: str
    duckduckgo_enabled: bool
    exa_api_key: str
    tavily_api_key: str
    default_num_results: int
    request_timeout_secs: float
    free_tier_threshold: float
    semantic_tier_threshold: float  # independent of free_tier_threshold
    medium_free_threshold: float
    deep_extract_top_k: int
    max_concurrent_requests: int
    requests_per_second: float
    rate_limit_burst: int
    context_token_budget: int
    refine_semantic_query: bool
    search_event_log: bool

    @classmethod
    def load(cls) -> "Config":
        project_root = Path(__file__).parent.parent.parent
        return cls(
            project_root=project_root,
            logs_dir=Path(os.getenv("LOGS_DIR", str(project_root / "logs"))),
            searxng_url=os.getenv("SEARXNG_URL", "http://localhost:8080"),
            duckduckgo_enabled=_env_bool("DUCKDUCKGO_ENABLED", True),
            exa_api_key=os.getenv("EXA_API_KEY", ""),
            tavily_api_key=os.getenv("TAVILY_API_KEY", ""),
            default_num_results=int(os.getenv("DEFAULT_NUM_RESULTS", "10")),
            request_timeout_secs=float(os.getenv("REQUEST_TIMEOUT_SECS", "10")),
            free_tier_threshold=float(os.getenv("FREE_TIER_THRESHOLD", "0.85")),
            semantic_tier_threshold=float(os.getenv("SEMANTIC_TIER_THRESHOLD", "0.85")),
            medium_free_threshold=float(os.getenv("MEDIUM_FREE_THRESHOLD", "0.80")),
            deep_extract_top_k=int(os.getenv("DEEP_EXTRACT_TOP_K", "3")),
            max_concurrent_requests=int(os.getenv("MAX_CONCURRENT_REQUESTS", "8")),
            requests_per_second=float(os.getenv("REQUESTS_PER_SECOND", "10")),
            rate_limit_burst=int(os.getenv("RATE_LIMIT_BURST", "10")),
            context_token_budget=int(os.getenv("CONTEXT_TOKEN_BUDGET", "4000")),
            refine_semantic_query=_env_bool("REFINE_SEMANTIC_QUERY", True),
            search_event_log=_env_bool("SEARCH_EVENT_LOG", False),
        )

    def validate(self) -> list[str]:
        errors = []
        for name in (
            "free_tier_threshold",
            "semantic_tier_threshold",
            "medium_free_threshold",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be within [0, 1], got {value}")
        if self.medium_free_threshold > self.free_tier_threshold:
            errors.append(
                f"medium_free_threshold ({self.medium_free_threshold}) must not exceed "
                f"free_tier_threshold ({self.free_tier_threshold})"
            )
        for name in (
            "default_num_results",
            "deep_extract_top_k",
            "max_concurrent_requests",
            "rate_limit_burst",
            "context_token_budget",
        ):
            if getattr(self, name) < 1:
                errors.append(f"{name} must be positive, got {getattr(self, name)}")
        if self.request_timeout_secs <= 0:
            errors.append(
                f"request_timeout_secs must be positive, got {self.request_timeout_secs}"
            )
        if self.requests_per_second <= 0:
            errors.append(
                f"requests_per_second must be positive, got {self.requests_per_second}"
            )
        if not self.searxng_url.strip():
            errors.append("SEARXNG_URL is empty; the free tier has no aggregator")
        return errors


config = Config.load()
