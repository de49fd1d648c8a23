import json

from metasearch.contracts.search_v1 import (
    Complexity,
    OutcomeStatus,
    RetrievalOutcome,
    RoutingDecision,
    Tier,
    TierAttempt,
    Transition,
)
from metasearch.core.errors import BackendErrorKind
from metasearch.core.logger import SearchLogger, _format_duration


def read_events(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


def test_format_duration():
    assert _format_duration(0) == "0ms"
    assert _format_duration(0.4) == "<1ms"
    assert _format_duration(250) == "250ms"
    assert _format_duration(1500) == "1.5s"


def test_session_events_written_as_json_lines(tmp_path):
    log_file = tmp_path / "logs" / "search.log"
    log = SearchLogger(log_file)
    decision = RoutingDecision(complexity=Complexity.SIMPLE, start_tier=Tier.FREE)
    attempt = TierAttempt(
        tier=Tier.FREE,
        source="searxng",
        hit_count=0,
        threshold=0.85,
        error=BackendErrorKind.RATE_LIMITED,
        error_message="HTTP 429",
        transition=Transition.ESCALATE,
    )
    outcome = RetrievalOutcome(
        status=OutcomeStatus.EXHAUSTED, query="rust", trail=[attempt], routing=decision
    )

    log.session_start("rust", decision)
    log.tier_result(attempt)
    log.session_outcome(outcome)

    events = read_events(log_file)
    assert [e["event_type"] for e in events] == ["SESSION_START", "TIER_RESULT", "SESSION_OUTCOME"]
    assert events[0]["data"]["start_tier"] == "free"
    assert events[1]["data"]["error"] == "rate_limited"
    assert events[2]["data"]["status"] == "exhausted"
    assert events[2]["data"]["tiers"] == ["free"]


def test_no_file_means_console_only(tmp_path):
    log = SearchLogger(None)
    log.warning("nothing written")
    assert list(tmp_path.iterdir()) == []
