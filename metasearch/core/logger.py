"""Structured logging: console lines plus an optional JSON-lines event log."""

import json
import logging
import os
import sys
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from metasearch.core.config import config

if TYPE_CHECKING:
    from metasearch.contracts.search_v1 import (
        RetrievalOutcome,
        RoutingDecision,
        TierAttempt,
    )


def _format_duration(ms: float) -> str:
    if ms < 0:
        return "0ms"
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    if ms >= 1:
        return f"{ms:.0f}ms"
    if ms > 0:
        return "<1ms"
    return "0ms"


def _short(text: str | None, max_len: int = 80) -> str:
    if not text or not text.strip():
        return ""
    s = text.strip().replace("\n", " ")
    return s[:max_len] + "..." if len(s) > max_len else s


def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


def _c(role: str) -> str:
    if not _use_color():
        return ""
    codes = {
        "tier": "\033[38;5;81m",  # cyan
        "accept": "\033[38;5;78m",  # green
        "escalate": "\033[38;5;221m",  # yellow
        "fail": "\033[38;5;203m",  # red
        "dim": "\033[38;5;245m",
    }
    return codes.get(role, "")


def _reset() -> str:
    if not _use_color():
        return ""
    return "\033[0m"


@dataclass
class LogEvent:
    event_type: str
    timestamp: str
    data: dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class SearchLogger:
    def __init__(self, log_file: Path | None = None):
        self.log_file = log_file
        self._file_lock = threading.Lock()
        self._log_file_handle = None
        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            self._log_file_handle = open(log_file, "a", encoding="utf-8")
        self._setup_console_logger()

    def _setup_console_logger(self):
        self.console = logging.getLogger("metasearch")
        self.console.setLevel(logging.DEBUG)
        if not self.console.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            handler.setFormatter(
                logging.Formatter("%(asctime)s │ %(message)s", datefmt="%H:%M:%S")
            )
            self.console.addHandler(handler)

    def log_event(self, event: LogEvent) -> None:
        if self._log_file_handle is None:
            return
        with self._file_lock:
            self._log_file_handle.write(event.to_json() + "\n")
            self._log_file_handle.flush()

    def _timestamp(self) -> str:
        return datetime.now().isoformat()

    def session_start(self, query: str, decision: "RoutingDecision") -> None:
        self.log_event(
            LogEvent(
                event_type="SESSION_START",
                timestamp=self._timestamp(),
                data={
                    "query": query[:200],
                    "complexity": decision.complexity,
                    "start_tier": decision.start_tier.label,
                    "model_hint": decision.model_hint,
                    "reasons": list(decision.reasons),
                },
            )
        )
        self.console.info(
            f"Search  {_c('dim')}[{decision.complexity}]{_reset()}  "
            f"start={_c('tier')}{decision.start_tier.label}{_reset()}  {_short(query)}"
        )

    def tier_result(self, attempt: "TierAttempt") -> None:
        data: dict[str, Any] = {
            "tier": attempt.tier.label,
            "source": attempt.source,
            "hit_count": attempt.hit_count,
            "score": round(attempt.score, 4),
            "threshold": attempt.threshold,
            "duration_ms": attempt.duration_ms,
            "transition": attempt.transition,
        }
        if attempt.error is not None:
            data["error"] = attempt.error
            data["error_message"] = _short(attempt.error_message, 500)
        self.log_event(
            LogEvent(event_type="TIER_RESULT", timestamp=self._timestamp(), data=data)
        )
        role = {"accept": "accept", "escalate": "escalate"}.get(
            str(attempt.transition), "fail"
        )
        error_note = f"  {_c('fail')}[{attempt.error}]{_reset()}" if attempt.error else ""
        threshold = "-" if attempt.threshold is None else f"{attempt.threshold:.2f}"
        self.console.info(
            f"  │ {_c('tier')}{attempt.tier.label}{_reset()}  {attempt.hit_count} hits  "
            f"score {attempt.score:.2f}/{threshold}  "
            f"{_format_duration(attempt.duration_ms)}  "
            f"{_c(role)}→ {attempt.transition}{_reset()}{error_note}"
        )

    def session_outcome(self, outcome: "RetrievalOutcome") -> None:
        self.log_event(
            LogEvent(
                event_type="SESSION_OUTCOME",
                timestamp=self._timestamp(),
                data={
                    "query": outcome.query[:200],
                    "status": outcome.status,
                    "final_tier": outcome.final_tier.label if outcome.final_tier else None,
                    "confidence": outcome.confidence,
                    "hits": len(outcome.hits),
                    "tiers": [a.tier.label for a in outcome.trail],
                    "cost_estimate": outcome.cost_estimate,
                    "notes": outcome.notes,
                    "timing_ms": outcome.timing_ms,
                },
            )
        )
        role = "accept" if outcome.accepted else "fail"
        confidence = "-" if outcome.confidence is None else f"{outcome.confidence:.2f}"
        self.console.info(
            f"  └ {_c(role)}{outcome.status}{_reset()}  "
            f"tier={outcome.final_tier.label if outcome.final_tier else '-'}  "
            f"{len(outcome.hits)} hits  confidence {confidence}  "
            f"cost ${outcome.cost_estimate:.3f}"
        )

    def error(self, message: str, *args, exception: Exception | None = None, **kwargs):
        self.log_event(
            LogEvent(
                event_type="ERROR",
                timestamp=self._timestamp(),
                data={
                    "message": message,
                    "exception": str(exception) if exception else None,
                },
            )
        )
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.error(f"Error: {message}", *args, **log_kwargs)

    def warning(self, message: str, *args, **kwargs):
        self.log_event(
            LogEvent(
                event_type="WARNING",
                timestamp=self._timestamp(),
                data={"message": message[:500]},
            )
        )
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.warning(message, *args, **log_kwargs)

    def info(self, message: str, *args, **kwargs):
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.info(message, *args, **log_kwargs)

    def debug(self, message: str, *args, **kwargs):
        allowed = {"exc_info", "stack_info", "stacklevel", "extra"}
        log_kwargs = {k: v for k, v in kwargs.items() if k in allowed}
        self.console.debug(message, *args, **log_kwargs)


logger = SearchLogger(
    config.logs_dir / "search.log" if config.search_event_log else None
)
