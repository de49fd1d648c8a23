"""Context pruner: dedupe, clean, and fit accepted hits into a token budget.

Applied in order:
  1. Drop exact and near-duplicate hits (same normalized URL, or normalized
     titles at least 90% similar). The earlier hit wins and absorbs any snippet,
     content or engine tags it was missing.
  2. Strip markup and boilerplate from snippet and content.
  3. Keep earlier hits whole while they fit; compact and cut the first hit that
     does not fit, then stop.
Output ordering and truncation points depend only on the input list and budget.
"""

import logging
import math
import re
from dataclasses import dataclass
from difflib import SequenceMatcher

from metasearch.contracts.search_v1 import SearchHit
from metasearch.processing.html_cleaner import clean_html

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
TITLE_SIMILARITY_THRESHOLD = 0.9
MIN_HIT_TOKENS = 25
_ELLIPSIS = "..."
_BLOCK_SEPARATOR = "\n\n"
_MIN_PARTIAL_BLOCK_CHARS = 100

_CODE_INDICATORS = (
    "{",
    "}",
    "()",
    "=>",
    "fn ",
    "def ",
    "class ",
    "import ",
    "const ",
    "let ",
    "var ",
)

# Block priorities when compacting content: headings > code > prose.
_PRIORITY_HEADING = 100
_PRIORITY_CODE = 80
_PRIORITY_PARAGRAPH = 50


def estimate_tokens(text: str | None) -> int:
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _cut(text: str, max_chars: int) -> str:
    """Cut `text` to at most `max_chars` characters including the ellipsis."""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(_ELLIPSIS):
        return ""
    return text[: max_chars - len(_ELLIPSIS)].rstrip() + _ELLIPSIS


@dataclass
class _Block:
    index: int
    content: str
    priority: int


def _is_heading(line: str) -> bool:
    if line.startswith("#"):
        return True
    letters = [c for c in line if c.isalpha()]
    return len(line) < 100 and len(letters) > 3 and sum(c.isupper() for c in letters) > len(line) / 2


def _split_blocks(text: str) -> list[_Block]:
    blocks: list[_Block] = []
    paragraph: list[str] = []

    def flush() -> None:
        if paragraph:
            blocks.append(_Block(len(blocks), " ".join(paragraph), _PRIORITY_PARAGRAPH))
            paragraph.clear()

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            flush()
            continue
        if _is_heading(line):
            flush()
            blocks.append(_Block(len(blocks), line, _PRIORITY_HEADING))
            continue
        if any(ind in line for ind in _CODE_INDICATORS):
            flush()
            blocks.append(_Block(len(blocks), line, _PRIORITY_CODE))
            continue
        paragraph.append(line)
    flush()
    return blocks


def compact_text(text: str, max_tokens: int) -> str:
    """Shrink `text` to at most `max_tokens`, keeping high-priority blocks.

    Duplicate blocks are removed, blocks are chosen by priority (headings, then
    code, then prose; ties by position) and emitted in their original order.
    """
    if not text or max_tokens <= 0:
        return ""
    if estimate_tokens(text) <= max_tokens:
        return text

    seen: set[str] = set()
    blocks: list[_Block] = []
    for block in _split_blocks(text):
        key = block.content[:100]
        if key in seen:
            continue
        seen.add(key)
        blocks.append(block)

    budget_chars = max_tokens * CHARS_PER_TOKEN
    used = 0
    chosen: list[_Block] = []
    partial: _Block | None = None
    for block in sorted(blocks, key=lambda b: (-b.priority, b.index)):
        sep = len(_BLOCK_SEPARATOR) if chosen else 0
        cost = sep + len(block.content)
        if used + cost <= budget_chars:
            chosen.append(block)
            used += cost
            continue
        if partial is None:
            remaining = budget_chars - used - sep
            if remaining > _MIN_PARTIAL_BLOCK_CHARS:
                partial = _Block(block.index, _cut(block.content, remaining), block.priority)
        break

    if partial is not None:
        chosen.append(partial)
    chosen.sort(key=lambda b: b.index)
    return _BLOCK_SEPARATOR.join(b.content for b in chosen)


class ContextPruner:
    """Reduces an accepted hit list to a deduplicated, clean, budgeted list."""

    def __init__(
        self,
        token_budget: int = 4000,
        title_similarity: float = TITLE_SIMILARITY_THRESHOLD,
        min_hit_tokens: int = MIN_HIT_TOKENS,
    ) -> None:
        self._token_budget = token_budget
        self._title_similarity = title_similarity
        self._min_hit_tokens = min_hit_tokens

    def prune(self, hits: list[SearchHit], token_budget: int | None = None) -> list[SearchHit]:
        budget = self._token_budget if token_budget is None else token_budget
        if not hits or budget <= 0:
            return []
        unique = self.deduplicate(hits)
        cleaned = [self._clean(h) for h in unique]
        fitted = self._fit_budget(cleaned, budget)
        logger.info(
            "Pruner: %s input -> %s deduped -> %s within %s tokens",
            len(hits),
            len(unique),
            len(fitted),
            budget,
        )
        return fitted

    def deduplicate(self, hits: list[SearchHit]) -> list[SearchHit]:
        kept: list[SearchHit] = []
        for hit in hits:
            match = self._find_duplicate(kept, hit)
            if match is None:
                kept.append(hit)
                continue
            kept[match] = self._absorb(kept[match], hit)
        return kept

    def hit_tokens(self, hit: SearchHit) -> int:
        return (
            estimate_tokens(hit.title)
            + estimate_tokens(hit.url)
            + estimate_tokens(hit.snippet)
            + estimate_tokens(hit.content)
        )

    def _find_duplicate(self, kept: list[SearchHit], hit: SearchHit) -> int | None:
        url = hit.normalized_url
        title = hit.normalized_title
        for i, other in enumerate(kept):
            if url and url == other.normalized_url:
                return i
            other_title = other.normalized_title
            if title and other_title:
                if title == other_title:
                    return i
                ratio = SequenceMatcher(None, title, other_title).ratio()
                if ratio >= self._title_similarity:
                    return i
        return None

    @staticmethod
    def _absorb(kept: SearchHit, dup: SearchHit) -> SearchHit:
        update: dict[str, object] = {}
        if not (kept.snippet and kept.snippet.strip()) and dup.snippet:
            update["snippet"] = dup.snippet
        if not kept.has_content and dup.has_content:
            update["content"] = dup.content
        engines = sorted(kept.engines | dup.engines)
        if engines and set(engines) != set(kept.engines):
            update["engine"] = ",".join(engines)
        return kept.model_copy(update=update) if update else kept

    @staticmethod
    def _clean(hit: SearchHit) -> SearchHit:
        snippet = clean_html(hit.snippet) if hit.snippet else None
        content = clean_html(hit.content) if hit.content else None
        return hit.model_copy(
            update={"snippet": snippet or None, "content": content or None}
        )

    def _fit_budget(self, hits: list[SearchHit], budget: int) -> list[SearchHit]:
        result: list[SearchHit] = []
        remaining = budget
        for hit in hits:
            cost = self.hit_tokens(hit)
            if cost <= remaining:
                result.append(hit)
                remaining -= cost
                continue
            allowance = remaining - estimate_tokens(hit.title) - estimate_tokens(hit.url)
            if allowance >= self._min_hit_tokens:
                result.append(self._truncate(hit, allowance))
            break
        return result

    @staticmethod
    def _truncate(hit: SearchHit, allowance: int) -> SearchHit:
        snippet_tokens = estimate_tokens(hit.snippet)
        if snippet_tokens >= allowance:
            snippet = _cut(hit.snippet or "", allowance * CHARS_PER_TOKEN)
            return hit.model_copy(update={"snippet": snippet or None, "content": None})
        content = compact_text(hit.content or "", allowance - snippet_tokens)
        return hit.model_copy(update={"content": content or None})
