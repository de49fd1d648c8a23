"""Strip markup and boilerplate from extracted page content."""

import html as html_module
import re

_SCRIPT_STYLE = re.compile(r"<(script|style|noscript)\b[\s\S]*?</\1\s*>", re.I)
_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_BLOCK_TAG = re.compile(
    r"</?(?:p|div|br|li|ul|ol|tr|table|td|th|dt|dd|section|article|header|footer|nav|h[1-6]|pre|blockquote)\b[^>]*>",
    re.I,
)
_HEADING_OPEN = re.compile(r"<h([1-6])\b[^>]*>", re.I)
_TAG = re.compile(r"<[^>]+>")
_INLINE_WS = re.compile(r"[ \t\f\v\r]+")
_BLANK_RUN = re.compile(r"\n{3,}")

NOISE_PATTERNS = (
    "cookie",
    "privacy policy",
    "terms of service",
    "subscribe",
    "newsletter",
    "advertisement",
    "sponsored",
    "click here",
    "read more",
    "share on",
    "follow us",
    "copyright ©",
    "all rights reserved",
)
_NOISE_MAX_LINE = 200


def _is_noise(line: str) -> bool:
    if len(line) >= _NOISE_MAX_LINE:
        return False
    lowered = line.lower()
    return any(p in lowered for p in NOISE_PATTERNS)


def clean_html(text: str | None) -> str:
    """Return readable text with block structure kept as line breaks.

    Headings become markdown-style `#` lines so downstream block splitting can
    recognise them. Plain text passes through with only whitespace normalised.
    """
    if not text:
        return ""
    s = _COMMENT.sub(" ", text)
    s = _SCRIPT_STYLE.sub(" ", s)
    s = _HEADING_OPEN.sub(lambda m: "\n\n" + "#" * int(m.group(1)) + " ", s)
    s = _BLOCK_TAG.sub("\n\n", s)
    s = _TAG.sub("", s)
    s = html_module.unescape(s)

    lines: list[str] = []
    for raw_line in s.split("\n"):
        line = _INLINE_WS.sub(" ", raw_line).strip()
        if line and _is_noise(line):
            continue
        if line.startswith("#") and not line.lstrip("#").strip():
            continue
        lines.append(line)
    out = "\n".join(lines)
    out = _BLANK_RUN.sub("\n\n", out)
    return out.strip()
