"""Best-effort readable text from raw article HTML."""

from __future__ import annotations

import re

_FLAGS = re.IGNORECASE | re.DOTALL

_SCRIPT_STYLE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", _FLAGS)
_DANGLING_SCRIPT_STYLE = re.compile(r"</?(?:script|style)\b[^>]*>?", re.IGNORECASE)
_UNCLOSED_SCRIPT_STYLE = re.compile(r"<(?:script|style)\b.*\Z", _FLAGS)
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")

_PARAGRAPHS = re.compile(r"<p(?:\s[^>]*)?>.*?</p\s*>", _FLAGS)

# Ordered from most to least specific container.
CONTENT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<article\b[^>]*>.*?</article\s*>", _FLAGS),
    re.compile(r"<div\b[^>]*class=\"[^\"]*content[^\"]*\"[^>]*>.*?</div\s*>", _FLAGS),
    re.compile(r"<div\b[^>]*class=\"[^\"]*article[^\"]*\"[^>]*>.*?</div\s*>", _FLAGS),
    re.compile(r"<main\b[^>]*>.*?</main\s*>", _FLAGS),
    _PARAGRAPHS,
)

# &amp; goes last so "&amp;lt;" decodes to "&lt;" rather than "<".
_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#x27;", "'"),
    ("&#39;", "'"),
    ("&amp;", "&"),
)

DEFAULT_MIN_LENGTH = 1000


def extract_text_from_html(html: str | None, *, min_length: int = DEFAULT_MIN_LENGTH) -> str:
    """Return plain text for ``html``; never raises, empty input yields ``""``."""
    if not html or not isinstance(html, str):
        return ""

    cleaned = _COMMENT.sub(" ", _SCRIPT_STYLE.sub(" ", html))
    cleaned = _UNCLOSED_SCRIPT_STYLE.sub(" ", cleaned)
    selected = _select_content(cleaned, min_length)
    text = _TAG.sub(" ", selected)
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    # Decoding can reintroduce markup (e.g. "&lt;script&gt;").
    text = _DANGLING_SCRIPT_STYLE.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def _select_content(html: str, min_length: int) -> str:
    for pattern in CONTENT_PATTERNS:
        matches = pattern.findall(html)
        if not matches:
            continue
        joined = " ".join(matches)
        if len(joined) > min_length:
            return joined
    return " ".join(_PARAGRAPHS.findall(html))
