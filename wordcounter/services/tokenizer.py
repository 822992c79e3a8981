"""Word counting for page content.

Wikitext is first rendered down to the plain text a reader would see
(templates, markup, tables and link targets dropped), then maximal runs of
the configured word class are counted. Everything here is pure: no I/O,
no shared state beyond the compiled-pattern cache.
"""

from __future__ import annotations

import html
import re
import sys
import unicodedata
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from wordcounter.errors import ConfigurationError, UnsupportedContentError
from wordcounter.models.page import ContentKind

# Letters (\w minus digits, underscore and non-decimal numerics such as Ⅻ or ²)
LETTERS_PATTERN = r"[^\W\d_{numeric}]+"
# Numbers (any numeric character) with decimal/thousands separators, or letter runs
LETTERS_AND_NUMBERS_PATTERN = r"[\d{numeric}]+(?:[.,][\d{numeric}]+)*|[^\W\d_{numeric}]+"

COUNTABLE_KINDS = frozenset({ContentKind.WIKITEXT.value, ContentKind.TEXT.value})


@dataclass(frozen=True)
class CountOptions:
    """Tokenizer options."""

    count_numbers: bool = False
    custom_pattern: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "CountOptions":
        return cls(
            count_numbers=settings.WORDCOUNTER_COUNT_NUMBERS,
            custom_pattern=settings.WORDCOUNTER_CUSTOM_PATTERN or None,
        )


@lru_cache(maxsize=1)
def _non_decimal_numerics() -> str:
    """Character class body for Nl/No characters (numeric but not ``\\d``)."""
    ranges = []
    start = previous = None
    for codepoint in range(sys.maxunicode + 1):
        if unicodedata.category(chr(codepoint)) not in ("Nl", "No"):
            continue
        if previous is not None and codepoint == previous + 1:
            previous = codepoint
            continue
        if start is not None:
            ranges.append((start, previous))
        start = previous = codepoint
    if start is not None:
        ranges.append((start, previous))
    return "".join(
        f"\\U{first:08x}" if first == last else f"\\U{first:08x}-\\U{last:08x}" for first, last in ranges
    )


@lru_cache(maxsize=32)
def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid word pattern <{pattern}>: {e}") from e


def word_pattern(options: CountOptions) -> re.Pattern:
    """Return the compiled pattern one word match is counted against."""
    if options.custom_pattern:
        return _compile(options.custom_pattern)
    template = LETTERS_AND_NUMBERS_PATTERN if options.count_numbers else LETTERS_PATTERN
    return _compile(template.format(numeric=_non_decimal_numerics()))


# --- wikitext rendering -----------------------------------------------------

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_HIDDEN_BLOCK_RE = re.compile(
    r"<(script|style|math|templatedata)\b[^>]*>.*?</\1\s*>", re.DOTALL | re.IGNORECASE
)
_SELF_CLOSING_REF_RE = re.compile(r"<ref\b[^>]*/>", re.IGNORECASE)
_TEMPLATE_RE = re.compile(r"\{\{[^{}]*\}\}")
_TEMPLATE_PARAM_RE = re.compile(r"\{\{\{[^{}]*\}\}\}")
_FILE_LINK_RE = re.compile(
    r"\[\[\s*(?:file|image|media|category|kategorie)\s*:[^\[\]]*(?:\[\[[^\[\]]*\]\][^\[\]]*)*\]\]",
    re.IGNORECASE,
)
_INTERNAL_LINK_RE = re.compile(r"\[\[([^\[\]|]*)(?:\|([^\[\]]*))?\]\]")
_EXTERNAL_LINK_RE = re.compile(r"\[(?:https?:|ftp:)?//[^\s\]]+(?:\s+([^\]]*))?\]", re.IGNORECASE)
_HEADING_RE = re.compile(r"^(={1,6})\s*(.*?)\s*\1\s*$", re.MULTILINE)
_EMPHASIS_RE = re.compile(r"'{2,5}")
_LIST_MARKER_RE = re.compile(r"^[*#:;]+\s*", re.MULTILINE)
_RULE_RE = re.compile(r"^-{4,}\s*$", re.MULTILINE)
_MAGIC_WORD_RE = re.compile(r"__[A-Z]+__")
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def _strip_templates(text: str) -> str:
    # Innermost first, until nothing nested remains
    previous = None
    while previous != text:
        previous = text
        text = _TEMPLATE_PARAM_RE.sub("", text)
        text = _TEMPLATE_RE.sub("", text)
    return text


def _render_table_line(line: str) -> str:
    stripped = line.lstrip()
    if stripped.startswith(("{|", "|}", "|-", "|+")):
        return stripped[2:] if stripped.startswith("|+") else ""
    if not stripped.startswith(("|", "!")):
        return line

    cells = re.split(r"\|\||!!", stripped[1:])
    rendered = []
    for cell in cells:
        # 'style="..." | content' -> content
        if "|" in cell:
            attributes, _, content = cell.partition("|")
            if "=" in attributes:
                cell = content
        rendered.append(cell.strip())
    return " ".join(rendered)


def render_wikitext(text: str) -> str:
    """Reduce wikitext to human-legible plain text."""
    text = _COMMENT_RE.sub(" ", text)
    text = _HIDDEN_BLOCK_RE.sub(" ", text)
    text = _SELF_CLOSING_REF_RE.sub(" ", text)
    text = _strip_templates(text)
    text = "\n".join(_render_table_line(line) for line in text.split("\n"))
    text = _FILE_LINK_RE.sub(" ", text)
    text = _INTERNAL_LINK_RE.sub(lambda m: m.group(2) if m.group(2) is not None else m.group(1), text)
    text = _EXTERNAL_LINK_RE.sub(lambda m: m.group(1) or " ", text)
    text = _HEADING_RE.sub(r"\2", text)
    text = _EMPHASIS_RE.sub("", text)
    text = _LIST_MARKER_RE.sub("", text)
    text = _RULE_RE.sub(" ", text)
    text = _MAGIC_WORD_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def to_plain_text(text: str, content_kind: str = ContentKind.WIKITEXT.value, rendered: bool = False) -> str:
    """Plain text for counting; raises UnsupportedContentError for non-text kinds."""
    kind = content_kind.value if isinstance(content_kind, ContentKind) else content_kind
    if kind not in COUNTABLE_KINDS:
        raise UnsupportedContentError(kind)
    if rendered or kind == ContentKind.TEXT.value:
        return text
    return render_wikitext(text)


def count_words(
    text: str,
    options: Optional[CountOptions] = None,
    content_kind: str = ContentKind.WIKITEXT.value,
    rendered: bool = False,
) -> int:
    """Count words in page content.

    Args:
        text: Raw wikitext, or already-rendered plain text when ``rendered``.
        options: Word pattern options; letters only when omitted.
        content_kind: Content model of ``text``.
        rendered: Skip wikitext rendering.

    Returns:
        Number of non-empty pattern matches; 0 for empty or blank input.

    Raises:
        UnsupportedContentError: ``content_kind`` is not countable text.
    """
    plain = to_plain_text(text or "", content_kind, rendered)
    if not plain.strip():
        return 0

    pattern = word_pattern(options or CountOptions())
    return sum(1 for match in pattern.finditer(plain) if match.group(0))
