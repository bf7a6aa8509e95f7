"""Markup text helpers and encoding-safe file reading.

The extraction layer works on BeautifulSoup elements that belong to a parsed
page. Elements are treated as read-only: helpers that need to rewrite markup
(``<br>`` substitution, marker removal) operate on a detached copy.

Encoding-safe file reading handles saved pages with mixed encodings
(UTF-8 -> CP1252 -> replace fallback).
"""
from __future__ import annotations

import copy
import re
from pathlib import Path

from bs4.element import Tag

_HEADING_TAGS: list[str] = ["h1", "h2", "h3", "h4", "h5", "h6"]

# U+200B (ZWSP), U+200C (ZWNJ), U+FEFF (BOM), U+00AD (soft hyphen)
_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\ufeff\u00ad]")
_NUMERIC_TOKEN_RE = re.compile(r"\d+[a-z]*")


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def detached_copy(element: Tag) -> Tag:
    """Deep copy of *element*, unconnected to the parse tree."""
    return copy.copy(element)


def heading_child(element: Tag) -> Tag | None:
    """Return the first direct ``h1``-``h6`` child of *element*, if any."""
    found = element.find(_HEADING_TAGS, recursive=False)
    return found if isinstance(found, Tag) else None


def is_footnote_marker(element: Tag) -> bool:
    """A ``<sup>`` that wraps a link is a footnote anchor, not a clause marker."""
    return element.name == "sup" and element.find("a", href=True) is not None


def fragment_of(href: str) -> str:
    """Fragment identifier of an anchor href (``"a/b#fn-1"`` -> ``"fn-1"``)."""
    _, sep, fragment = href.partition("#")
    return fragment if sep else ""


# ---------------------------------------------------------------------------
# Text extraction
# ---------------------------------------------------------------------------


def flatten_text(element: Tag, *, line_break: str = " ") -> str:
    """Text content of *element* with ``<br>`` replaced by *line_break*.

    With the default ``line_break=" "`` all whitespace collapses to single
    spaces. With ``line_break="\\n"`` line breaks survive and only horizontal
    whitespace is collapsed.
    """
    work = detached_copy(element)
    for br in work.find_all("br"):
        br.replace_with(line_break)
    text = strip_zero_width(work.get_text())
    if line_break == "\n":
        return collapse_horizontal_whitespace(text)
    return collapse_whitespace(text)


def collapse_whitespace(text: str) -> str:
    """Collapse all whitespace runs to one space and trim."""
    return re.sub(r"\s+", " ", text).strip()


def collapse_horizontal_whitespace(text: str) -> str:
    """Collapse horizontal whitespace (preserving newlines) and limit blanks."""
    text = re.sub(r"[^\S\n]+", " ", text)
    text = re.sub(r" ?\n ?", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def strip_zero_width(text: str) -> str:
    """Remove zero-width Unicode characters that break regex matching."""
    return _ZERO_WIDTH_RE.sub("", text)


def first_numeric_token(text: str) -> str:
    """First number in *text* with any letter suffix (``"3a. Kapitel"`` -> ``"3a"``)."""
    m = _NUMERIC_TOKEN_RE.search(text)
    return m.group(0) if m else ""


# ---------------------------------------------------------------------------
# Encoding-safe file reading
# ---------------------------------------------------------------------------


def read_file(fpath: Path, *, min_size: int = 0) -> str:
    """Read a saved page with encoding fallback: UTF-8 -> CP1252 -> replace.

    Args:
        fpath: Path to the file.
        min_size: Minimum file size in bytes. Returns empty string if smaller.

    Returns:
        File contents as a string. Empty string below min_size.

    Raises:
        OSError: when the file cannot be read at all.
    """
    if min_size > 0 and fpath.stat().st_size < min_size:
        return ""
    try:
        return fpath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        try:
            return fpath.read_text(encoding="cp1252")
        except UnicodeDecodeError:
            with open(fpath, errors="replace") as f:
                return f.read()
