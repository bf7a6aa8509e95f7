"""Footnote table construction and inline footnote resolution.

A footnote marker is a ``<sup>`` wrapping an ``<a href="...#fragment">``.
Resolution replaces each marker whose fragment is in the table with the
literal ``footnote{<text>}`` and returns the flattened text of the node.
Markers that cannot be resolved stay in place and are reported as
MissingFootnote.
"""
from __future__ import annotations

import logging

from bs4 import BeautifulSoup
from bs4.element import Tag

from lawtext.diagnostics import DiagnosticSink, report
from lawtext.html_utils import (
    collapse_whitespace,
    detached_copy,
    flatten_text,
    fragment_of,
    is_footnote_marker,
)
from lawtext.law_types import DiagnosticKind, Footnote, FootnoteTable

log = logging.getLogger(__name__)

FOOTNOTE_CONTAINER_SELECTOR = "div.footnotes"


def build_footnote_table(soup: BeautifulSoup | Tag) -> FootnoteTable:
    """Collect every id-bearing element under the footnote containers.

    The first element seen for an id wins; later duplicates are ignored.
    """
    table: FootnoteTable = {}
    for container in soup.select(FOOTNOTE_CONTAINER_SELECTOR):
        for el in container.find_all(id=True):
            fragment_id = str(el["id"])
            if fragment_id in table:
                continue
            table[fragment_id] = Footnote(
                fragment_id=fragment_id,
                resolved_text=collapse_whitespace(el.get_text()),
            )
    return table


def format_footnote(footnote: Footnote) -> str:
    return f"footnote{{{footnote.resolved_text}}}"


def substitute_footnotes(
    element: Tag,
    footnotes: FootnoteTable,
    *,
    diagnostics: DiagnosticSink = None,
) -> Tag:
    """Return a detached copy of *element* with resolvable markers replaced.

    Markers are visited depth-first in document order.
    """
    work = detached_copy(element)
    for sup in work.find_all("sup"):
        if not is_footnote_marker(sup):
            continue
        anchor = sup.find("a", href=True)
        fragment = fragment_of(str(anchor["href"])) if isinstance(anchor, Tag) else ""
        footnote = footnotes.get(fragment) if fragment else None
        if footnote is None:
            report(
                diagnostics,
                DiagnosticKind.MISSING_FOOTNOTE,
                fragment or sup.get_text(strip=True),
                "footnote marker left unresolved",
                logger=log,
            )
            continue
        sup.replace_with(f" {format_footnote(footnote)}")
    return work


def resolve(
    element: Tag,
    footnotes: FootnoteTable,
    *,
    line_break: str = " ",
    diagnostics: DiagnosticSink = None,
) -> str:
    """Flattened text of *element* with inline footnotes resolved.

    Resolved text contains no further markers, so resolving the same element
    again yields the same string.
    """
    resolved = substitute_footnotes(element, footnotes, diagnostics=diagnostics)
    return flatten_text(resolved, line_break=line_break)
