"""Hierarchy context for an article from its enclosing sectioning containers.

Law pages nest articles inside ``<section>`` containers, each opening with a
heading (``"2. Titel: Die Ehe"``, ``"1. Abschnitt: ..."``). The tracker walks
from the article outward, collects one Heading per container, and assigns
them to the eight HeadingLevel slots.

Two assignment strategies:

- ``fill_positional`` (default) - each heading goes to the first unfilled
  slot in SUB_SECTION -> BOOK order, so the nearest container fills the most
  specific slot. Irregular nesting can mis-assign levels; this is the
  long-standing behaviour and is kept as-is.
- ``fill_by_label`` - the label keyword ("Kapitel", "Titel", ...) picks the
  slot; unrecognised labels fall back to positional fill.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from bs4.element import Tag

from lawtext.diagnostics import DiagnosticSink, report
from lawtext.html_utils import (
    collapse_whitespace,
    detached_copy,
    first_numeric_token,
    heading_child,
    is_footnote_marker,
)
from lawtext.law_types import (
    EMPTY_HEADING,
    DiagnosticKind,
    Heading,
    HeadingLevel,
    HierarchyContext,
)

log = logging.getLogger(__name__)

SECTIONING_TAGS: frozenset[str] = frozenset({"section"})

# Longest keywords first so "Unterabschnitt" is not read as "Abschnitt".
_LABEL_LEVELS: tuple[tuple[str, HeadingLevel], ...] = (
    ("unterabschnitt", HeadingLevel.SUB_SECTION),
    ("unterkapitel", HeadingLevel.SUB_CHAPTER),
    ("untertitel", HeadingLevel.SUB_TITLE),
    ("abschnitt", HeadingLevel.SECTION),
    ("kapitel", HeadingLevel.CHAPTER),
    ("titel", HeadingLevel.TITLE),
    ("teil", HeadingLevel.PART),
    ("buch", HeadingLevel.BOOK),
)
_LABEL_RE = re.compile(r"^\s*\d+[a-z]*\.?\s+([A-Za-zÄÖÜäöü]+)")

type FillStrategy = Callable[[Sequence[Heading], str, DiagnosticSink], HierarchyContext]


# ---------------------------------------------------------------------------
# Heading extraction
# ---------------------------------------------------------------------------


def heading_from_element(heading_el: Tag) -> Heading:
    """Label text (footnote markers dropped) and its first numeric token."""
    work = detached_copy(heading_el)
    for sup in work.find_all("sup"):
        if is_footnote_marker(sup):
            sup.decompose()
    name = collapse_whitespace(work.get_text(" "))
    return Heading(id=first_numeric_token(name), name=name)


def enclosing_headings(article: Tag) -> list[Heading]:
    """Headings of the sectioning containers around *article*, nearest first."""
    headings: list[Heading] = []
    for container in article.find_parents(list(SECTIONING_TAGS)):
        heading_el = heading_child(container)
        if heading_el is None:
            continue
        heading = heading_from_element(heading_el)
        if heading.name:
            headings.append(heading)
    return headings


# ---------------------------------------------------------------------------
# Slot assignment
# ---------------------------------------------------------------------------


def fill_positional(
    headings: Sequence[Heading],
    location: str = "",
    diagnostics: DiagnosticSink = None,
) -> HierarchyContext:
    """Assign headings, nearest first, to the first unfilled slot.

    Stops once the BOOK slot has been filled. Headings left over at that
    point do not fit and are reported as an extraction ambiguity.
    """
    context = HierarchyContext()
    order = list(HeadingLevel)
    for index, heading in enumerate(headings):
        if index >= len(order):
            _report_overflow(headings[index:], location, diagnostics)
            break
        context = context.with_slot(order[index], heading)
    return context


def label_level(heading: Heading) -> HeadingLevel | None:
    """Level named by the heading's label keyword, if recognised."""
    m = _LABEL_RE.match(heading.name)
    if not m:
        return None
    word = m.group(1).lower()
    for keyword, level in _LABEL_LEVELS:
        if word.startswith(keyword):
            return level
    return None


def fill_by_label(
    headings: Sequence[Heading],
    location: str = "",
    diagnostics: DiagnosticSink = None,
) -> HierarchyContext:
    """Assign by label keyword; fall back to the first unfilled slot.

    A heading whose labelled slot is already taken is ignored.
    """
    context = HierarchyContext()
    leftovers: list[Heading] = []
    for heading in headings:
        level = label_level(heading)
        if level is None:
            leftovers.append(heading)
        elif not context.is_filled(level):
            context = context.with_slot(level, heading)
    for index, heading in enumerate(leftovers):
        free = next((lvl for lvl in HeadingLevel if not context.is_filled(lvl)), None)
        if free is None:
            _report_overflow(leftovers[index:], location, diagnostics)
            break
        context = context.with_slot(free, heading)
    return context


def _report_overflow(
    extra: Sequence[Heading],
    location: str,
    diagnostics: DiagnosticSink,
) -> None:
    names = ", ".join(h.name for h in extra)
    report(
        diagnostics,
        DiagnosticKind.EXTRACTION_AMBIGUITY,
        location,
        f"{len(extra)} heading(s) beyond available slots ignored: {names}",
        logger=log,
    )


STRATEGIES: dict[str, FillStrategy] = {
    "positional": fill_positional,
    "label": fill_by_label,
}


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class HeadingContextTracker:
    """Derive the eight-slot HierarchyContext for article elements."""

    def __init__(self, strategy: str = "positional") -> None:
        if strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown heading strategy {strategy!r}; "
                f"expected one of {sorted(STRATEGIES)}"
            )
        self.strategy = strategy
        self._fill = STRATEGIES[strategy]

    def context_for(
        self,
        article: Tag,
        *,
        diagnostics: DiagnosticSink = None,
    ) -> HierarchyContext:
        location = str(article.get("id") or article.name)
        headings = enclosing_headings(article)
        context = self._fill(headings, location, diagnostics)
        log.debug(
            "Hierarchy for %s: %s",
            location,
            [h.name for h in context.slots if h != EMPTY_HEADING],
        )
        return context
