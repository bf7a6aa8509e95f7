"""Fold an article's content nodes into normalized paragraph records.

The assembler is a left fold over the article body in document order. The
accumulator (:class:`AssemblyState`) is an immutable value carrying:

- ``records``          - records emitted so far (the last one may still grow)
- ``pending_prepend``  - an italic subtitle ending in ``:`` awaiting a record
- ``ziffer``           - the current numbered sub-item marker
- ``reference``        - the most recent reference line

Per node:

- italic with leading digit, or an exact ziffer keyword -> new ziffer
- other italic -> subtitle (``...:``) or continuation of the last record
- reference span -> current reference
- definition list / table -> textual block appended to the last record
- plain block without a new clause marker -> continuation of the last record
- anything else -> a new record, prefixed with the pending subtitle
- a new record whose (ziffer, absatz) already occurs in the article -> merged
  into the earlier record, reported as an ambiguity
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from functools import reduce

from bs4.element import NavigableString, Tag

from lawtext.diagnostics import DiagnosticSink, report
from lawtext.footnotes import resolve
from lawtext.html_utils import detached_copy, first_numeric_token, is_footnote_marker
from lawtext.law_types import (
    Article,
    ContentNode,
    DiagnosticKind,
    FootnoteTable,
    NodeKind,
    ParagraphRecord,
    Ziffer,
)

log = logging.getLogger(__name__)

_LEADING_DIGIT_RE = re.compile(r"[0-9]")

DEFAULT_ZIFFER_KEYWORDS: tuple[str, ...] = (
    "Schlussbestimmungen",
    "Schlussbestimmung",
    "Übergangsbestimmungen",
    "Übergangsbestimmung",
    "Schluss- und Übergangsbestimmungen",
    "Dispositions finales",
    "Dispositions transitoires",
)


def subtitle_prefix(pending: str) -> str:
    return f"SubTitle{{ {pending}}}\n "


# ---------------------------------------------------------------------------
# Node-level helpers
# ---------------------------------------------------------------------------


def _first_child(element: Tag) -> Tag | NavigableString | None:
    """First child that is not whitespace-only text."""
    for child in element.children:
        if isinstance(child, NavigableString) and not child.strip():
            continue
        if isinstance(child, (Tag, NavigableString)):
            return child
    return None


def derive_clause_marker(element: Tag) -> tuple[str, list[Tag]]:
    """Clause marker from leading superscripts, plus the tags that form it.

    ``<sup>2</sup><sup>bis</sup> ...`` yields ``"2bis"``. A superscript that
    wraps a link is a footnote anchor and never starts a marker.
    """
    first = _first_child(element)
    if not isinstance(first, Tag) or first.name != "sup" or is_footnote_marker(first):
        return "", []
    marker_tags = [first]
    marker = first.get_text(strip=True)
    following = first.next_sibling
    if (
        isinstance(following, Tag)
        and following.name == "sup"
        and not is_footnote_marker(following)
    ):
        marker += following.get_text(strip=True)
        marker_tags.append(following)
    return marker, marker_tags


def format_definition_list(
    dl: Tag,
    footnotes: FootnoteTable,
    *,
    diagnostics: DiagnosticSink = None,
) -> str:
    """``dt``/``dd`` pairs as ``key: value`` lines."""
    lines: list[str] = []
    key: str | None = None
    for child in dl.find_all(["dt", "dd"], recursive=False):
        text = resolve(child, footnotes, diagnostics=diagnostics)
        if child.name == "dt":
            if key is not None:
                lines.append(f"{key}:")
            key = text
        else:
            lines.append(f"{key}: {text}" if key is not None else text)
            key = None
    if key is not None:
        lines.append(f"{key}:")
    return "\n".join(lines)


def format_table(
    table: Tag,
    footnotes: FootnoteTable,
    *,
    diagnostics: DiagnosticSink = None,
) -> str:
    """Rows joined by newlines, cells by ``|``. Empty rows are skipped."""
    rows: list[str] = []
    for tr in table.find_all("tr"):
        cells = [
            resolve(cell, footnotes, diagnostics=diagnostics)
            for cell in tr.find_all(["td", "th"], recursive=False)
        ]
        if any(cells):
            rows.append("|".join(cells))
    return "\n".join(rows)


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AssemblyState:
    records: tuple[ParagraphRecord, ...] = ()
    pending_prepend: str = ""
    ziffer: Ziffer = Ziffer()
    reference: str = ""

    @property
    def last_record(self) -> ParagraphRecord | None:
        return self.records[-1] if self.records else None

    def append_to_last(self, suffix: str) -> AssemblyState:
        last = self.last_record
        if last is None:
            return self
        grown = replace(last, text=last.text + suffix)
        return replace(self, records=(*self.records[:-1], grown))


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------


class ParagraphAssembler:
    """Build ParagraphRecords for the articles of one document."""

    def __init__(
        self,
        srn: str,
        short_name: str = "",
        *,
        ziffer_keywords: Iterable[str] = DEFAULT_ZIFFER_KEYWORDS,
    ) -> None:
        self.srn = srn
        self.short_name = short_name
        self.ziffer_keywords = frozenset(ziffer_keywords)

    def assemble(
        self,
        article: Article,
        nodes: Iterable[ContentNode],
        footnotes: FootnoteTable,
        *,
        diagnostics: DiagnosticSink = None,
    ) -> list[ParagraphRecord]:
        """Fold *nodes* (one article body, document order) into records."""

        def step(state: AssemblyState, node: ContentNode) -> AssemblyState:
            return self._step(state, node, article, footnotes, diagnostics)

        final = reduce(step, nodes, AssemblyState())
        if final.pending_prepend:
            report(
                diagnostics,
                DiagnosticKind.EXTRACTION_AMBIGUITY,
                article.article_id,
                f"subtitle {final.pending_prepend!r} not followed by a paragraph",
                logger=log,
            )
        log.debug("Article %s: %d record(s)", article.article_id, len(final.records))
        return list(final.records)

    def is_ziffer(self, text: str) -> bool:
        return bool(_LEADING_DIGIT_RE.match(text)) or text in self.ziffer_keywords

    # -- per-node transitions ------------------------------------------------

    def _step(
        self,
        state: AssemblyState,
        node: ContentNode,
        article: Article,
        footnotes: FootnoteTable,
        diagnostics: DiagnosticSink,
    ) -> AssemblyState:
        kind = node.kind
        if kind is NodeKind.UNKNOWN:
            report(
                diagnostics,
                DiagnosticKind.EXTRACTION_AMBIGUITY,
                f"{article.article_id}#{node.position}",
                f"unclassified <{node.element.name}> treated as plain block",
                logger=log,
            )
            kind = NodeKind.PLAIN

        if kind is NodeKind.ITALIC:
            text = resolve(node.element, footnotes, diagnostics=diagnostics)
            if self.is_ziffer(text):
                # A keyword ziffer has no number and is keyed by its text.
                ziffer_id = first_numeric_token(text) or text
                return replace(state, ziffer=Ziffer(id=ziffer_id, name=text))
            return self._italic(state, text)

        if kind is NodeKind.REFERENCE:
            return replace(
                state,
                reference=resolve(node.element, footnotes, diagnostics=diagnostics),
            )

        if kind is NodeKind.DEFINITION_LIST or kind is NodeKind.TABLE:
            formatter = (
                format_definition_list if kind is NodeKind.DEFINITION_LIST else format_table
            )
            block = formatter(node.element, footnotes, diagnostics=diagnostics)
            if not block:
                return state
            if state.last_record is not None:
                return state.append_to_last("\n" + block)
            return self._emit(state, article, "", block, diagnostics)

        work = detached_copy(node.element)
        marker, marker_tags = derive_clause_marker(work)
        for tag in marker_tags:
            tag.decompose()
        text = resolve(work, footnotes, diagnostics=diagnostics)

        last = state.last_record
        if (
            last is not None
            and (not marker or marker == last.absatz)
            and last.article_id == article.article_id
        ):
            return state.append_to_last("\n" + text + "\n") if text else state
        return self._emit(state, article, marker, text, diagnostics)

    def _italic(self, state: AssemblyState, text: str) -> AssemblyState:
        if not text:
            return state
        if text.endswith(":"):
            return replace(state, pending_prepend=text.strip())
        if state.last_record is None:
            # Nothing to continue yet: keep it as the next record's subtitle.
            return replace(state, pending_prepend=text.strip())
        return replace(state.append_to_last("\n" + text), pending_prepend="")

    def _emit(
        self,
        state: AssemblyState,
        article: Article,
        marker: str,
        text: str,
        diagnostics: DiagnosticSink,
    ) -> AssemblyState:
        if not text:
            return state
        if state.pending_prepend:
            text = subtitle_prefix(state.pending_prepend) + text

        # Records of one article share srn, hierarchy and article id, so
        # (ziffer id, absatz) must be unique among them to stay storable.
        taken = next(
            (
                i for i, rec in enumerate(state.records)
                if rec.ziffer_id == state.ziffer.id and rec.absatz == marker
            ),
            None,
        )
        if taken is not None:
            earlier = state.records[taken]
            report(
                diagnostics,
                DiagnosticKind.EXTRACTION_AMBIGUITY,
                article.article_id,
                f"ziffer {state.ziffer.id!r} absatz {marker!r} repeated; "
                "text merged into the earlier record",
                logger=log,
            )
            merged = replace(earlier, text=earlier.text + "\n" + text)
            others = state.records[:taken] + state.records[taken + 1:]
            return replace(state, records=(*others, merged), pending_prepend="")

        record = ParagraphRecord(
            srn=self.srn,
            short_name=self.short_name,
            hierarchy=article.hierarchy,
            article_id=article.article_id,
            article_name=article.article_name,
            reference=state.reference,
            ziffer_id=state.ziffer.id,
            ziffer_name=state.ziffer.name,
            absatz=marker,
            text=text,
        )
        return replace(state, records=(*state.records, record), pending_prepend="")
