"""Core types shared by the extraction and persistence layers.

Every stage of the law-text pipeline speaks in these types. Crawler-side
inputs (ContentNode, Footnote) are ephemeral and live for one document pass;
records (LawDocument, ParagraphRecord) are what the store persists.

Type hierarchy:
  NodeKind / ContentNode   - One markup unit inside an article body
  Footnote / FootnoteTable - Fragment id -> literal footnote text
  HeadingLevel             - The eight hierarchy slots, most specific first
  Heading / HierarchyContext - Heading label + id, and the 8-slot snapshot
  Article                  - Article id, resolved name, hierarchy snapshot
  ParagraphRecord          - One normalized paragraph ("absatz") row
  LawDocument              - One document-level row keyed by srn
  DiagnosticKind / Diagnostic - Locally recovered extraction conditions
  UpsertOutcome            - Inserted | Updated | Unchanged
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import Any

from bs4.element import Tag

# ---------------------------------------------------------------------------
# Content nodes: crawler input
# ---------------------------------------------------------------------------


class NodeKind(StrEnum):
    """Classification of one direct child of an article body."""
    PLAIN = "plain_block"
    DEFINITION_LIST = "definition_list"
    TABLE = "table"
    ITALIC = "italic_span"
    REFERENCE = "reference_span"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ContentNode:
    """One markup unit in document order.

    ``element`` is the parsed inline tree. Consumers never mutate it; any
    rewriting (footnote substitution, marker removal) happens on a copy.
    """
    kind: NodeKind
    element: Tag
    position: int  # 0-based order inside the article body


@dataclass(frozen=True, slots=True)
class Footnote:
    fragment_id: str     # anchor target, e.g. "fn-d6e1234"
    resolved_text: str   # literal footnote body, whitespace-collapsed


type FootnoteTable = dict[str, Footnote]


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class HeadingLevel(IntEnum):
    """Hierarchy slots in positional-fill order (most specific first)."""
    SUB_SECTION = 0
    SECTION = 1
    SUB_CHAPTER = 2
    CHAPTER = 3
    SUB_TITLE = 4
    TITLE = 5
    PART = 6
    BOOK = 7

    @property
    def column_prefix(self) -> str:
        """Column stem used by the store, e.g. ``sub_chapter``."""
        return self.name.lower()


@dataclass(frozen=True, slots=True)
class Heading:
    id: str = ""     # first numeric token of the label ("" when none)
    name: str = ""   # full label text


EMPTY_HEADING = Heading()


@dataclass(frozen=True, slots=True)
class HierarchyContext:
    """Snapshot of the eight heading slots enclosing one article.

    Slots are indexed by HeadingLevel. All default to the empty heading.
    """
    slots: tuple[Heading, ...] = (EMPTY_HEADING,) * len(HeadingLevel)

    def __post_init__(self) -> None:
        if len(self.slots) != len(HeadingLevel):
            raise ValueError(
                f"HierarchyContext needs {len(HeadingLevel)} slots, "
                f"got {len(self.slots)}"
            )

    def __getitem__(self, level: HeadingLevel) -> Heading:
        return self.slots[level]

    def with_slot(self, level: HeadingLevel, heading: Heading) -> HierarchyContext:
        slots = list(self.slots)
        slots[level] = heading
        return HierarchyContext(tuple(slots))

    def is_filled(self, level: HeadingLevel) -> bool:
        return self.slots[level] != EMPTY_HEADING

    def to_columns(self) -> dict[str, str]:
        """Flatten to ``<level>_id`` / ``<level>_name`` store columns."""
        out: dict[str, str] = {}
        for level in HeadingLevel:
            heading = self.slots[level]
            out[f"{level.column_prefix}_id"] = heading.id
            out[f"{level.column_prefix}_name"] = heading.name
        return out


@dataclass(frozen=True, slots=True)
class Article:
    article_id: str
    article_name: str                  # footnote-resolved heading text
    hierarchy: HierarchyContext = field(default_factory=HierarchyContext)


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

CLAUSE_MARKER_FIELD = "absatz"


@dataclass(frozen=True, slots=True)
class Ziffer:
    id: str = ""
    name: str = ""


@dataclass(frozen=True, slots=True)
class ParagraphRecord:
    """One normalized paragraph of an article.

    Natural key: (srn, hierarchy, article_id, ziffer_id, absatz).
    ``hierarchy`` is a snapshot taken when the record was emitted.
    """
    srn: str
    short_name: str
    hierarchy: HierarchyContext
    article_id: str
    article_name: str
    reference: str
    ziffer_id: str
    ziffer_name: str
    absatz: str          # clause marker, e.g. "1", "2bis"
    text: str

    def __post_init__(self) -> None:
        if not self.article_id:
            raise ValueError("ParagraphRecord.article_id must be non-empty")

    def to_row(self) -> dict[str, Any]:
        """Column mapping used by the paragraphs table."""
        return {
            "srn": self.srn,
            "short_name": self.short_name,
            **self.hierarchy.to_columns(),
            "article_id": self.article_id,
            "article_name": self.article_name,
            "reference": self.reference,
            "ziffer_id": self.ziffer_id,
            "ziffer_name": self.ziffer_name,
            "absatz": self.absatz,
            "text_w_footnotes": self.text,
        }


@dataclass(frozen=True, slots=True)
class LawDocument:
    """Document-level metadata row, keyed by ``srn``.

    Optional fields use ``None`` for "not observed"; the store treats ``None``
    and ``""`` alike (see ``law_store.is_update_candidate``).
    """
    srn: str
    title: str | None = None
    preface: str | None = None
    preamble: str | None = None
    status: str | None = None
    short_name: str | None = None
    decision_date: str | None = None
    effective_date: str | None = None
    source_name: str | None = None
    chronology_link: str | None = None
    changes_link: str | None = None
    source_link: str | None = None
    quelle_link: str | None = None

    def __post_init__(self) -> None:
        if not self.srn or not self.srn.strip():
            raise ValueError("LawDocument.srn must be non-empty")

    def to_row(self) -> dict[str, Any]:
        return {
            "srn": self.srn,
            "title": self.title,
            "preface": self.preface,
            "preamble": self.preamble,
            "status": self.status,
            "short_name": self.short_name,
            "decision_date": self.decision_date,
            "effective_date": self.effective_date,
            "source_name": self.source_name,
            "chronology_link": self.chronology_link,
            "changes_link": self.changes_link,
            "source_link": self.source_link,
            "quelle_link": self.quelle_link,
        }


# ---------------------------------------------------------------------------
# Diagnostics: recoverable extraction conditions
# ---------------------------------------------------------------------------


class DiagnosticKind(StrEnum):
    EXTRACTION_AMBIGUITY = "extraction_ambiguity"
    MISSING_FOOTNOTE = "missing_footnote"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A recovered extraction condition. Never raised, only logged/collected."""
    kind: DiagnosticKind
    location: str   # article id, fragment id or element description
    detail: str


# ---------------------------------------------------------------------------
# Store outcomes
# ---------------------------------------------------------------------------


class UpsertOutcome(StrEnum):
    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
