"""Per-document ingestion: page -> records -> versioned store.

The single entry point is :func:`ingest_page`, which takes a parsed
:class:`~lawtext.page_reader.LawPage` and an open
:class:`~lawtext.law_store.LawStore` and returns :class:`IngestStats`.

Order of work, strictly sequential:

1. DocumentAssembler -> ``upsert_document``
2. for each article: hierarchy + name, ParagraphAssembler, then
   ``upsert_paragraph`` once per record in document order

A StoreError on one record is logged and counted; processing continues with
the next record. Nothing already written is rolled back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lawtext.diagnostics import DiagnosticSink, report
from lawtext.documents import assemble_document
from lawtext.headings import HeadingContextTracker
from lawtext.law_store import LawStore, StoreError
from lawtext.law_types import Diagnostic, DiagnosticKind, ParagraphRecord, UpsertOutcome
from lawtext.page_reader import LawPage, build_article
from lawtext.paragraphs import DEFAULT_ZIFFER_KEYWORDS, ParagraphAssembler

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExtractionConfig:
    """Extraction tunables; defaults reproduce the standard behaviour."""
    ziffer_keywords: tuple[str, ...] = DEFAULT_ZIFFER_KEYWORDS
    heading_strategy: str = "positional"   # "positional" | "label"


@dataclass(slots=True)
class OutcomeCounts:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0

    def add(self, outcome: UpsertOutcome) -> None:
        match outcome:
            case UpsertOutcome.INSERTED:
                self.inserted += 1
            case UpsertOutcome.UPDATED:
                self.updated += 1
            case UpsertOutcome.UNCHANGED:
                self.unchanged += 1


@dataclass(slots=True)
class IngestStats:
    srn: str
    documents: OutcomeCounts = field(default_factory=OutcomeCounts)
    paragraphs: OutcomeCounts = field(default_factory=OutcomeCounts)
    articles: int = 0
    diagnostics: int = 0
    records: tuple[ParagraphRecord, ...] = ()

    @property
    def failed(self) -> int:
        return self.documents.failed + self.paragraphs.failed


def extract_paragraphs(
    page: LawPage,
    srn: str,
    short_name: str,
    *,
    config: ExtractionConfig = ExtractionConfig(),
    diagnostics: DiagnosticSink = None,
) -> list[ParagraphRecord]:
    """All paragraph records of *page*, in document order."""
    tracker = HeadingContextTracker(config.heading_strategy)
    assembler = ParagraphAssembler(
        srn, short_name, ziffer_keywords=config.ziffer_keywords
    )
    records: list[ParagraphRecord] = []
    for source in page.articles:
        if not source.article_id:
            report(
                diagnostics,
                DiagnosticKind.EXTRACTION_AMBIGUITY,
                srn,
                "article without id skipped",
                logger=log,
            )
            continue
        article = build_article(source, page.footnotes, tracker, diagnostics=diagnostics)
        records.extend(
            assembler.assemble(article, source.nodes, page.footnotes, diagnostics=diagnostics)
        )
    return records


def ingest_page(
    page: LawPage,
    store: LawStore,
    *,
    config: ExtractionConfig = ExtractionConfig(),
    diagnostics: DiagnosticSink = None,
) -> IngestStats:
    """Extract one law page and upsert its document and paragraph records."""
    sink: list[Diagnostic] = diagnostics if diagnostics is not None else []
    seen_before = len(sink)

    document = assemble_document(page.metadata, page.footnotes, diagnostics=sink)
    stats = IngestStats(srn=document.srn, articles=len(page.articles))

    try:
        stats.documents.add(store.upsert_document(document))
    except StoreError as exc:
        stats.documents.failed += 1
        log.error("Document %s not stored, continuing with paragraphs: %s", document.srn, exc)

    records = extract_paragraphs(
        page,
        document.srn,
        document.short_name or "",
        config=config,
        diagnostics=sink,
    )
    stats.records = tuple(records)
    for record in records:
        try:
            stats.paragraphs.add(store.upsert_paragraph(record))
        except StoreError as exc:
            stats.paragraphs.failed += 1
            log.error(
                "Paragraph %s/%s absatz=%r not stored: %s",
                record.srn, record.article_id, record.absatz, exc,
            )

    stats.diagnostics = len(sink) - seen_before
    p = stats.paragraphs
    log.info(
        "Ingested %s: document %s, paragraphs +%d ~%d =%d !%d, %d diagnostic(s)",
        document.srn,
        "failed" if stats.documents.failed else "ok",
        p.inserted, p.updated, p.unchanged, p.failed,
        stats.diagnostics,
    )
    return stats
