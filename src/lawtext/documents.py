"""Build the document-level LawDocument record from raw page metadata.

Raw metadata is what the page reader pulls out of a law page: srn, title,
the preface and preamble elements, the in-force indicator and the annexe
label/value pairs. Missing optional parts degrade to documented defaults:

- no preface / preamble element     -> ``""``
- no in-force indicator             -> ``STATUS_NOT_IN_FORCE``
- no annexe block or unknown label  -> field left unset (``None``)
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from bs4.element import Tag

from lawtext.diagnostics import DiagnosticSink
from lawtext.footnotes import resolve
from lawtext.html_utils import collapse_whitespace, detached_copy
from lawtext.law_types import FootnoteTable, LawDocument

log = logging.getLogger(__name__)

STATUS_IN_FORCE = "in Kraft"
STATUS_NOT_IN_FORCE = "nicht in Kraft"

# Annexe label -> LawDocument field
ANNEXE_LABELS: dict[str, str] = {
    "Abkürzung": "short_name",
    "Beschluss": "decision_date",
    "Inkrafttreten": "effective_date",
    "Quelle": "source_name",
    "Chronologie": "chronology_link",
    "Änderungen": "changes_link",
}

_CONSOLIDATED_SEGMENT_RE = re.compile(r"(eli/)cc/")


@dataclass(frozen=True, slots=True)
class RawDocumentMetadata:
    """Document metadata as found on the page, before normalization."""
    srn: str
    title: str
    source_link: str
    preface: Tag | None = None
    preamble: Tag | None = None
    in_force: bool | None = None          # None: no status indicator on page
    annexe: Mapping[str, str] = field(default_factory=dict)


def quelle_link_for(source_link: str) -> str:
    """Original-collection link: first ``eli/cc/`` segment becomes ``eli/oc/``."""
    return _CONSOLIDATED_SEGMENT_RE.sub(r"\1oc/", source_link, count=1)


def preface_text(
    preface: Tag | None,
    footnotes: FootnoteTable,
    *,
    diagnostics: DiagnosticSink = None,
) -> str:
    """Preface without its ``h1`` title and ``.srnummer`` line."""
    if preface is None:
        return ""
    work = detached_copy(preface)
    for el in work.select("h1, .srnummer"):
        el.decompose()
    return resolve(work, footnotes, diagnostics=diagnostics)


def preamble_text(
    preamble: Tag | None,
    footnotes: FootnoteTable,
    *,
    diagnostics: DiagnosticSink = None,
) -> str:
    if preamble is None:
        return ""
    return resolve(preamble, footnotes, line_break="\n", diagnostics=diagnostics)


def status_for(in_force: bool | None) -> str:
    return STATUS_IN_FORCE if in_force else STATUS_NOT_IN_FORCE


def map_annexe(annexe: Mapping[str, str]) -> dict[str, str]:
    """Translate annexe labels to LawDocument fields; unknown labels are dropped."""
    mapped: dict[str, str] = {}
    for label, value in annexe.items():
        field_name = ANNEXE_LABELS.get(collapse_whitespace(label))
        if field_name is None:
            log.debug("Ignoring annexe label %r", label)
            continue
        mapped[field_name] = value.strip()
    return mapped


def assemble_document(
    raw: RawDocumentMetadata,
    footnotes: FootnoteTable,
    *,
    diagnostics: DiagnosticSink = None,
) -> LawDocument:
    """Normalize *raw* into one LawDocument."""
    annexe = map_annexe(raw.annexe)
    document = LawDocument(
        srn=collapse_whitespace(raw.srn),
        title=collapse_whitespace(raw.title),
        preface=preface_text(raw.preface, footnotes, diagnostics=diagnostics),
        preamble=preamble_text(raw.preamble, footnotes, diagnostics=diagnostics),
        status=status_for(raw.in_force),
        source_link=raw.source_link,
        quelle_link=quelle_link_for(raw.source_link),
        **annexe,
    )
    log.debug("Assembled document %s (%s)", document.srn, document.short_name or "-")
    return document
