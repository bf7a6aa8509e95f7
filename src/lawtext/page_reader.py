"""Parse a saved law page into the extraction input contract.

A page yields:

- ``RawDocumentMetadata`` from ``#preface``, ``#preamble``, the sidebar
  in-force indicator and the ``#annexeContent`` label/value block
- a FootnoteTable from ``div.footnotes``
- one ArticleSource per ``<article>``: the element (kept in the tree so the
  heading tracker can walk its ancestors) and its ordered ContentNodes

Fetching, navigation and link discovery are not done here; the caller hands
in HTML text.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup
from bs4.element import Tag

from lawtext.diagnostics import DiagnosticSink
from lawtext.documents import RawDocumentMetadata
from lawtext.footnotes import build_footnote_table, resolve
from lawtext.headings import HeadingContextTracker
from lawtext.html_utils import (
    collapse_whitespace,
    detached_copy,
    flatten_text,
    is_footnote_marker,
)
from lawtext.law_types import Article, ContentNode, FootnoteTable, NodeKind

log = logging.getLogger(__name__)

ARTICLE_BODY_SELECTOR = "div.collapseable"
ARTICLE_HEADING_SELECTOR = "h6.heading"
IN_FORCE_SELECTOR = "#sidebar app-in-force-status .soft-green"
_ITALIC_TAGS = ("i", "em")


@dataclass(frozen=True, slots=True)
class ArticleSource:
    element: Tag
    nodes: tuple[ContentNode, ...]

    @property
    def article_id(self) -> str:
        return str(self.element.get("id") or "")


@dataclass(frozen=True, slots=True)
class LawPage:
    metadata: RawDocumentMetadata
    footnotes: FootnoteTable
    articles: tuple[ArticleSource, ...]


# ---------------------------------------------------------------------------
# Node classification
# ---------------------------------------------------------------------------


def _has_class(element: Tag, name: str) -> bool:
    classes = element.get("class") or []
    return name in classes


def classify_element(element: Tag) -> NodeKind:
    """Map one article-body child to a NodeKind."""
    if element.name == "dl":
        return NodeKind.DEFINITION_LIST
    if element.name == "table" or (
        element.name == "div" and _has_class(element, "table") and element.find("table")
    ):
        return NodeKind.TABLE
    if element.name != "p":
        return NodeKind.UNKNOWN
    if _has_class(element, "reference"):
        return NodeKind.REFERENCE
    text = collapse_whitespace(element.get_text())
    if text:
        for italic in element.find_all(_ITALIC_TAGS):
            if collapse_whitespace(italic.get_text()) == text:
                return NodeKind.ITALIC
    return NodeKind.PLAIN


def content_nodes(article: Tag) -> tuple[ContentNode, ...]:
    """Ordered ContentNodes from the article body's direct children."""
    body = article.select_one(ARTICLE_BODY_SELECTOR)
    if body is None:
        return ()
    nodes: list[ContentNode] = []
    for child in body.find_all(True, recursive=False):
        nodes.append(ContentNode(
            kind=classify_element(child),
            element=child,
            position=len(nodes),
        ))
    return tuple(nodes)


# ---------------------------------------------------------------------------
# Page-level extraction
# ---------------------------------------------------------------------------


def _text_of(soup: BeautifulSoup, selector: str) -> str:
    el = soup.select_one(selector)
    return flatten_text(el) if el is not None else ""


def _title_text(soup: BeautifulSoup) -> str:
    """Title without its footnote anchors."""
    el = soup.select_one("#preface h1")
    if el is None:
        return ""
    work = detached_copy(el)
    for sup in work.find_all("sup"):
        if is_footnote_marker(sup):
            sup.decompose()
    return flatten_text(work)


def _annexe_pairs(soup: BeautifulSoup) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for div in soup.select("#annexeContent > div"):
        label_el = div.find("strong")
        if label_el is None:
            continue
        link = div.select_one("p a[href]")
        value_el = div.find("p")
        if link is not None:
            value = str(link["href"])
        elif value_el is not None:
            value = collapse_whitespace(value_el.get_text())
        else:
            continue
        pairs[collapse_whitespace(label_el.get_text())] = value
    return pairs


def _in_force(soup: BeautifulSoup) -> bool | None:
    if soup.select_one("#sidebar") is None:
        return None
    return soup.select_one(IN_FORCE_SELECTOR) is not None


def read_law_page(html: str, source_link: str) -> LawPage:
    """Parse one law page into metadata, footnotes and article sources."""
    soup = BeautifulSoup(html, "html.parser")
    metadata = RawDocumentMetadata(
        srn=_text_of(soup, "#preface .srnummer"),
        title=_title_text(soup),
        source_link=source_link,
        preface=soup.select_one("#preface"),
        preamble=soup.select_one("#preamble"),
        in_force=_in_force(soup),
        annexe=_annexe_pairs(soup),
    )
    articles = tuple(
        ArticleSource(element=el, nodes=content_nodes(el))
        for el in soup.find_all("article")
    )
    footnotes = build_footnote_table(soup)
    log.debug(
        "Read page %s: srn=%r, %d article(s), %d footnote(s)",
        source_link, metadata.srn, len(articles), len(footnotes),
    )
    return LawPage(metadata=metadata, footnotes=footnotes, articles=articles)


def build_article(
    source: ArticleSource,
    footnotes: FootnoteTable,
    tracker: HeadingContextTracker,
    *,
    diagnostics: DiagnosticSink = None,
) -> Article:
    """Article id, footnote-resolved name and hierarchy snapshot."""
    element = source.element
    heading = element.select_one(ARTICLE_HEADING_SELECTOR) or element.find(
        ["h1", "h2", "h3", "h4", "h5", "h6"]
    )
    name = (
        resolve(heading, footnotes, diagnostics=diagnostics)
        if isinstance(heading, Tag)
        else ""
    )
    return Article(
        article_id=source.article_id,
        article_name=name,
        hierarchy=tracker.context_for(element, diagnostics=diagnostics),
    )
