"""Tests for lawtext.page_reader - page parsing into the extraction inputs."""
from __future__ import annotations

from pathlib import Path

import pytest
from bs4 import BeautifulSoup

from lawtext.headings import HeadingContextTracker
from lawtext.html_utils import read_file
from lawtext.law_types import HeadingLevel, NodeKind
from lawtext.page_reader import (
    LawPage,
    build_article,
    classify_element,
    content_nodes,
    read_law_page,
)

ROOT = Path(__file__).resolve().parents[1]
SOURCE_LINK = "https://www.fedlex.admin.ch/eli/cc/24/233_245_233/de"


@pytest.fixture()
def page() -> LawPage:
    html = read_file(ROOT / "tests" / "fixtures" / "law_page.html")
    return read_law_page(html, SOURCE_LINK)


def _first(html: str):
    return BeautifulSoup(html, "html.parser").find(True)


class TestClassifyElement:
    def test_kinds(self) -> None:
        assert classify_element(_first("<p><sup>1</sup> x</p>")) is NodeKind.PLAIN
        assert classify_element(_first("<p><i>1. Allgemeines</i></p>")) is NodeKind.ITALIC
        assert classify_element(_first("<p> <em>Titel:</em> </p>")) is NodeKind.ITALIC
        assert classify_element(_first('<p class="reference">Art. 8</p>')) is NodeKind.REFERENCE
        assert classify_element(_first("<dl><dt>a</dt></dl>")) is NodeKind.DEFINITION_LIST
        assert classify_element(_first("<table></table>")) is NodeKind.TABLE
        assert classify_element(
            _first('<div class="table"><table></table></div>')
        ) is NodeKind.TABLE
        assert classify_element(_first("<ul><li>x</li></ul>")) is NodeKind.UNKNOWN

    def test_partial_italic_is_plain(self) -> None:
        assert classify_element(_first("<p>Text <i>kursiv</i></p>")) is NodeKind.PLAIN

    def test_empty_paragraph_is_plain(self) -> None:
        assert classify_element(_first("<p><i></i></p>")) is NodeKind.PLAIN


class TestContentNodes:
    def test_positions_in_document_order(self) -> None:
        article = _first(
            '<article><div class="collapseable"><p>a</p><dl></dl><p>b</p></div></article>'
        )
        nodes = content_nodes(article)
        assert [n.position for n in nodes] == [0, 1, 2]
        assert [n.kind for n in nodes] == [
            NodeKind.PLAIN, NodeKind.DEFINITION_LIST, NodeKind.PLAIN,
        ]

    def test_missing_body(self) -> None:
        assert content_nodes(_first("<article><p>x</p></article>")) == ()


class TestReadLawPage:
    def test_metadata(self, page: LawPage) -> None:
        meta = page.metadata
        assert meta.srn == "210"
        assert meta.title == "Schweizerisches Zivilgesetzbuch"
        assert meta.source_link == SOURCE_LINK
        assert meta.in_force is True
        assert meta.preface is not None
        assert meta.preamble is not None

    def test_annexe_pairs(self, page: LawPage) -> None:
        annexe = page.metadata.annexe
        assert annexe["Abkürzung"] == "ZGB"
        assert annexe["Chronologie"].endswith("#chronology")
        assert annexe["Sprache"] == "de"

    def test_footnotes(self, page: LawPage) -> None:
        assert set(page.footnotes) == {"fn-d6e12", "fn-d6e99", "fn-d6e150"}

    def test_articles(self, page: LawPage) -> None:
        assert [a.article_id for a in page.articles] == ["art_1", "art_11"]
        assert len(page.articles[1].nodes) == 7

    def test_without_sidebar(self) -> None:
        page = read_law_page('<div id="preface"><p class="srnummer">1</p></div>', "x")
        assert page.metadata.in_force is None
        assert page.metadata.preamble is None
        assert page.articles == ()

    def test_sidebar_without_status(self) -> None:
        page = read_law_page('<div id="sidebar"></div>', "x")
        assert page.metadata.in_force is False


class TestBuildArticle:
    def test_name_and_hierarchy(self, page: LawPage) -> None:
        article = build_article(page.articles[1], page.footnotes, HeadingContextTracker())
        assert article.article_id == "art_11"
        assert article.article_name == "Art. 11 I. Rechtsfähigkeit"
        assert article.hierarchy[HeadingLevel.SUB_SECTION].id == "1"
        assert article.hierarchy[HeadingLevel.SECTION].name == "Erster Teil: Das Personenrecht"

    def test_top_level_article(self, page: LawPage) -> None:
        article = build_article(page.articles[0], page.footnotes, HeadingContextTracker())
        assert article.article_name == "Art. 1 A. Anwendung des Rechts"
        assert all(not h.name for h in article.hierarchy.slots)
