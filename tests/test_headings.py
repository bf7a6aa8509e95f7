"""Tests for lawtext.headings - hierarchy context from enclosing sections."""
from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from lawtext.headings import (
    HeadingContextTracker,
    enclosing_headings,
    fill_by_label,
    fill_positional,
    heading_from_element,
    label_level,
)
from lawtext.law_types import (
    EMPTY_HEADING,
    Diagnostic,
    DiagnosticKind,
    Heading,
    HeadingLevel,
)

NESTED = """
<main>
  <section id="lvl_I">
    <h1>Erster Teil: Allgemeines</h1>
    <section id="lvl_I/1">
      <h2>1. Titel: Die Ehe<sup><a href="#fn-3">3</a></sup></h2>
      <article id="art_1"><h6 class="heading">Art. 1</h6></article>
      <section id="lvl_I/1/a">
        <h3>2a. Abschnitt: Verlobung</h3>
        <article id="art_2"><h6 class="heading">Art. 2</h6></article>
      </section>
    </section>
  </section>
  <article id="art_0"><h6 class="heading">Art. 0</h6></article>
</main>
"""


def _soup() -> BeautifulSoup:
    return BeautifulSoup(NESTED, "html.parser")


def _headings(*names: str) -> list[Heading]:
    return [Heading(id=str(i), name=n) for i, n in enumerate(names)]


class TestHeadingExtraction:
    def test_footnote_marker_dropped(self) -> None:
        h2 = _soup().find("h2")
        assert heading_from_element(h2) == Heading(id="1", name="1. Titel: Die Ehe")

    def test_letter_suffix_id(self) -> None:
        h3 = _soup().find("h3")
        assert heading_from_element(h3).id == "2a"

    def test_nearest_first(self) -> None:
        art = _soup().find(id="art_2")
        names = [h.name for h in enclosing_headings(art)]
        assert names == [
            "2a. Abschnitt: Verlobung",
            "1. Titel: Die Ehe",
            "Erster Teil: Allgemeines",
        ]

    def test_top_level_article(self) -> None:
        assert enclosing_headings(_soup().find(id="art_0")) == []


class TestFillPositional:
    def test_nearest_fills_most_specific(self) -> None:
        ctx = fill_positional(_headings("a", "b", "c"))
        assert ctx[HeadingLevel.SUB_SECTION].name == "a"
        assert ctx[HeadingLevel.SECTION].name == "b"
        assert ctx[HeadingLevel.SUB_CHAPTER].name == "c"
        assert ctx[HeadingLevel.BOOK] == EMPTY_HEADING

    def test_no_headings_all_empty(self) -> None:
        ctx = fill_positional([])
        assert all(h == EMPTY_HEADING for h in ctx.slots)

    def test_eight_headings_fill_every_slot(self) -> None:
        sink: list[Diagnostic] = []
        ctx = fill_positional(_headings(*"abcdefgh"), "art_x", sink)
        assert ctx[HeadingLevel.BOOK].name == "h"
        assert sink == []

    def test_overflow_reported(self) -> None:
        sink: list[Diagnostic] = []
        ctx = fill_positional(_headings(*"abcdefghij"), "art_x", sink)
        assert ctx[HeadingLevel.BOOK].name == "h"
        assert len(sink) == 1
        assert sink[0].kind is DiagnosticKind.EXTRACTION_AMBIGUITY
        assert sink[0].location == "art_x"
        assert "i, j" in sink[0].detail


class TestFillByLabel:
    def test_label_levels(self) -> None:
        assert label_level(Heading(name="2a. Abschnitt: Verlobung")) is HeadingLevel.SECTION
        assert label_level(Heading(name="3. Unterabschnitt: X")) is HeadingLevel.SUB_SECTION
        assert label_level(Heading(name="1. Titel: Die Ehe")) is HeadingLevel.TITLE
        assert label_level(Heading(name="Erster Teil: Allgemeines")) is None

    def test_labelled_slots_with_positional_fallback(self) -> None:
        headings = [
            Heading("2a", "2a. Abschnitt: Verlobung"),
            Heading("1", "1. Titel: Die Ehe"),
            Heading("", "Erster Teil: Allgemeines"),
        ]
        ctx = fill_by_label(headings)
        assert ctx[HeadingLevel.SECTION].id == "2a"
        assert ctx[HeadingLevel.TITLE].id == "1"
        # unlabelled heading takes the first free slot
        assert ctx[HeadingLevel.SUB_SECTION].name == "Erster Teil: Allgemeines"


class TestHeadingContextTracker:
    def test_positional_context(self) -> None:
        tracker = HeadingContextTracker()
        ctx = tracker.context_for(_soup().find(id="art_1"))
        assert ctx[HeadingLevel.SUB_SECTION] == Heading("1", "1. Titel: Die Ehe")
        assert ctx[HeadingLevel.SECTION].name == "Erster Teil: Allgemeines"

    def test_label_strategy(self) -> None:
        tracker = HeadingContextTracker("label")
        ctx = tracker.context_for(_soup().find(id="art_2"))
        assert ctx[HeadingLevel.SECTION].id == "2a"
        assert ctx[HeadingLevel.TITLE].id == "1"

    def test_to_columns(self) -> None:
        ctx = HeadingContextTracker().context_for(_soup().find(id="art_2"))
        cols = ctx.to_columns()
        assert len(cols) == 16
        assert cols["sub_section_id"] == "2a"
        assert cols["book_name"] == ""

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown heading strategy"):
            HeadingContextTracker("alphabetical")
