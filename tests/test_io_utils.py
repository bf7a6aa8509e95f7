"""Tests for lawtext.io_utils module."""
from pathlib import Path

from lawtext.io_utils import load_jsonl, record_to_dict, save_json, save_jsonl
from lawtext.law_types import (
    Diagnostic,
    DiagnosticKind,
    Heading,
    HeadingLevel,
    HierarchyContext,
    ParagraphRecord,
)


class TestRecordToDict:
    def test_paragraph_hierarchy_flattened(self) -> None:
        rec = ParagraphRecord(
            srn="210",
            short_name="ZGB",
            hierarchy=HierarchyContext().with_slot(HeadingLevel.BOOK, Heading("1", "Buch 1")),
            article_id="art_1",
            article_name="Art. 1",
            reference="",
            ziffer_id="",
            ziffer_name="",
            absatz="1",
            text="Text",
        )
        out = record_to_dict(rec)
        assert "hierarchy" not in out
        assert out["book_id"] == "1"
        assert out["sub_section_name"] == ""
        assert out["text"] == "Text"

    def test_diagnostic(self) -> None:
        out = record_to_dict(Diagnostic(DiagnosticKind.MISSING_FOOTNOTE, "fn-1", "x"))
        assert out == {"kind": "missing_footnote", "location": "fn-1", "detail": "x"}


class TestJsonFiles:
    def test_jsonl_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "out" / "records.jsonl"
        rows = [{"srn": "210", "text": "Übergang"}, {"srn": "101", "text": ""}]
        save_jsonl(rows, path)
        assert load_jsonl(path) == rows

    def test_empty_jsonl(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.jsonl"
        save_jsonl([], path)
        assert path.read_bytes() == b""
        assert load_jsonl(path) == []

    def test_save_json_sorted(self, tmp_path: Path) -> None:
        path = tmp_path / "summary.json"
        save_json({"b": 1, "a": 2}, path)
        assert path.read_text().index('"a"') < path.read_text().index('"b"')
