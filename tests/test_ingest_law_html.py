"""Tests for scripts/ingest_law_html.py."""
from __future__ import annotations

import importlib.util
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from lawtext.io_utils import load_jsonl
from lawtext.law_store import LawStore

ROOT = Path(__file__).resolve().parents[1]
SCRIPT = ROOT / "scripts" / "ingest_law_html.py"
FIXTURE = ROOT / "tests" / "fixtures" / "law_page.html"
SOURCE_LINK = "https://www.fedlex.admin.ch/eli/cc/24/233_245_233/de"


def _load_module() -> object:
    spec = importlib.util.spec_from_file_location("ingest_law_html", SCRIPT)
    assert spec is not None
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


class TestIngestLawHtml:
    def test_ingest_creates_store(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_module()
        db = tmp_path / "law.duckdb"
        rc = mod.main([  # type: ignore[attr-defined]
            "--html", str(FIXTURE),
            "--source-link", SOURCE_LINK,
            "--db", str(db),
            "--create-if-missing",
        ])
        assert rc == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["failed"] == 0
        assert summary["pages"][0]["srn"] == "210"
        assert summary["pages"][0]["paragraphs"]["inserted"] == 5

        with LawStore(db) as store:
            assert store.count("paragraphs") == 5
            doc = store.get_document("210")
            assert doc is not None
            assert doc["source_link"] == SOURCE_LINK

    def test_missing_store_without_create(self, tmp_path: Path) -> None:
        mod = _load_module()
        rc = mod.main([  # type: ignore[attr-defined]
            "--html", str(FIXTURE), "--db", str(tmp_path / "absent.duckdb"),
        ])
        assert rc == 2

    def test_unopenable_store(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_module()
        bad = tmp_path / "not_a_db.duckdb"
        bad.write_bytes(b"this is not a duckdb file\n" * 200)
        rc = mod.main([  # type: ignore[attr-defined]
            "--html", str(FIXTURE), "--db", str(bad),
        ])
        assert rc == 2
        assert "Cannot open store" in capsys.readouterr().err

    def test_dump_jsonl(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        mod = _load_module()
        out = tmp_path / "records.jsonl"
        rc = mod.main([  # type: ignore[attr-defined]
            "--html", str(FIXTURE),
            "--db", str(tmp_path / "law.duckdb"),
            "--create-if-missing",
            "--dump-jsonl", str(out),
        ])
        capsys.readouterr()
        assert rc == 0
        rows = load_jsonl(out)
        assert [r["absatz"] for r in rows] == ["1", "2", "1", "2", "3bis"]
        assert rows[4]["sub_section_id"] == "1"

    def test_unreadable_page_fails_run(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        mod = _load_module()
        rc = mod.main([  # type: ignore[attr-defined]
            "--html", str(FIXTURE), str(tmp_path / "missing.html"),
            "--db", str(tmp_path / "law.duckdb"),
            "--create-if-missing",
        ])
        summary = json.loads(capsys.readouterr().out)
        assert rc == 1
        assert summary["unreadable"] == 1
        assert len(summary["pages"]) == 1

    def test_source_link_count_must_match(self, tmp_path: Path) -> None:
        mod = _load_module()
        with pytest.raises(SystemExit):
            mod.main([  # type: ignore[attr-defined]
                "--html", str(FIXTURE), str(FIXTURE),
                "--source-link", SOURCE_LINK,
                "--db", str(tmp_path / "law.duckdb"),
            ])

    def test_db_from_environment(self, tmp_path: Path) -> None:
        env = os.environ.copy()
        env["PYTHONPATH"] = str(ROOT / "src")
        env["LAWTEXT_DB"] = str(tmp_path / "env.duckdb")
        proc = subprocess.run(
            [sys.executable, str(SCRIPT), "--html", str(FIXTURE), "--create-if-missing"],
            capture_output=True,
            text=True,
            env=env,
            cwd=tmp_path,
            check=False,
        )
        assert proc.returncode == 0, proc.stderr
        assert json.loads(proc.stdout)["db"] == str(tmp_path / "env.duckdb")
        assert (tmp_path / "env.duckdb").exists()
