"""orjson-backed JSON and JSON Lines helpers for records and run summaries."""
from __future__ import annotations

import dataclasses
import sys
from pathlib import Path
from typing import Any

import orjson

from lawtext.law_types import HierarchyContext


def record_to_dict(record: Any) -> dict[str, Any]:
    """Flatten a record dataclass; a HierarchyContext becomes its columns."""
    out: dict[str, Any] = {}
    for f in dataclasses.fields(record):
        value = getattr(record, f.name)
        if isinstance(value, HierarchyContext):
            out.update(value.to_columns())
        elif dataclasses.is_dataclass(value) and not isinstance(value, type):
            out[f.name] = dataclasses.asdict(value)
        else:
            out[f.name] = value
    return out


def dump_json(obj: Any) -> None:
    """Write *obj* as indented JSON to stdout."""
    sys.stdout.buffer.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")
    sys.stdout.flush()


def save_json(obj: Any, path: Path, *, pretty: bool = True) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    path.write_bytes(orjson.dumps(obj, option=opts))


def load_jsonl(path: Path) -> list[dict[str, Any]]:
    """Load a JSON Lines file (one JSON object per line). Blank lines skipped."""
    records: list[dict[str, Any]] = []
    for line in path.read_bytes().split(b"\n"):
        line = line.strip()
        if line:
            records.append(orjson.loads(line))
    return records


def save_jsonl(records: list[dict[str, Any]], path: Path) -> None:
    """Save a list of dicts as a JSON Lines file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [orjson.dumps(r) for r in records]
    path.write_bytes(b"\n".join(lines) + (b"\n" if lines else b""))
