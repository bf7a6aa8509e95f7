"""DuckDB versioned upsert store for law documents and paragraphs.

Every write goes through :meth:`LawStore.upsert`, which looks up the current
row by natural key and then, inside one transaction:

* inserts it when absent (unset fields default to ``""``)           -> INSERTED
* does nothing when no candidate field differs                      -> UNCHANGED
* archives the current row verbatim into ``<table>_history`` and
  applies a partial update of only the changed fields               -> UPDATED

A candidate value only counts as a change when it is an update candidate
(see :func:`is_update_candidate`) and differs from the stored value, so a
missing or empty value never clears what is stored. Key columns are never
updated.

On a DuckDB failure the transaction is rolled back, one row is written to
``error_ledger`` keyed by srn, and :class:`StoreError` is raised. The caller
decides whether to continue.

Write discipline: single writer, sequential calls. There is no locking
beyond the per-call transaction.
"""
from __future__ import annotations

import contextlib
import importlib
import logging
import traceback
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from lawtext.law_types import LawDocument, ParagraphRecord, UpsertOutcome
from lawtext.schema import (
    DOCUMENTS,
    ENTITY_SPECS,
    PARAGRAPHS,
    EntitySpec,
    create_schema,
    ensure_schema_version,
)

# Dynamic DuckDB import for pyright compatibility
_duckdb_mod = importlib.import_module("duckdb")

# Base class of every DuckDB failure (connect, query, constraint)
DatabaseError: type[Exception] = _duckdb_mod.Error

log = logging.getLogger(__name__)

# Field-update policy: with True, "" is treated like a missing value and can
# never overwrite a stored one. Set to False to let "" clear a field.
BLANK_MEANS_ABSENT = True


class StoreError(RuntimeError):
    """A lookup/insert/update failed at the persistence boundary."""

    def __init__(self, kind: str, key: str, message: str) -> None:
        super().__init__(f"{kind} upsert failed for {key!r}: {message}")
        self.kind = kind
        self.key = key


def is_update_candidate(value: Any) -> bool:
    """Whether a candidate value may overwrite a stored one."""
    if value is None:
        return False
    return not (BLANK_MEANS_ABSENT and value == "")


def _key_value(value: Any) -> str:
    """Column value as stored: every entity column is VARCHAR."""
    return "" if value is None else str(value)


def changed_fields(
    spec: EntitySpec,
    existing: Mapping[str, Any],
    candidate: Mapping[str, Any],
) -> dict[str, str]:
    """Value columns whose candidate, in stored form, differs from the stored row."""
    changes: dict[str, str] = {}
    for col in spec.value_columns:
        if col not in candidate or not is_update_candidate(candidate[col]):
            continue
        value = _key_value(candidate[col])
        if value != existing.get(col):
            changes[col] = value
    return changes


def _now() -> datetime:
    """Naive UTC timestamp for TIMESTAMP columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _to_dict(cols: list[str], row: tuple[Any, ...]) -> dict[str, Any]:
    """Zip column names with a row tuple into a dict (strict length check)."""
    return dict(zip(cols, row, strict=True))


# ---------------------------------------------------------------------------
# LawStore class
# ---------------------------------------------------------------------------


class LawStore:
    """Read/write interface to the law-text DuckDB file."""

    def __init__(
        self,
        db_path: Path | str,
        *,
        create_if_missing: bool = False,
    ) -> None:
        self._db_path = Path(db_path)
        if not self._db_path.exists() and not create_if_missing:
            raise FileNotFoundError(f"Law store database not found: {self._db_path}")

        self._conn: Any = _duckdb_mod.connect(str(self._db_path))
        try:
            if create_if_missing:
                create_schema(self._conn)
            ensure_schema_version(self._conn)
        except Exception:
            self.close()
            raise

    def __enter__(self) -> LawStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ─── Upsert core ──────────────────────────────────────────────

    def upsert(
        self,
        kind: str,
        natural_key: Mapping[str, Any],
        candidate: Mapping[str, Any],
    ) -> UpsertOutcome:
        """Insert, update or leave the current row for *natural_key*.

        Args:
            kind: Entity kind, ``"document"`` or ``"paragraph"``.
            natural_key: Exactly the entity's key columns.
            candidate: Candidate column values (key columns may be repeated).

        Returns:
            The UpsertOutcome of this call.

        Raises:
            ValueError: unknown kind or incomplete natural key.
            StoreError: the lookup or write failed (already ledgered).
        """
        spec = ENTITY_SPECS.get(kind)
        if spec is None:
            raise ValueError(f"Unknown entity kind: {kind!r}")
        missing = set(spec.key_columns) - set(natural_key)
        if missing:
            raise ValueError(f"Natural key for {kind} is missing {sorted(missing)}")
        key = {col: _key_value(natural_key[col]) for col in spec.key_columns}
        business_key = key.get(spec.ledger_key, "")
        changes: dict[str, Any] = {}

        try:
            self._conn.begin()
            existing = self._lookup(spec, key)
            if existing is None:
                self._insert(spec, {**candidate, **key})
                outcome = UpsertOutcome.INSERTED
            else:
                changes = changed_fields(spec, existing, candidate)
                if changes:
                    self._archive(spec, existing["id"])
                    self._update(spec, existing["id"], changes)
                    outcome = UpsertOutcome.UPDATED
                else:
                    outcome = UpsertOutcome.UNCHANGED
            self._conn.commit()
        except _duckdb_mod.Error as exc:
            self._rollback()
            message = "".join(traceback.format_exception_only(exc)).strip()
            log.error("%s upsert failed for %s: %s", kind, business_key, message)
            self.log_error(business_key, message)
            raise StoreError(kind, business_key, message) from exc
        except BaseException:
            # Never leave the transaction open for the next call.
            self._rollback()
            raise

        if outcome is UpsertOutcome.UPDATED:
            log.debug("%s %s updated: %s", kind, business_key, sorted(changes))
        else:
            log.debug("%s %s %s", kind, business_key, outcome.value)
        return outcome

    def upsert_document(self, document: LawDocument) -> UpsertOutcome:
        row = document.to_row()
        return self.upsert(DOCUMENTS.kind, {"srn": row["srn"]}, row)

    def upsert_paragraph(self, record: ParagraphRecord) -> UpsertOutcome:
        row = record.to_row()
        key = {col: row[col] for col in PARAGRAPHS.key_columns}
        return self.upsert(PARAGRAPHS.kind, key, row)

    def _rollback(self) -> None:
        with contextlib.suppress(_duckdb_mod.Error):
            self._conn.rollback()

    def _lookup(self, spec: EntitySpec, key: Mapping[str, str]) -> dict[str, Any] | None:
        where = " AND ".join(f"{col} = ?" for col in spec.key_columns)
        rows = self._conn.execute(
            f"SELECT * FROM {spec.table} WHERE {where}",
            [key[col] for col in spec.key_columns],
        ).fetchall()
        if not rows:
            return None
        if len(rows) > 1:
            raise _duckdb_mod.ConstraintException(
                f"{len(rows)} current {spec.table} rows for one natural key"
            )
        cols = [d[0] for d in self._conn.description]
        return _to_dict(cols, rows[0])

    def _insert(self, spec: EntitySpec, values: Mapping[str, Any]) -> None:
        cols = ("inserted_at", *spec.columns)
        params = [_now(), *(_key_value(values.get(c)) for c in spec.columns)]
        placeholders = ", ".join("?" for _ in cols)
        self._conn.execute(
            f"INSERT INTO {spec.table} ({', '.join(cols)}) VALUES ({placeholders})",
            params,
        )

    def _archive(self, spec: EntitySpec, row_id: int) -> None:
        cols = ", ".join(spec.stored_columns)
        self._conn.execute(
            f"INSERT INTO {spec.history_table} ({cols}, archived_at) "
            f"SELECT {cols}, ? FROM {spec.table} WHERE id = ?",
            [_now(), row_id],
        )

    def _update(self, spec: EntitySpec, row_id: int, changes: Mapping[str, Any]) -> None:
        assignments = ", ".join(f"{col} = ?" for col in changes)
        self._conn.execute(
            f"UPDATE {spec.table} SET {assignments} WHERE id = ?",
            [*changes.values(), row_id],
        )

    # ─── Error ledger ─────────────────────────────────────────────

    def log_error(self, key: str, message: str) -> None:
        """Append one error_ledger row. A ledger failure is logged, not raised."""
        try:
            self._conn.execute(
                "INSERT INTO error_ledger (logged_at, key, message) VALUES (?, ?, ?)",
                [_now(), key, message],
            )
        except _duckdb_mod.Error:
            log.exception("Could not write error ledger entry for %s", key)

    def errors(self, key: str | None = None) -> list[dict[str, Any]]:
        if key is None:
            return self._fetch("SELECT * FROM error_ledger ORDER BY id", [])
        return self._fetch(
            "SELECT * FROM error_ledger WHERE key = ? ORDER BY id", [key]
        )

    # ─── Reads ────────────────────────────────────────────────────

    def _fetch(self, sql: str, params: list[Any]) -> list[dict[str, Any]]:
        rows = self._conn.execute(sql, params).fetchall()
        cols = [d[0] for d in self._conn.description]
        return [_to_dict(cols, row) for row in rows]

    def get_document(self, srn: str) -> dict[str, Any] | None:
        rows = self._fetch("SELECT * FROM documents WHERE srn = ?", [srn])
        return rows[0] if rows else None

    def get_paragraphs(self, srn: str) -> list[dict[str, Any]]:
        return self._fetch("SELECT * FROM paragraphs WHERE srn = ? ORDER BY id", [srn])

    def document_history(self, srn: str) -> list[dict[str, Any]]:
        return self._fetch(
            "SELECT * FROM documents_history WHERE srn = ? ORDER BY archived_at, rowid",
            [srn],
        )

    def paragraph_history(self, srn: str) -> list[dict[str, Any]]:
        return self._fetch(
            "SELECT * FROM paragraphs_history WHERE srn = ? ORDER BY archived_at, rowid",
            [srn],
        )

    def count(self, table: str) -> int:
        known = {"error_ledger"}
        for spec in ENTITY_SPECS.values():
            known.update((spec.table, spec.history_table))
        if table not in known:
            raise ValueError(f"Unknown table: {table!r}")
        row = self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(row[0]) if row else 0

    # ─── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
