"""DuckDB schema for the law-text store.

Tables:
    documents           - current document rows (one per srn)
    documents_history   - archived document rows (append-only)
    paragraphs          - current paragraph rows (one per natural key)
    paragraphs_history  - archived paragraph rows (append-only)
    error_ledger        - store failures keyed by srn
    _schema_version     - schema version tracking

History tables repeat the current table's columns, in the same order, and
add ``archived_at``. Creation and teardown are administrative operations;
the store itself only reads and writes rows.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from lawtext.law_types import HeadingLevel

SCHEMA_VERSION = "1.0.0"


class SchemaVersionError(RuntimeError):
    """Raised when a store DB schema version does not match expected."""


# ---------------------------------------------------------------------------
# Entity specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EntitySpec:
    """Column layout and natural key of one versioned entity kind."""
    kind: str
    table: str
    columns: tuple[str, ...]       # business columns, DDL order
    key_columns: tuple[str, ...]   # natural key (subset of columns)
    ledger_key: str = "srn"        # business identifier for the error ledger

    @property
    def history_table(self) -> str:
        return f"{self.table}_history"

    @property
    def sequence(self) -> str:
        return f"{self.table}_id_seq"

    @property
    def stored_columns(self) -> tuple[str, ...]:
        """Every column of the current table, surrogate columns first."""
        return ("id", "inserted_at", *self.columns)

    @property
    def value_columns(self) -> tuple[str, ...]:
        return tuple(c for c in self.columns if c not in self.key_columns)


_HIERARCHY_COLUMNS: tuple[str, ...] = tuple(
    f"{level.column_prefix}_{part}"
    for level in reversed(HeadingLevel)
    for part in ("id", "name")
)

DOCUMENTS = EntitySpec(
    kind="document",
    table="documents",
    columns=(
        "srn",
        "title",
        "preface",
        "preamble",
        "status",
        "short_name",
        "decision_date",
        "effective_date",
        "source_name",
        "chronology_link",
        "changes_link",
        "source_link",
        "quelle_link",
    ),
    key_columns=("srn",),
)

PARAGRAPHS = EntitySpec(
    kind="paragraph",
    table="paragraphs",
    columns=(
        "srn",
        "short_name",
        *_HIERARCHY_COLUMNS,
        "article_id",
        "article_name",
        "reference",
        "ziffer_id",
        "ziffer_name",
        "absatz",
        "text_w_footnotes",
    ),
    key_columns=("srn", *_HIERARCHY_COLUMNS, "article_id", "ziffer_id", "absatz"),
)

ENTITY_SPECS: dict[str, EntitySpec] = {s.kind: s for s in (DOCUMENTS, PARAGRAPHS)}


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------


def _column_defs(spec: EntitySpec) -> str:
    return ",\n    ".join(f"{c} VARCHAR NOT NULL DEFAULT ''" for c in spec.columns)


def _entity_ddl(spec: EntitySpec) -> list[str]:
    unique = ", ".join(spec.key_columns)
    return [
        f"CREATE SEQUENCE IF NOT EXISTS {spec.sequence}",
        f"""CREATE TABLE IF NOT EXISTS {spec.table} (
    id BIGINT PRIMARY KEY DEFAULT nextval('{spec.sequence}'),
    inserted_at TIMESTAMP NOT NULL,
    {_column_defs(spec)},
    UNIQUE ({unique})
)""",
        f"CREATE INDEX IF NOT EXISTS idx_{spec.table}_srn ON {spec.table}(srn)",
        f"""CREATE TABLE IF NOT EXISTS {spec.history_table} (
    id BIGINT NOT NULL,
    inserted_at TIMESTAMP NOT NULL,
    {_column_defs(spec)},
    archived_at TIMESTAMP NOT NULL
)""",
        f"CREATE INDEX IF NOT EXISTS idx_{spec.history_table}_srn "
        f"ON {spec.history_table}(srn)",
    ]


_BASE_DDL: list[str] = [
    """CREATE TABLE IF NOT EXISTS _schema_version (
    table_name VARCHAR PRIMARY KEY,
    version VARCHAR NOT NULL
)""",
    "CREATE SEQUENCE IF NOT EXISTS error_ledger_id_seq",
    """CREATE TABLE IF NOT EXISTS error_ledger (
    id BIGINT PRIMARY KEY DEFAULT nextval('error_ledger_id_seq'),
    logged_at TIMESTAMP NOT NULL,
    key VARCHAR NOT NULL,
    message VARCHAR NOT NULL
)""",
]


def schema_statements() -> list[str]:
    statements = list(_BASE_DDL)
    for spec in ENTITY_SPECS.values():
        statements.extend(_entity_ddl(spec))
    return statements


def create_schema(conn: Any) -> None:
    """Create all tables (idempotent) and record the schema version.

    An existing version row is left alone so a stale store still fails
    :func:`ensure_schema_version`.
    """
    for stmt in schema_statements():
        conn.execute(stmt)
    conn.execute(
        "INSERT OR IGNORE INTO _schema_version (table_name, version) VALUES (?, ?)",
        ["lawtext", SCHEMA_VERSION],
    )


def drop_schema(conn: Any) -> None:
    """Drop every store table and sequence."""
    for spec in ENTITY_SPECS.values():
        conn.execute(f"DROP TABLE IF EXISTS {spec.history_table}")
        conn.execute(f"DROP TABLE IF EXISTS {spec.table}")
        conn.execute(f"DROP SEQUENCE IF EXISTS {spec.sequence}")
    conn.execute("DROP TABLE IF EXISTS error_ledger")
    conn.execute("DROP SEQUENCE IF EXISTS error_ledger_id_seq")
    conn.execute("DROP TABLE IF EXISTS _schema_version")


def _read_schema_version(conn: Any) -> str:
    try:
        row = conn.execute(
            "SELECT version FROM _schema_version WHERE table_name = 'lawtext'"
        ).fetchone()
    except Exception:
        return "unknown"
    return str(row[0]) if row else "unknown"


def ensure_schema_version(conn: Any, *, expected: str = SCHEMA_VERSION) -> str:
    """Return the stored schema version; raise SchemaVersionError on mismatch."""
    actual = _read_schema_version(conn)
    if actual != expected:
        raise SchemaVersionError(
            f"Schema version mismatch: expected {expected}, got {actual}"
        )
    return actual
