from __future__ import annotations

from typing import Any

from achievement_core.db.postgres import PostgresTxRunner

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS lecturers (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE,
        lecturer_code TEXT,
        department TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE,
        student_number TEXT,
        program_study TEXT,
        academic_year TEXT,
        advisor_id TEXT REFERENCES lecturers(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS achievement_references (
        reference_id TEXT PRIMARY KEY,
        student_id TEXT NOT NULL REFERENCES students(id),
        detail_ref CHAR(24) NOT NULL UNIQUE,
        status TEXT NOT NULL DEFAULT 'draft'
            CHECK (status IN ('draft', 'submitted', 'verified', 'rejected', 'deleted')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        submitted_at TIMESTAMPTZ,
        verified_at TIMESTAMPTZ,
        verified_by TEXT,
        rejection_note TEXT,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_achievement_references_student ON achievement_references (student_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_students_advisor ON students (advisor_id)",
)


def apply_schema(tx_runner: PostgresTxRunner) -> list[str]:
    def _op(conn: Any) -> list[str]:
        applied: list[str] = []
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
                applied.append(" ".join(statement.split())[:80])
        return applied

    return tx_runner.run_in_tx(fn=_op)
