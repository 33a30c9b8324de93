from __future__ import annotations

import re
from typing import Any

from achievement_core.db.postgres import PostgresTxRunner


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class InMemoryDirectoryRepository:
    """Student/lecturer directory lookups backed by plain dicts keyed by record id."""

    def __init__(
        self,
        students: dict[str, dict[str, Any]] | None = None,
        lecturers: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self._students = {} if students is None else students
        self._lecturers = {} if lecturers is None else lecturers

    def add_lecturer(self, *, lecturer_id: str, user_id: str) -> dict[str, Any]:
        row = {"id": lecturer_id, "user_id": user_id}
        self._lecturers[lecturer_id] = row
        return dict(row)

    def add_student(self, *, student_id: str, user_id: str, advisor_id: str | None = None) -> dict[str, Any]:
        row = {"id": student_id, "user_id": user_id, "advisor_id": advisor_id}
        self._students[student_id] = row
        return dict(row)

    def resolve_student_id_for_user(self, *, user_id: str) -> str | None:
        for row in self._students.values():
            if row.get("user_id") == user_id:
                return str(row["id"])
        return None

    def resolve_lecturer_id_for_user(self, *, user_id: str) -> str | None:
        for row in self._lecturers.values():
            if row.get("user_id") == user_id:
                return str(row["id"])
        return None

    def resolve_advisee_student_ids(self, *, lecturer_id: str) -> list[str]:
        return sorted(str(row["id"]) for row in self._students.values() if row.get("advisor_id") == lecturer_id)


class PostgresDirectoryRepository:
    def __init__(
        self,
        *,
        tx_runner: PostgresTxRunner,
        students_table: str = "students",
        lecturers_table: str = "lecturers",
    ) -> None:
        self._tx_runner = tx_runner
        self._students_table = _validate_identifier(students_table)
        self._lecturers_table = _validate_identifier(lecturers_table)

    def _scalar(self, sql: str, params: tuple[Any, ...]) -> str | None:
        def _op(conn: Any) -> str | None:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
            return None if row is None else str(row[0])

        return self._tx_runner.run_in_tx(fn=_op)

    def resolve_student_id_for_user(self, *, user_id: str) -> str | None:
        return self._scalar(f"SELECT id FROM {self._students_table} WHERE user_id = %s LIMIT 1", (user_id,))

    def resolve_lecturer_id_for_user(self, *, user_id: str) -> str | None:
        return self._scalar(f"SELECT id FROM {self._lecturers_table} WHERE user_id = %s LIMIT 1", (user_id,))

    def resolve_advisee_student_ids(self, *, lecturer_id: str) -> list[str]:
        sql = f"SELECT id FROM {self._students_table} WHERE advisor_id = %s ORDER BY id ASC"

        def _op(conn: Any) -> list[str]:
            with conn.cursor() as cur:
                cur.execute(sql, (lecturer_id,))
                rows = cur.fetchall() or []
            return [str(row[0]) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)
