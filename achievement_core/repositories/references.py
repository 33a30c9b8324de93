from __future__ import annotations

import re
import threading
from datetime import datetime
from typing import Any

from achievement_core.db.postgres import PostgresTxRunner
from achievement_core.errors import conflict
from achievement_core.models import QueryConstraint

REFERENCE_COLUMNS: tuple[str, ...] = (
    "reference_id",
    "student_id",
    "detail_ref",
    "status",
    "created_at",
    "submitted_at",
    "verified_at",
    "verified_by",
    "rejection_note",
    "updated_at",
)

# Columns a status transition may write besides status/updated_at.
TRANSITION_COLUMNS: frozenset[str] = frozenset({"submitted_at", "verified_at", "verified_by", "rejection_note"})


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def _validate_changes(changes: dict[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - TRANSITION_COLUMNS
    if unknown:
        raise ValueError(f"unsupported transition columns: {sorted(unknown)}")
    return dict(changes)


def _iso(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _row_to_reference(row: tuple[Any, ...]) -> dict[str, Any]:
    item = dict(zip(REFERENCE_COLUMNS, row))
    for key in ("created_at", "submitted_at", "verified_at", "updated_at"):
        item[key] = _iso(item.get(key))
    return item


def _matches(row: dict[str, Any], constraint: QueryConstraint) -> bool:
    if row.get("status") in constraint.excluded_values():
        return False
    if constraint.student_ids is None:
        return True
    return row.get("student_id") in constraint.student_ids


class InMemoryReferencesRepository:
    def __init__(self, references: dict[str, dict[str, Any]], *, lock: threading.Lock | None = None) -> None:
        self._references = references
        self._lock = lock or threading.Lock()

    def create(self, *, reference: dict[str, Any]) -> dict[str, Any]:
        item = dict(reference)
        reference_id = str(item["reference_id"])
        with self._lock:
            if reference_id in self._references:
                raise conflict(f"duplicate reference_id: {reference_id}")
            self._references[reference_id] = item
        return dict(item)

    def get(self, *, reference_id: str) -> dict[str, Any] | None:
        row = self._references.get(reference_id)
        if row is None:
            return None
        return dict(row)

    def find_visible(self, *, reference_id: str, constraint: QueryConstraint) -> dict[str, Any] | None:
        row = self._references.get(reference_id)
        if row is None or not _matches(row, constraint):
            return None
        return dict(row)

    def list(self, *, constraint: QueryConstraint) -> list[dict[str, Any]]:
        if constraint.student_ids is not None and not constraint.student_ids:
            return []
        rows = [dict(x) for x in self._references.values() if _matches(x, constraint)]
        rows.sort(key=lambda x: str(x["reference_id"]))
        rows.sort(key=lambda x: str(x.get("created_at") or ""), reverse=True)
        return rows

    def list_all(self) -> list[dict[str, Any]]:
        return [dict(x) for x in self._references.values()]

    def transition(
        self,
        *,
        reference_id: str,
        expected_status: str,
        new_status: str,
        updated_at: str,
        changes: dict[str, Any] | None = None,
        student_id: str | None = None,
    ) -> dict[str, Any] | None:
        payload = _validate_changes(changes or {})
        with self._lock:
            row = self._references.get(reference_id)
            if row is None or row.get("status") != expected_status:
                return None
            if student_id is not None and row.get("student_id") != student_id:
                return None
            row.update(payload)
            row["status"] = new_status
            row["updated_at"] = updated_at
            return dict(row)


class PostgresReferencesRepository:
    """Achievement references in PostgreSQL; status changes are single conditional UPDATEs."""

    def __init__(self, *, tx_runner: PostgresTxRunner, table_name: str = "achievement_references") -> None:
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)
        self._columns = ", ".join(REFERENCE_COLUMNS)

    def create(self, *, reference: dict[str, Any]) -> dict[str, Any]:
        item = dict(reference)
        sql = f"""
            INSERT INTO {self._table_name} ({self._columns})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """

        def _op(conn: Any) -> dict[str, Any]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(item.get(column) for column in REFERENCE_COLUMNS))
            return item

        return self._tx_runner.run_in_tx(fn=_op)

    def get(self, *, reference_id: str) -> dict[str, Any] | None:
        sql = f"""
            SELECT {self._columns}
            FROM {self._table_name}
            WHERE reference_id = %s
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (reference_id,))
                row = cur.fetchone()
            return None if row is None else _row_to_reference(row)

        return self._tx_runner.run_in_tx(fn=_op)

    @staticmethod
    def _constraint_sql(constraint: QueryConstraint) -> tuple[str, list[Any]]:
        clauses = ["status <> ALL(%s)"]
        params: list[Any] = [constraint.excluded_values()]
        if constraint.student_ids is not None:
            clauses.append("student_id = ANY(%s)")
            params.append(list(constraint.student_ids))
        return " AND ".join(clauses), params

    def find_visible(self, *, reference_id: str, constraint: QueryConstraint) -> dict[str, Any] | None:
        if constraint.student_ids is not None and not constraint.student_ids:
            return None
        where, params = self._constraint_sql(constraint)
        sql = f"""
            SELECT {self._columns}
            FROM {self._table_name}
            WHERE reference_id = %s AND {where}
            LIMIT 1
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, (reference_id, *params))
                row = cur.fetchone()
            return None if row is None else _row_to_reference(row)

        return self._tx_runner.run_in_tx(fn=_op)

    def list(self, *, constraint: QueryConstraint) -> list[dict[str, Any]]:
        if constraint.student_ids is not None and not constraint.student_ids:
            return []
        where, params = self._constraint_sql(constraint)
        sql = f"""
            SELECT {self._columns}
            FROM {self._table_name}
            WHERE {where}
            ORDER BY created_at DESC, reference_id ASC
        """

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(params))
                rows = cur.fetchall() or []
            return [_row_to_reference(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def list_all(self) -> list[dict[str, Any]]:
        sql = f"SELECT {self._columns} FROM {self._table_name} ORDER BY created_at ASC"

        def _op(conn: Any) -> list[dict[str, Any]]:
            with conn.cursor() as cur:
                cur.execute(sql)
                rows = cur.fetchall() or []
            return [_row_to_reference(row) for row in rows]

        return self._tx_runner.run_in_tx(fn=_op)

    def transition(
        self,
        *,
        reference_id: str,
        expected_status: str,
        new_status: str,
        updated_at: str,
        changes: dict[str, Any] | None = None,
        student_id: str | None = None,
    ) -> dict[str, Any] | None:
        payload = _validate_changes(changes or {})
        assignments = ["status = %s", "updated_at = %s"]
        params: list[Any] = [new_status, updated_at]
        for column in sorted(payload):
            assignments.append(f"{column} = %s")
            params.append(payload[column])
        where = "reference_id = %s AND status = %s"
        params.extend([reference_id, expected_status])
        if student_id is not None:
            where += " AND student_id = %s"
            params.append(student_id)
        sql = f"""
            UPDATE {self._table_name}
            SET {", ".join(assignments)}
            WHERE {where}
            RETURNING {self._columns}
        """

        def _op(conn: Any) -> dict[str, Any] | None:
            with conn.cursor() as cur:
                cur.execute(sql, tuple(params))
                row = cur.fetchone()
            return None if row is None else _row_to_reference(row)

        return self._tx_runner.run_in_tx(fn=_op)
