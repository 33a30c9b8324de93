from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

from achievement_core.errors import ApiError, conflict, internal_failure, store_timeout

logger = logging.getLogger(__name__)


def _import_psycopg() -> Any:
    try:
        import psycopg  # type: ignore
    except ImportError as exc:
        raise RuntimeError("psycopg is required for PostgreSQL backends; install psycopg[binary]") from exc
    return psycopg


def _is_timeout(psycopg: Any, exc: Exception) -> bool:
    errors_mod = getattr(psycopg, "errors", None)
    query_canceled = getattr(errors_mod, "QueryCanceled", None)
    if isinstance(query_canceled, type) and isinstance(exc, query_canceled):
        return True
    conn_timeout = getattr(psycopg, "ConnectionTimeout", None)
    if isinstance(conn_timeout, type) and isinstance(exc, conn_timeout):
        return True
    return False


class PostgresTxRunner:
    """Run callback logic in one PostgreSQL transaction bounded by a statement timeout."""

    def __init__(self, dsn: str, *, timeout_ms: int = 5000) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self._dsn = dsn.strip()
        self._timeout_ms = int(timeout_ms)

    def run_in_tx(self, *, fn: Callable[[Any], Any]) -> Any:
        psycopg = _import_psycopg()
        driver_error = psycopg.Error
        try:
            with psycopg.connect(
                self._dsn,
                connect_timeout=max(1, math.ceil(self._timeout_ms / 1000)),
            ) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "SELECT set_config('statement_timeout', %s, true)",
                        (str(self._timeout_ms),),
                    )
                result = fn(conn)
                conn.commit()
                return result
        except ApiError:
            raise
        except driver_error as exc:
            unique_violation = getattr(getattr(psycopg, "errors", None), "UniqueViolation", None)
            if isinstance(unique_violation, type) and isinstance(exc, unique_violation):
                logger.warning("postgres_unique_violation error=%s", type(exc).__name__)
                raise conflict("record already exists") from exc
            if _is_timeout(psycopg, exc):
                logger.warning("postgres_timeout timeout_ms=%s error=%s", self._timeout_ms, type(exc).__name__)
                raise store_timeout("relational store timed out") from exc
            logger.error("postgres_failure error=%s", type(exc).__name__)
            raise internal_failure("relational store unavailable") from exc
