from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from achievement_core.errors import ApiError, internal_failure, store_timeout

logger = logging.getLogger(__name__)


def _import_pymongo() -> Any:
    try:
        import pymongo  # type: ignore
    except ImportError as exc:
        raise RuntimeError("pymongo is required for MongoDB backends; install pymongo") from exc
    return pymongo


class MongoCollectionRunner:
    """Run callback logic against one MongoDB collection with bounded timeouts."""

    def __init__(
        self,
        uri: str,
        *,
        database: str,
        collection: str,
        timeout_ms: int = 5000,
    ) -> None:
        if not uri.strip():
            raise ValueError("MONGO_URI must not be empty")
        if not database.strip() or not collection.strip():
            raise ValueError("database and collection must not be empty")
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self._uri = uri.strip()
        self._database = database.strip()
        self._collection = collection.strip()
        self._timeout_ms = int(timeout_ms)
        self._client: Any = None

    def _get_client(self, pymongo: Any) -> Any:
        if self._client is None:
            self._client = pymongo.MongoClient(
                self._uri,
                serverSelectionTimeoutMS=self._timeout_ms,
                connectTimeoutMS=self._timeout_ms,
                socketTimeoutMS=self._timeout_ms,
                timeoutMS=self._timeout_ms,
                tz_aware=True,
            )
        return self._client

    def run(self, *, fn: Callable[[Any], Any]) -> Any:
        pymongo = _import_pymongo()
        errors_mod = pymongo.errors
        try:
            client = self._get_client(pymongo)
            return fn(client[self._database][self._collection])
        except ApiError:
            raise
        except (
            errors_mod.ExecutionTimeout,
            errors_mod.NetworkTimeout,
            errors_mod.ServerSelectionTimeoutError,
            errors_mod.WTimeoutError,
        ) as exc:
            logger.warning("mongo_timeout timeout_ms=%s error=%s", self._timeout_ms, type(exc).__name__)
            raise store_timeout("document store timed out") from exc
        except errors_mod.PyMongoError as exc:
            logger.error("mongo_failure error=%s", type(exc).__name__)
            raise internal_failure("document store unavailable") from exc

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
