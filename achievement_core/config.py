from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


def _env_int(env: Mapping[str, str], name: str, *, default: int, minimum: int = 0) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


@dataclass(frozen=True)
class StoreSettings:
    backend: str
    postgres_dsn: str
    mongo_uri: str
    mongo_database: str
    mongo_collection: str
    timeout_ms: int

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "StoreSettings":
        env = os.environ if environ is None else environ
        return cls(
            backend=env.get("ACHIEVEMENT_STORE_BACKEND", "memory").strip().lower() or "memory",
            postgres_dsn=env.get("POSTGRES_DSN", "").strip(),
            mongo_uri=env.get("MONGO_URI", "").strip(),
            mongo_database=env.get("MONGO_DATABASE", "achievements").strip() or "achievements",
            mongo_collection=env.get("MONGO_COLLECTION", "achievements").strip() or "achievements",
            timeout_ms=_env_int(env, "ACHIEVEMENT_STORE_TIMEOUT_MS", default=5000, minimum=100),
        )
