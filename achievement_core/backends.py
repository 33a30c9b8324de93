from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from achievement_core.attachments import AttachmentManager
from achievement_core.config import StoreSettings
from achievement_core.db.mongo import MongoCollectionRunner
from achievement_core.db.postgres import PostgresTxRunner
from achievement_core.repositories.details import InMemoryDetailsRepository, MongoDetailsRepository
from achievement_core.repositories.directory import InMemoryDirectoryRepository, PostgresDirectoryRepository
from achievement_core.repositories.references import InMemoryReferencesRepository, PostgresReferencesRepository
from achievement_core.workflow import AchievementWorkflow


@dataclass
class AchievementBackends:
    references: Any
    details: Any
    directory: Any
    settings: StoreSettings
    tx_runner: PostgresTxRunner | None = None
    mongo_runner: MongoCollectionRunner | None = None
    state: dict[str, Any] = field(default_factory=dict)

    def workflow(self) -> AchievementWorkflow:
        return AchievementWorkflow(references=self.references, details=self.details, directory=self.directory)

    def attachments(self) -> AttachmentManager:
        return AttachmentManager(references=self.references, details=self.details, directory=self.directory)

    def close(self) -> None:
        if self.mongo_runner is not None:
            self.mongo_runner.close()


def create_memory_backends(settings: StoreSettings | None = None) -> AchievementBackends:
    state: dict[str, Any] = {
        "references": {},
        "details": {},
        "students": {},
        "lecturers": {},
    }
    return AchievementBackends(
        references=InMemoryReferencesRepository(state["references"]),
        details=InMemoryDetailsRepository(state["details"]),
        directory=InMemoryDirectoryRepository(state["students"], state["lecturers"]),
        settings=settings or StoreSettings.from_env({}),
        state=state,
    )


def create_backends_from_env(environ: Mapping[str, str] | None = None) -> AchievementBackends:
    settings = StoreSettings.from_env(environ)
    if settings.backend == "memory":
        return create_memory_backends(settings)
    if settings.backend != "postgres":
        raise ValueError(f"unsupported ACHIEVEMENT_STORE_BACKEND: {settings.backend}")
    if not settings.postgres_dsn:
        raise ValueError("POSTGRES_DSN must be set when ACHIEVEMENT_STORE_BACKEND=postgres")
    if not settings.mongo_uri:
        raise ValueError("MONGO_URI must be set when ACHIEVEMENT_STORE_BACKEND=postgres")
    tx_runner = PostgresTxRunner(settings.postgres_dsn, timeout_ms=settings.timeout_ms)
    mongo_runner = MongoCollectionRunner(
        settings.mongo_uri,
        database=settings.mongo_database,
        collection=settings.mongo_collection,
        timeout_ms=settings.timeout_ms,
    )
    return AchievementBackends(
        references=PostgresReferencesRepository(tx_runner=tx_runner),
        details=MongoDetailsRepository(runner=mongo_runner),
        directory=PostgresDirectoryRepository(tx_runner=tx_runner),
        settings=settings,
        tx_runner=tx_runner,
        mongo_runner=mongo_runner,
    )
