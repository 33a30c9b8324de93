from achievement_core.repositories.details import InMemoryDetailsRepository, MongoDetailsRepository
from achievement_core.repositories.directory import InMemoryDirectoryRepository, PostgresDirectoryRepository
from achievement_core.repositories.references import InMemoryReferencesRepository, PostgresReferencesRepository

__all__ = [
    "InMemoryDetailsRepository",
    "MongoDetailsRepository",
    "InMemoryDirectoryRepository",
    "PostgresDirectoryRepository",
    "InMemoryReferencesRepository",
    "PostgresReferencesRepository",
]
