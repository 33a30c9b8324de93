from achievement_core.db.mongo import MongoCollectionRunner
from achievement_core.db.postgres import PostgresTxRunner

__all__ = ["MongoCollectionRunner", "PostgresTxRunner"]
