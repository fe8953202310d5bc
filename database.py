"""
Key-value storage for MedTrack.

Values are JSON-encoded strings addressed by string keys. When DATABASE_URL
and DATABASE_NAME are set the store lives in a MongoDB collection (one
document per key: {"_id": key, "value": text}); otherwise an in-process
dictionary is used.
"""
import logging
from typing import Dict, Optional

from fastapi.concurrency import run_in_threadpool
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Settings
from errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Async get/set of string values. No schema is enforced."""

    name = "abstract"

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    name = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(key, f"expected str value, got {type(value).__name__}")
        self._data[key] = value

    def keys(self):
        return list(self._data)


class MongoStore(KeyValueStore):
    name = "mongo"

    def __init__(self, collection):
        self._collection = collection

    async def get(self, key: str) -> Optional[str]:
        try:
            doc = await run_in_threadpool(self._collection.find_one, {"_id": key})
        except PyMongoError as e:
            logger.error("Mongo read of %s failed: %s", key, e)
            raise StorageError(key, str(e)) from e
        if not doc:
            return None
        return doc.get("value")

    async def set(self, key: str, value: str) -> None:
        try:
            await run_in_threadpool(
                self._collection.replace_one,
                {"_id": key},
                {"_id": key, "value": value},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error("Mongo write of %s failed: %s", key, e)
            raise StorageError(key, str(e)) from e


def connect(settings: Settings):
    """Return a pymongo Database, or None when Mongo is not configured."""
    if not settings.uses_mongo:
        return None
    client = MongoClient(settings.database_url)
    return client[settings.database_name]


def build_store(settings: Settings, database=None) -> KeyValueStore:
    if database is None:
        logger.warning("DATABASE_URL/DATABASE_NAME not set, using in-memory store")
        return MemoryStore()
    return MongoStore(database[settings.kv_collection])


settings = Settings.from_env()
db = connect(settings)
store = build_store(settings, db)
