"""
Record store backends for the vehicle collection.
"""

from config.settings import StoreBackend
from store.memory_store import MemoryRecordStore
from store.mongo_store import MongoRecordStore
from store.record_store import RecordStore

__all__ = [
    "MemoryRecordStore",
    "MongoRecordStore",
    "RecordStore",
    "create_record_store",
]


def create_record_store(settings) -> RecordStore:
    """Build the record store selected by ``settings.store_backend``."""
    if settings.store_backend == StoreBackend.MEMORY:
        return MemoryRecordStore(
            database_name=settings.mongodb_database,
            collection_name=settings.mongodb_collection,
        )
    return MongoRecordStore(
        uri=settings.mongodb_uri,
        database_name=settings.mongodb_database,
        collection_name=settings.mongodb_collection,
        timeout_ms=settings.mongodb_timeout_ms,
        failure_threshold=settings.store_failure_threshold,
        recovery_seconds=settings.store_recovery_seconds,
    )
