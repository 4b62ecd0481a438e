"""
MongoDB record store built on motor.

Every CRUD call runs through a circuit breaker. Driver errors and an open
circuit surface as STORE_UNAVAILABLE application errors; the change feed
lets driver errors through so the change notifier can resubscribe.

Change streams need a replica set (or Atlas); a standalone server accepts
reads and writes but ``watch`` fails.
"""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from errors.exceptions import store_unavailable
from resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitOpenException
from store.events import from_stored, to_json_safe
from store.record_store import RecordStore

logger = logging.getLogger(__name__)


class MongoRecordStore(RecordStore):
    """
    Vehicle collection in MongoDB.

    Attributes:
        uri: MongoDB connection string
        database_name: Database holding the collection
        collection_name: Collection holding vehicle documents
    """

    def __init__(
        self,
        uri: str,
        database_name: str = "fleet-management",
        collection_name: str = "vehicles",
        timeout_ms: int = 5000,
        failure_threshold: int = 3,
        recovery_seconds: float = 30.0,
    ):
        self.uri = uri
        self.database_name = database_name
        self.collection_name = collection_name
        self.timeout_ms = timeout_ms
        self._client: Optional[AsyncIOMotorClient] = None
        self._collection = None

        self._circuit_breaker = CircuitBreaker(
            name="mongodb",
            config=CircuitBreakerConfig(
                failure_threshold=failure_threshold,
                recovery_timeout=timedelta(seconds=recovery_seconds),
            ),
            counted_exceptions=(PyMongoError,),
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance for external access."""
        return self._circuit_breaker

    async def connect(self) -> None:
        """
        Create the client and ping the server.

        Raises:
            PyMongoError: If the server cannot be reached within the
                server selection timeout. Startup treats this as fatal.
        """
        self._client = AsyncIOMotorClient(
            self.uri,
            serverSelectionTimeoutMS=self.timeout_ms,
            tz_aware=True,
        )
        self._collection = self._client[self.database_name][self.collection_name]
        await self._client.admin.command("ping")
        logger.info(
            "Connected to MongoDB",
            extra={"extra_data": {
                "database": self.database_name,
                "collection": self.collection_name,
            }}
        )

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._collection = None
            logger.info("MongoDB connection closed")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        await self._client.admin.command("ping")
        return True

    async def _execute(self, operation: str, func, *args, **kwargs) -> Any:
        if self._collection is None:
            raise store_unavailable(details={"operation": operation, "reason": "not connected"})
        try:
            return await self._circuit_breaker.execute(func, *args, **kwargs)
        except CircuitOpenException as e:
            logger.warning(
                "MongoDB circuit open, rejecting call",
                extra={"extra_data": {"operation": operation, "circuit_name": e.circuit_name}}
            )
            raise store_unavailable(details={"operation": operation}) from e
        except PyMongoError as e:
            logger.error(
                f"MongoDB operation failed: {operation}",
                extra={"extra_data": {
                    "operation": operation,
                    "error_type": type(e).__name__,
                    "error": str(e),
                }}
            )
            raise store_unavailable(details={"operation": operation}) from e

    async def find_all(self) -> list[dict[str, Any]]:
        async def _do_find():
            cursor = self._collection.find({}).sort("name", ASCENDING)
            return await cursor.to_list(length=None)

        documents = await self._execute("find_all", _do_find)
        return [from_stored(document) for document in documents]

    async def find_by_id(self, record_id: str) -> Optional[dict[str, Any]]:
        if not ObjectId.is_valid(record_id):
            return None
        document = await self._execute(
            "find_by_id", self._collection.find_one, {"_id": ObjectId(record_id)}
        )
        return from_stored(document) if document is not None else None

    async def insert_one(self, document: dict[str, Any]) -> dict[str, Any]:
        to_insert = dict(document)
        to_insert.pop("_id", None)
        result = await self._execute("insert_one", self._collection.insert_one, to_insert)
        to_insert["_id"] = result.inserted_id
        return from_stored(to_insert)

    async def update_fields(
        self, record_id: str, fields: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        if not ObjectId.is_valid(record_id):
            return None
        document = await self._execute(
            "update_fields",
            self._collection.find_one_and_update,
            {"_id": ObjectId(record_id)},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return from_stored(document) if document is not None else None

    async def delete_all(self) -> int:
        result = await self._execute("delete_all", self._collection.delete_many, {})
        return result.deleted_count

    async def insert_many(self, documents: list[dict[str, Any]]) -> int:
        if not documents:
            return 0
        to_insert = [{k: v for k, v in document.items() if k != "_id"} for document in documents]
        result = await self._execute(
            "insert_many", self._collection.insert_many, to_insert, ordered=True
        )
        return len(result.inserted_ids)

    @asynccontextmanager
    async def watch(self) -> AsyncIterator[AsyncIterator[dict[str, Any]]]:
        if self._collection is None:
            raise store_unavailable(details={"operation": "watch", "reason": "not connected"})

        stream = self._collection.watch(full_document="updateLookup")
        try:
            # The cursor opens lazily; force it so failures surface on entry
            first = await stream.try_next()
            yield self._iterate(stream, first)
        finally:
            await stream.close()

    async def _iterate(self, stream, first: Optional[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
        if first is not None:
            yield to_json_safe(first)
        async for change in stream:
            yield to_json_safe(change)
