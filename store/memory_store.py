"""
In-process record store.

Used for local development (``STORE_BACKEND=memory``) and the test suite.
It keeps the MongoDB store's contract, including a change feed whose
events have the same shape as MongoDB change stream documents.
"""

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from bson import ObjectId

from store.events import (
    OPERATION_DELETE,
    OPERATION_INSERT,
    OPERATION_UPDATE,
    to_json_safe,
)
from store.record_store import RecordStore

logger = logging.getLogger(__name__)

# Marks the end of a watcher's feed
_FEED_CLOSED = object()


class MemoryRecordStore(RecordStore):
    """Dict-backed vehicle collection with an asyncio change feed."""

    def __init__(self, database_name: str = "fleet-management", collection_name: str = "vehicles"):
        self.database_name = database_name
        self.collection_name = collection_name
        self._documents: dict[str, dict[str, Any]] = {}
        self._watchers: list[asyncio.Queue] = []
        self._sequence = 0
        self._connected = False

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    async def connect(self) -> None:
        self._connected = True
        logger.info("Using in-memory record store")

    async def close(self) -> None:
        self._connected = False
        for queue in list(self._watchers):
            queue.put_nowait(_FEED_CLOSED)

    async def ping(self) -> bool:
        return self._connected

    async def find_all(self) -> list[dict[str, Any]]:
        documents = sorted(self._documents.values(), key=lambda d: d.get("name", ""))
        return [copy.deepcopy(document) for document in documents]

    async def find_by_id(self, record_id: str) -> Optional[dict[str, Any]]:
        document = self._documents.get(record_id)
        return copy.deepcopy(document) if document is not None else None

    async def insert_one(self, document: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(document)
        stored["_id"] = str(ObjectId())
        self._documents[stored["_id"]] = stored
        self._publish(OPERATION_INSERT, stored["_id"], full_document=stored)
        return copy.deepcopy(stored)

    async def update_fields(
        self, record_id: str, fields: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        stored = self._documents.get(record_id)
        if stored is None:
            return None
        changes = {key: copy.deepcopy(value) for key, value in fields.items() if key != "_id"}
        stored.update(changes)
        self._publish(
            OPERATION_UPDATE,
            record_id,
            full_document=stored,
            update_description={
                "updatedFields": changes,
                "removedFields": [],
                "truncatedArrays": [],
            },
        )
        return copy.deepcopy(stored)

    async def delete_all(self) -> int:
        record_ids = list(self._documents)
        self._documents.clear()
        # deleteMany reports one event per removed document
        for record_id in record_ids:
            self._publish(OPERATION_DELETE, record_id)
        return len(record_ids)

    async def insert_many(self, documents: list[dict[str, Any]]) -> int:
        for document in documents:
            await self.insert_one(document)
        return len(documents)

    @asynccontextmanager
    async def watch(self) -> AsyncIterator[AsyncIterator[dict[str, Any]]]:
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers.append(queue)
        try:
            yield self._iterate(queue)
        finally:
            self._watchers.remove(queue)

    async def _iterate(self, queue: asyncio.Queue) -> AsyncIterator[dict[str, Any]]:
        while True:
            event = await queue.get()
            if event is _FEED_CLOSED:
                return
            yield event

    def _publish(
        self,
        operation_type: str,
        record_id: str,
        full_document: Optional[dict[str, Any]] = None,
        update_description: Optional[dict[str, Any]] = None,
    ) -> None:
        if not self._watchers:
            return

        self._sequence += 1
        now = datetime.now(timezone.utc)
        event: dict[str, Any] = {
            "_id": {"_data": f"{self._sequence:016x}"},
            "operationType": operation_type,
            "clusterTime": now,
            "wallTime": now,
            "ns": {"db": self.database_name, "coll": self.collection_name},
            "documentKey": {"_id": record_id},
        }
        if full_document is not None:
            event["fullDocument"] = full_document
        if update_description is not None:
            event["updateDescription"] = update_description

        safe_event = to_json_safe(event)
        for queue in self._watchers:
            queue.put_nowait(copy.deepcopy(safe_event))
