"""
Record store contract shared by the MongoDB and in-memory backends.

Documents cross this boundary as plain dicts keyed by their stored
(camelCase) field names, with ``_id`` as a string. The store owns
persisted state; callers only ever hold copies.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, AsyncIterator, Optional


class RecordStore(ABC):
    """Abstract document store holding the vehicle collection."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection; raises if the store cannot be reached."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers."""

    @abstractmethod
    async def find_all(self) -> list[dict[str, Any]]:
        """Return every document sorted by name ascending."""

    @abstractmethod
    async def find_by_id(self, record_id: str) -> Optional[dict[str, Any]]:
        """Return the document with this id, or None for unknown or malformed ids."""

    @abstractmethod
    async def insert_one(self, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a document and return it with its assigned ``_id``."""

    @abstractmethod
    async def update_fields(
        self, record_id: str, fields: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        """Set ``fields`` atomically and return the document after the update, or None."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Delete every document and return how many were removed."""

    @abstractmethod
    async def insert_many(self, documents: list[dict[str, Any]]) -> int:
        """Insert documents in order and return how many were inserted."""

    @abstractmethod
    def watch(self) -> AsyncContextManager[AsyncIterator[dict[str, Any]]]:
        """
        Open the change feed.

        Returns an async context manager. Entering it opens the
        subscription (raising if that fails) and yields an async iterator
        of JSON-safe change events in the order the store applied them.
        """
