"""Persistence of letters and reports in MongoDB."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from .config import Settings
from .errors import StorageUnavailable
from .models import Message, Report, read_documents

__all__ = ["MessageStore", "MongoStore", "MESSAGES_COLLECTION", "REPORTS_COLLECTION"]

logger = logging.getLogger(__name__)

MESSAGES_COLLECTION = "messages"
REPORTS_COLLECTION = "reports"


class MessageStore(Protocol):
    """Storage operations the API needs.

    :class:`MongoStore` is the production implementation. Tests pass an
    in-memory object with the same methods to :func:`dear_stranger.api.create_app`.
    """

    async def connect(self) -> None:  # pragma: no cover - interface
        ...

    async def close(self) -> None:  # pragma: no cover - interface
        ...

    async def list_messages(self) -> list[Message]:  # pragma: no cover - interface
        ...

    async def create_message(self, message: Message) -> Message:  # pragma: no cover - interface
        ...

    async def delete_message(self, uuid: str) -> bool:  # pragma: no cover - interface
        ...

    async def list_reports(self) -> list[Report]:  # pragma: no cover - interface
        ...

    async def create_report(self, report: Report) -> Report:  # pragma: no cover - interface
        ...


class MongoStore:
    """:class:`MessageStore` backed by two MongoDB collections.

    The client is created once by :meth:`connect` and reused by every
    operation; operations connect on demand if it has not been called yet.
    Driver failures surface as :class:`StorageUnavailable`.
    """

    def __init__(self, uri: str, db_name: str, client: Any | None = None):
        self._uri = uri
        self._db_name = db_name
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "MongoStore":
        """Build a store from application settings.

        Raises:
            ValueError: If the connection string or database name is missing.
        """
        if not settings.mongodb_uri or not settings.db_name:
            raise ValueError(
                "MongoDB is not configured. Please set MONGODB_URI and DB_NAME."
            )
        return cls(settings.mongodb_uri, settings.db_name)

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Create the shared client if it does not exist yet."""
        if self._client is not None:
            return
        try:
            self._client = AsyncMongoClient(self._uri)
        except PyMongoError as e:
            logger.error(f"Could not create MongoDB client: {e}")
            raise StorageUnavailable("connect", str(e)) from e
        logger.info("MongoDB client created for database %s", self._db_name)

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.close()
        self._client = None
        logger.info("MongoDB client closed")

    async def ping(self) -> None:
        """Round-trip to the server to verify it is reachable."""
        await self.connect()
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            raise StorageUnavailable("ping", str(e)) from e

    async def _collection(self, name: str):
        await self.connect()
        return self._client[self._db_name][name]

    async def _find_all(self, name: str) -> list[dict]:
        collection = await self._collection(name)
        try:
            cursor = collection.find({}, {"_id": 0})
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"Listing {name} failed: {e}")
            raise StorageUnavailable(f"list {name}", str(e)) from e

    async def _insert(self, name: str, document: dict) -> None:
        collection = await self._collection(name)
        try:
            await collection.insert_one(document)
        except PyMongoError as e:
            logger.error(f"Inserting into {name} failed: {e}")
            raise StorageUnavailable(f"insert {name}", str(e)) from e

    async def list_messages(self) -> list[Message]:
        documents = await self._find_all(MESSAGES_COLLECTION)
        return read_documents(Message, documents)

    async def create_message(self, message: Message) -> Message:
        await self._insert(MESSAGES_COLLECTION, message.to_document())
        return message

    async def delete_message(self, uuid: str) -> bool:
        """Remove at most one letter with ``uuid``.

        Returns ``False`` when nothing matched; that is not an error.
        """
        collection = await self._collection(MESSAGES_COLLECTION)
        try:
            result = await collection.delete_one({"uuid": uuid})
        except PyMongoError as e:
            logger.error(f"Deleting message {uuid} failed: {e}")
            raise StorageUnavailable("delete messages", str(e)) from e
        return result.deleted_count > 0

    async def list_reports(self) -> list[Report]:
        documents = await self._find_all(REPORTS_COLLECTION)
        return read_documents(Report, documents)

    async def create_report(self, report: Report) -> Report:
        await self._insert(REPORTS_COLLECTION, report.to_document())
        return report
