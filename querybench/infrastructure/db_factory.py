"""
MongoDB connectivity for the query benchmark.

`ClientManager` owns the single `MongoClient` (and therefore the connection
pool) shared by every worker thread, and closes it on interpreter exit.
`MongoDataAccess` implements the engine's `DataAccess` protocol on top of a
database handle, imposing a server-side time limit on every call and turning
driver exceptions into `DataAccessError`.

Connection establishment retries transient failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from typing import Any, List, Optional

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from querybench.config import Settings, get_settings
from querybench.domain.errors import DataAccessError
from querybench.engine.abstract import Document
from querybench.engine.paths import extract_values
from querybench.utils.logging import get_logger

log = get_logger(__name__)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(ConnectionFailure),
    reraise=True,
)
def ping(client: MongoClient, database: str) -> None:
    """
    Round-trip a ``ping`` command, retrying up to 3 times with exponential
    backoff while the server is unreachable.
    """
    client[database].command("ping")


class ClientManager:
    """
    Thread-safe singleton holding the shared MongoClient.

    The client's connection pool is configured once from settings and never
    changed during a run.
    """

    _instance: Optional["ClientManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ClientManager":
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._client = None
                cls._instance = instance
                atexit.register(instance.close_all)
            return cls._instance

    def get_client(self, settings: Optional[Settings] = None) -> MongoClient:
        """
        Get or create the client and verify the server answers.

        Raises
        ------
        pymongo.errors.ConnectionFailure
            If the server is still unreachable after all retry attempts.
        """
        with self._lock:
            if self._client is None:
                settings = settings or get_settings()
                client: MongoClient = MongoClient(
                    settings.mongo_uri,
                    maxPoolSize=settings.mongo_pool_size,
                    connectTimeoutMS=settings.mongo_connect_timeout_ms,
                    serverSelectionTimeoutMS=settings.mongo_connect_timeout_ms,
                    appname="querybench",
                )
                try:
                    ping(client, settings.mongo_database)
                except ConnectionFailure:
                    client.close()
                    raise
                log.info(
                    "Connected to MongoDB",
                    extra={"database": settings.mongo_database, "pool_size": settings.mongo_pool_size},
                )
                self._client = client
            return self._client

    def close_all(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None


class MongoDataAccess:
    """`DataAccess` over a pymongo database handle."""

    def __init__(self, database: Database, operation_timeout_ms: int = 30_000) -> None:
        self.database = database
        self.operation_timeout_ms = operation_timeout_ms

    def find(self, collection: str, filter: Document, limit: int = 0) -> List[Document]:
        try:
            cursor = self.database[collection].find(
                filter, limit=limit, max_time_ms=self.operation_timeout_ms
            )
            return list(cursor)
        except PyMongoError as exc:
            raise DataAccessError("find", collection, str(exc)) from exc

    def count(self, collection: str, filter: Document) -> int:
        try:
            return self.database[collection].count_documents(
                filter, maxTimeMS=self.operation_timeout_ms
            )
        except PyMongoError as exc:
            raise DataAccessError("count", collection, str(exc)) from exc

    def sample_field(self, collection: str, field_path: str, sample_size: int) -> List[Any]:
        # Project only the top-level field; arrays below it are flattened locally.
        root = field_path.split(".", 1)[0]
        projection = {root: 1}
        if root != "_id":
            projection["_id"] = 0
        try:
            cursor = self.database[collection].find(
                {}, projection, limit=sample_size, max_time_ms=self.operation_timeout_ms
            )
            documents = list(cursor)
        except PyMongoError as exc:
            raise DataAccessError("sample_field", collection, str(exc)) from exc
        return [value for document in documents for value in extract_values(document, field_path)]

    def sample_records(self, collection: str, sample_size: int) -> List[Document]:
        try:
            cursor = self.database[collection].aggregate(
                [{"$sample": {"size": sample_size}}], maxTimeMS=self.operation_timeout_ms
            )
            return list(cursor)
        except PyMongoError as exc:
            raise DataAccessError("sample_records", collection, str(exc)) from exc


def get_data_access(settings: Optional[Settings] = None) -> MongoDataAccess:
    """Build a `MongoDataAccess` on the managed client."""
    settings = settings or get_settings()
    client = ClientManager().get_client(settings)
    return MongoDataAccess(
        client[settings.mongo_database],
        operation_timeout_ms=settings.mongo_operation_timeout_ms,
    )


__all__ = [
    "ClientManager",
    "MongoDataAccess",
    "get_data_access",
    "ping",
]
