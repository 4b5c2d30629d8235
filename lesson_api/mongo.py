"""MongoDB persistence handle.

This module has one job: own the connection to MongoDB.

`MongoStore` is created once at startup and passed to every component that
needs the database. The underlying `MongoClient` is only created on first use,
so the process can start (and report `dbConnected: false`) while MongoDB is
still unreachable.

pymongo's client is thread-safe and pools connections, so a single instance is
shared by all request handlers.
"""

from __future__ import annotations

import logging
from threading import Lock

from pymongo import MongoClient, errors

from . import config

logger = logging.getLogger(__name__)

# Any driver error is treated as the store being unavailable.
STORE_ERRORS = errors.PyMongoError


class MongoStore:
    """Lazily connected handle to the lesson-booking database."""

    def __init__(
        self,
        uri: str = config.MONGODB_URI,
        db_name: str = config.MONGODB_DB_NAME,
        timeout_ms: int = config.MONGODB_TIMEOUT_MS,
    ) -> None:
        self._uri = uri
        self._db_name = db_name
        self._timeout_ms = timeout_ms
        self._client: MongoClient | None = None
        self._lock = Lock()

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    logger.info("[Mongo] Connecting to database %s", self._db_name)
                    # tz_aware: createdAt comes back as an aware UTC datetime.
                    self._client = MongoClient(
                        self._uri,
                        serverSelectionTimeoutMS=self._timeout_ms,
                        connectTimeoutMS=self._timeout_ms,
                        tz_aware=True,
                    )
        return self._client

    @property
    def db(self):
        return self.client[self._db_name]

    @property
    def lessons(self):
        return self.db[config.LESSONS_COLLECTION]

    @property
    def orders(self):
        return self.db[config.ORDERS_COLLECTION]

    @property
    def recoveries(self):
        return self.db[config.RECOVERY_COLLECTION]

    def ping(self) -> bool:
        """Return True if the server answers a ping within the timeout."""
        try:
            self.client.admin.command("ping")
            return True
        except STORE_ERRORS as e:
            logger.warning("[Mongo] Ping failed: %s", e)
            return False

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
                logger.info("[Mongo] Connection closed")
