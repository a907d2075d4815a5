"""
Tubely MongoDB Database Client Module

This module provides async MongoDB connection management for Tubely using
Motor (async MongoDB driver). It implements:
- Connection pooling with configurable pool sizes
- Health checks using the MongoDB ping command
- An accessor for the ``videos`` collection
- Index creation for the owner and recency queries
- Startup/shutdown lifecycle management for FastAPI integration
- Retry logic with exponential backoff for connection reliability
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from app.config import Settings


# Configure module logger for structured logging
logger = logging.getLogger(__name__)

# Collection name constants for consistency
VIDEOS_COLLECTION = "videos"

# Connection retry policy
MAX_CONNECT_RETRIES = 3
INITIAL_RETRY_DELAY_SECONDS = 1.0


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Attributes:
        _db_name: Database name to connect to
        _client: Motor async MongoDB client instance
        _database: Motor async database instance

    Example usage:
        ```python
        db_client = DatabaseClient(Settings())
        await db_client.connect()

        videos = db_client.get_videos_collection()
        await videos.find_one({"_id": video_id})

        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize DatabaseClient with configuration settings.

        Args:
            settings: Settings instance containing mongodb_uri, mongodb_db_name
                and pool sizes.
        """
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

    async def connect(self) -> bool:
        """
        Establish MongoDB connection with retry logic and exponential backoff.

        Returns:
            bool: True if connection successful, False on failure after all retries.
        """
        retry_delay = INITIAL_RETRY_DELAY_SECONDS

        for attempt in range(1, MAX_CONNECT_RETRIES + 1):
            try:
                logger.info(
                    f"Attempting MongoDB connection (attempt {attempt}/{MAX_CONNECT_RETRIES}) "
                    f"to {self._db_name}..."
                )

                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                    uuidRepresentation="standard",
                    tz_aware=True,
                )
                self._database = self._client[self._db_name]

                await self._client.admin.command("ping")

                logger.info(
                    f"Connected to MongoDB database: {self._db_name} "
                    f"with pool size {self._min_pool_size}-{self._max_pool_size}"
                )
                return True

            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception(
                    f"MongoDB connection failure (attempt {attempt}/{MAX_CONNECT_RETRIES})"
                )
                if attempt < MAX_CONNECT_RETRIES:
                    logger.warning(f"Retrying in {retry_delay} seconds...")
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2  # Exponential backoff

        logger.error(
            f"Failed to connect to MongoDB after {MAX_CONNECT_RETRIES} attempts. "
            "Check connection URI and server availability."
        )
        return False

    async def close(self) -> None:
        """Close the Motor client. Safe to call when not connected."""
        if self._client is None:
            logger.warning("MongoDB close called but no active connection exists")
            return
        self._client.close()
        self._client = None
        self._database = None
        logger.info(f"MongoDB connection closed for database: {self._db_name}")

    async def ping(self) -> bool:
        """
        Health check using MongoDB admin ping command.

        Returns:
            bool: True if ping successful, False on failure.
        """
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            logger.exception("MongoDB ping failed")
            return False

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance for direct operations.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(
                "MongoDB database not available. Call connect() first or check connection status."
            )
        return self._database

    def get_videos_collection(self) -> AsyncIOMotorCollection:
        """
        Get the videos collection.

        Documents are video records keyed by their UUID string ``_id`` and
        carry user_id, title, description, thumbnail_url, video_url and
        timestamps.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        return self.get_database()[VIDEOS_COLLECTION]

    async def create_indexes(self) -> None:
        """
        Create indexes on the videos collection:
        - user_id for ownership listings
        - (user_id, created_at desc) for newest-first listings
        """
        videos = self.get_videos_collection()
        try:
            await videos.create_index("user_id", name="user_id_idx")
            await videos.create_index(
                [("user_id", 1), ("created_at", -1)], name="user_videos_sorted_idx"
            )
        except PyMongoError:
            logger.exception("Error creating MongoDB indexes")
            raise
        logger.info(f"Created indexes on {VIDEOS_COLLECTION} collection")


# Container class for database client singleton to avoid global statements
class _DatabaseClientContainer:
    """Container for database client singleton to avoid global statements."""

    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings) -> DatabaseClient:
    """
    Initialize the process-wide database client.

    Connects to MongoDB and creates indexes. Called from the FastAPI lifespan.

    Raises:
        RuntimeError: If connection to MongoDB fails after all retries.
    """
    if _container.client is not None:
        logger.warning("Database client already initialized, returning existing instance")
        return _container.client

    client = DatabaseClient(settings)
    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )
    await client.create_indexes()

    _container.client = client
    logger.info("MongoDB database client initialization complete")
    return client


async def close_db() -> None:
    """Close the process-wide database client, if any."""
    if _container.client is not None:
        await _container.client.close()
        _container.client = None


def get_db_client() -> DatabaseClient:
    """
    Get the process-wide database client.

    Raises:
        RuntimeError: If init_db() has not completed.
    """
    if _container.client is None:
        raise RuntimeError(
            "Database client not initialized. Call init_db() first during application startup."
        )
    return _container.client
