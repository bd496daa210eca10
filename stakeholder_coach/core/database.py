"""
MongoDB database connection and utilities.

Uses Motor for async MongoDB operations. Only used when the
session store backend is configured as ``mongodb``.
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from stakeholder_coach.core.config import get_settings

logger = logging.getLogger(__name__)


class MongoDBClient:
    """
    Async MongoDB client wrapper with connection management.
    """

    def __init__(self, uri: Optional[str] = None, db_name: Optional[str] = None):
        settings = get_settings()
        self.uri = uri or settings.mongodb_uri
        self.db_name = db_name or settings.mongodb_db_name
        self._client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> AsyncIOMotorDatabase:
        """Get the database instance."""
        if self._db is None:
            raise RuntimeError("MongoDB database not initialized. Call connect() first.")
        return self._db

    async def connect(self) -> None:
        """
        Establish connection to MongoDB.
        """
        try:
            self._client = AsyncIOMotorClient(
                self.uri,
                serverSelectionTimeoutMS=5000,
            )
            await self._client.admin.command("ping")
            self._db = self._client[self.db_name]
            await self.turns.create_index([("session_id", 1), ("index", 1)], unique=True)
            logger.info(f"Connected to MongoDB: {self.db_name}")
        except ServerSelectionTimeoutError as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("MongoDB connection closed")

    async def health_check(self) -> bool:
        """Check if MongoDB connection is healthy."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    @property
    def sessions(self):
        """Interview sessions (without their turns)."""
        return self.db["interview_sessions"]

    @property
    def turns(self):
        """Recorded turns, one document per turn."""
        return self.db["interview_turns"]


# Global client instance
mongodb_client = MongoDBClient()
