"""MongoDB database connection and management."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from typing import Optional
from app.config.settings import settings
import logging

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB."""
        try:
            cls.client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
            cls.database = cls.client[settings.mongodb_database]

            # Test connection
            await cls.client.admin.command("ping")
            logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    @classmethod
    async def ensure_indexes(cls):
        """Create the indexes the services rely on.

        The unique index on ``assessment_responses.assessment_id`` is what
        guarantees one response per assessment under concurrent submissions.
        """
        db = cls.get_database()

        assessments = db[settings.mongodb_collection_assessments]
        await assessments.create_index("assessment_id", unique=True)
        await assessments.create_index(
            [
                ("user_id", ASCENDING),
                ("health_concern_id", ASCENDING),
                ("created_at", DESCENDING),
            ]
        )
        await assessments.create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING)]
        )

        responses = db[settings.mongodb_collection_responses]
        await responses.create_index("response_id", unique=True)
        await responses.create_index("assessment_id", unique=True)
        await responses.create_index(
            [("user_id", ASCENDING), ("submitted_at", DESCENDING)]
        )

        concerns = db[settings.mongodb_collection_health_concerns]
        await concerns.create_index("health_concern_id", unique=True)
        await concerns.create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING)]
        )

        patients = db[settings.mongodb_collection_patients]
        await patients.create_index("user_id", unique=True)

        logger.info("MongoDB indexes ensured")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            logger.info("Closed MongoDB connection")

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        """Get database instance."""
        if cls.database is None:
            raise RuntimeError("Database not initialized. Call connect_db() first.")
        return cls.database

    @classmethod
    def get_collection(cls, collection_name: str):
        """Get a collection from the database."""
        db = cls.get_database()
        return db[collection_name]


# Convenience functions
async def get_assessments_collection():
    """Get assessments collection."""
    return Database.get_collection(settings.mongodb_collection_assessments)


async def get_responses_collection():
    """Get assessment_responses collection."""
    return Database.get_collection(settings.mongodb_collection_responses)


async def get_health_concerns_collection():
    """Get health_concerns collection."""
    return Database.get_collection(settings.mongodb_collection_health_concerns)


async def get_patients_collection():
    """Get patients collection."""
    return Database.get_collection(settings.mongodb_collection_patients)
