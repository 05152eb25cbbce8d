"""
MongoDB async database connection using Motor.
Provides database instance and collection access.
"""

import logging
from contextlib import contextmanager
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError
from typing import Optional
from .config import get_settings
from .errors import ConflictError, StorageFailure

settings = get_settings()
logger = logging.getLogger(__name__)

PATIENTS = "patients"
QUEUE_ENTRIES = "queue_entries"


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)
        cls.db = cls.client[settings.DATABASE_NAME]

        # Verify connection
        await cls.client.admin.command('ping')
        logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

        await cls._create_indexes()

    @classmethod
    async def disconnect(cls):
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def _create_indexes(cls):
        """Create indexes, including the uniqueness backstops for the queue."""
        if cls.db is None:
            return

        queue = cls.db[QUEUE_ENTRIES]
        # Two arrivals racing for the same number: the loser gets DuplicateKeyError
        await queue.create_index(
            [("arrival_day", 1), ("queue_number", 1)],
            unique=True,
            name="day_queue_number_unique"
        )
        # At most one waiting entry per patient
        await queue.create_index(
            "patient_id",
            unique=True,
            partialFilterExpression={"status": "waiting"},
            name="patient_waiting_unique"
        )
        await queue.create_index("status")
        await queue.create_index("priority")
        await queue.create_index("arrival_time")

        patients = cls.db[PATIENTS]
        await patients.create_index("name")
        await patients.create_index(
            "medical_record_number",
            unique=True,
            partialFilterExpression={"medical_record_number": {"$type": "string"}}
        )

        logger.info("Database indexes created")

    @classmethod
    def get_collection(cls, name: str):
        """Get a collection by name."""
        if cls.db is None:
            raise RuntimeError("Database not connected")
        return cls.db[name]


def object_id_or_none(value: str) -> Optional[ObjectId]:
    """Parse an id from a request. Malformed ids simply match nothing."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


@contextmanager
def storage_errors(action: str, conflict: str, failure: Optional[str] = None):
    """Translate driver errors into the service error taxonomy."""
    try:
        yield
    except DuplicateKeyError as exc:
        logger.warning("Uniqueness backstop hit while %s: %s", action, exc)
        raise ConflictError(conflict) from exc
    except PyMongoError as exc:
        logger.exception("Storage failure while %s", action)
        error = StorageFailure(failure) if failure else StorageFailure()
        raise error from exc
