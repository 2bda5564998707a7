# supportdesk/db.py
import logging
from datetime import datetime, timezone

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from supportdesk import config
from supportdesk.models import LICENSES, NOTIFICATIONS, REPLIES, TICKETS, USERS

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(config.MONGODB_URI, tz_aware=True)

# Explicitly pick your database
db = client[config.MONGODB_DB]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value):
    """Mongo hands back naive datetimes unless the client is tz_aware."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_object_id(value) -> ObjectId | None:
    if isinstance(value, ObjectId):
        return value
    if value and ObjectId.is_valid(str(value)):
        return ObjectId(str(value))
    return None


# -----------------------------
# Helper: Convert ObjectId to string (recursive for nested dicts/lists)
# -----------------------------
def serialize(obj):
    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [serialize(i) for i in obj]
    elif isinstance(obj, ObjectId):
        return str(obj)
    elif isinstance(obj, datetime):
        return as_utc(obj).isoformat()
    else:
        return obj


def serialize_doc(doc, hidden=("password",)):
    if not doc:
        return None
    doc = {k: v for k, v in doc.items() if k not in hidden}
    out = serialize(doc)
    if "_id" in out:
        out["id"] = out["_id"]
    return out


async def ensure_indexes(database: AsyncIOMotorDatabase):
    await database[USERS].create_index("email", unique=True)
    await database[LICENSES].create_index("code", unique=True)
    await database[LICENSES].create_index("isUsed")
    await database[LICENSES].create_index("product")
    await database[TICKETS].create_index("ticketId", unique=True)
    await database[TICKETS].create_index([("assignedTo", ASCENDING), ("status", ASCENDING)])
    await database[TICKETS].create_index("userEmail")
    await database[REPLIES].create_index([("ticketId", ASCENDING), ("createdAt", ASCENDING)])
    await database[NOTIFICATIONS].create_index(
        [("userEmail", ASCENDING), ("isRead", ASCENDING), ("createdAt", DESCENDING)]
    )
    logger.info("MongoDB indexes ensured on %s", database.name)
