# app/db/session.py

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING

from app.core.config import settings

logger = logging.getLogger(__name__)

BARBERS = "barbers"
APPOINTMENTS = "appointments"

# One client per process, created on first use and reused afterwards
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None
_init_lock = asyncio.Lock()


def to_object_id(value: str) -> Optional[ObjectId]:
    """None for anything that is not a 24-hex ObjectId."""
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db[BARBERS].create_index([("email", ASCENDING)], unique=True)
    await db[APPOINTMENTS].create_index([("time", ASCENDING)])
    await db[APPOINTMENTS].create_index([("barber_id", ASCENDING)])


async def get_database() -> AsyncIOMotorDatabase:
    """Return the shared database handle, connecting on first call."""
    global _client, _database
    if _database is not None:
        return _database

    async with _init_lock:
        # Another task may have finished initialising while we waited
        if _database is None:
            client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=False)
            database = client[settings.MONGODB_DB]
            await ensure_indexes(database)
            _client = client
            _database = database
            logger.info("MongoDB connection established (db=%s)", settings.MONGODB_DB)
    return _database


def set_database(db: Optional[AsyncIOMotorDatabase]) -> None:
    """Install an already-built handle (tests, scripts)."""
    global _database
    _database = db


def close_client() -> None:
    global _client, _database
    if _client is not None:
        _client.close()
    _client = None
    _database = None
