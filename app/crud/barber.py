# app/crud/barber.py

from __future__ import annotations

import logging
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.errors import InvalidInput, NotFound
from app.db.models.barber import BarberRecord
from app.db.session import BARBERS, to_object_id
from app.schemas.barber import BarberProfileCreate, BarberUpdate

logger = logging.getLogger(__name__)


async def list_barbers(db: AsyncIOMotorDatabase, *, only_completed: bool = False) -> List[BarberRecord]:
    q = {"completed": True} if only_completed else {}
    docs = await db[BARBERS].find(q).to_list(length=None)
    return [BarberRecord.from_document(d) for d in docs]


async def get_barber(
    db: AsyncIOMotorDatabase,
    *,
    barber_id: Optional[str] = None,
    email: Optional[str] = None,
) -> BarberRecord:
    if barber_id:
        oid = to_object_id(barber_id)
        doc = await db[BARBERS].find_one({"_id": oid}) if oid is not None else None
    elif email:
        doc = await db[BARBERS].find_one({"email": email})
    else:
        raise InvalidInput("Either barberID or email must be provided")

    if doc is None:
        raise NotFound("Barber not found")
    return BarberRecord.from_document(doc)


async def create_barber(db: AsyncIOMotorDatabase, data: BarberProfileCreate) -> BarberRecord:
    doc = data.to_document()
    try:
        res = await db[BARBERS].insert_one(doc)
    except DuplicateKeyError:
        raise InvalidInput("A barber with this email already exists")
    doc["_id"] = res.inserted_id
    logger.info("Barber %s created", res.inserted_id)
    return BarberRecord.from_document(doc)


async def update_barber(db: AsyncIOMotorDatabase, barber_id: str, data: BarberUpdate) -> BarberRecord:
    changes = data.changes()
    if not changes:
        return await get_barber(db, barber_id=barber_id)

    oid = to_object_id(barber_id)
    doc = None
    if oid is not None:
        try:
            doc = await db[BARBERS].find_one_and_update(
                {"_id": oid},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise InvalidInput("A barber with this email already exists")
    if doc is None:
        raise NotFound("Barber not found")
    return BarberRecord.from_document(doc)
