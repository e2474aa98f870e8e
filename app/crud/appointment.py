# app/crud/appointment.py

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from app.core.errors import InvalidReference, NotFound
from app.core.times import day_bounds, to_storage
from app.db.models.appointment import AppointmentRecord
from app.db.session import APPOINTMENTS, BARBERS, to_object_id
from app.schemas.appointment import AppointmentCreate, AppointmentUpdate

logger = logging.getLogger(__name__)


def _time_range(date: str) -> dict:
    start, end = day_bounds(date)
    return {"$gte": to_storage(start), "$lt": to_storage(end)}


async def list_appointments(
    db: AsyncIOMotorDatabase,
    *,
    barber_id: Optional[str] = None,
    date: Optional[str] = None,
) -> List[AppointmentRecord]:
    q: dict = {}
    if barber_id is not None:
        oid = to_object_id(barber_id)
        if oid is None:
            # A malformed id can't match any stored reference
            return []
        q["barber_id"] = oid
    if date is not None:
        q["time"] = _time_range(date)

    docs = await db[APPOINTMENTS].find(q, sort=[("time", ASCENDING)]).to_list(length=None)
    return [AppointmentRecord.from_document(d) for d in docs]


async def get_appointment(db: AsyncIOMotorDatabase, appointment_id: str) -> AppointmentRecord:
    oid = to_object_id(appointment_id)
    doc = await db[APPOINTMENTS].find_one({"_id": oid}) if oid is not None else None
    if doc is None:
        raise NotFound("Appointment not found", appointment_id=appointment_id)
    return AppointmentRecord.from_document(doc)


async def list_appointments_by_ids(
    db: AsyncIOMotorDatabase,
    appointment_ids: Iterable[str],
    *,
    date: Optional[str] = None,
) -> List[AppointmentRecord]:
    """Appointments for a barber's id collection, ascending by time."""
    oids = [oid for oid in (to_object_id(i) for i in appointment_ids) if oid is not None]
    if not oids:
        return []
    q: dict = {"_id": {"$in": oids}}
    if date is not None:
        q["time"] = _time_range(date)

    docs = await db[APPOINTMENTS].find(q, sort=[("time", ASCENDING)]).to_list(length=None)
    return [AppointmentRecord.from_document(d) for d in docs]


async def create_appointment(db: AsyncIOMotorDatabase, data: AppointmentCreate) -> AppointmentRecord:
    barber_oid = to_object_id(data.barber_id)
    if barber_oid is None or await db[BARBERS].find_one({"_id": barber_oid}, {"_id": 1}) is None:
        raise InvalidReference("Barber ID is invalid", barber_id=data.barber_id)

    doc = data.to_document()
    doc["barber_id"] = barber_oid
    res = await db[APPOINTMENTS].insert_one(doc)
    appointment_oid = res.inserted_id

    # $addToSet keeps concurrent bookings for the same barber from clobbering each other
    linked = await db[BARBERS].update_one(
        {"_id": barber_oid},
        {"$addToSet": {"appointment_ids": appointment_oid}},
    )
    if linked.matched_count == 0:
        logger.error(
            "Barber %s vanished before appointment %s could be linked; removing appointment",
            barber_oid, appointment_oid,
        )
        await db[APPOINTMENTS].delete_one({"_id": appointment_oid})
        raise InvalidReference("Barber ID is invalid", barber_id=data.barber_id)

    logger.info("Appointment %s created for barber %s", appointment_oid, barber_oid)
    doc["_id"] = appointment_oid
    return AppointmentRecord.from_document(doc)


async def update_appointment(
    db: AsyncIOMotorDatabase,
    appointment_id: str,
    data: AppointmentUpdate,
) -> AppointmentRecord:
    changes = data.changes()
    if not changes:
        return await get_appointment(db, appointment_id)

    if "barber_id" in changes:
        barber_oid = to_object_id(changes["barber_id"])
        if barber_oid is None:
            raise InvalidReference("Barber ID is invalid", barber_id=changes["barber_id"])
        changes["barber_id"] = barber_oid

    oid = to_object_id(appointment_id)
    doc = None
    if oid is not None:
        doc = await db[APPOINTMENTS].find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
    if doc is None:
        raise NotFound("Appointment not found", appointment_id=appointment_id)
    return AppointmentRecord.from_document(doc)
