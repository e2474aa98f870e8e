# app/services/availability.py
"""
Free-barber lookup for a point in time.

A barber is busy at ``at`` only if one of their appointments starts at
exactly that instant. Appointment duration is not taken into account.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from app.core.times import ensure_utc
from app.db.models.appointment import AppointmentRecord
from app.db.models.barber import BarberRecord


def filter_available_barbers(
    barbers: Iterable[BarberRecord],
    appointments: Iterable[AppointmentRecord],
    at: datetime,
) -> List[BarberRecord]:
    at = ensure_utc(at)
    taken = {a.id for a in appointments if a.time == at}
    return [b for b in barbers if not taken.intersection(b.appointment_ids)]
