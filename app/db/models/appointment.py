# app/db/models/appointment.py

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from app.core.times import ensure_utc
from app.db.models.common import PersonName, ServiceName


class AppointmentRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    duration: int
    email: str
    name: PersonName
    phone_number: str
    service_name: ServiceName
    # Store as timezone-aware UTC
    time: datetime
    barber_id: str

    @property
    def full_name(self) -> str:
        return self.name.full_name

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "AppointmentRecord":
        return cls(
            id=str(doc["_id"]),
            duration=int(doc["duration"]),
            email=doc["email"],
            name=PersonName.from_document(doc["name"]),
            phone_number=doc["phone_number"],
            service_name=ServiceName(doc["service_name"]),
            time=ensure_utc(doc["time"]),
            barber_id=str(doc["barber_id"]),
        )
