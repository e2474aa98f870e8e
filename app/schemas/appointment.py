# app/schemas/appointment.py

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from app.core.times import parse_instant, to_storage
from app.db.models.common import PersonName, ServiceName


def _coerce_instant(value: Any) -> Any:
    if isinstance(value, str):
        return parse_instant(value)
    return value


class AppointmentCreate(BaseModel):
    duration: int = Field(..., gt=0, description="Length in minutes")
    email: str = Field(..., min_length=3)
    name: PersonName
    phone_number: str = Field(..., min_length=1)
    service_name: ServiceName
    time: datetime
    barber_id: str

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, value: Any) -> Any:
        return _coerce_instant(value)

    def to_document(self) -> dict:
        return {
            "duration": self.duration,
            "email": self.email,
            "name": self.name.to_document(),
            "phone_number": self.phone_number,
            "service_name": self.service_name.value,
            "time": to_storage(self.time),
        }


class AppointmentUpdate(BaseModel):
    duration: Optional[int] = Field(None, gt=0)
    email: Optional[str] = Field(None, min_length=3)
    name: Optional[PersonName] = None
    phone_number: Optional[str] = Field(None, min_length=1)
    service_name: Optional[ServiceName] = None
    time: Optional[datetime] = None
    # Not re-validated against the barbers collection on update
    barber_id: Optional[str] = None

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, value: Any) -> Any:
        return _coerce_instant(value)

    def changes(self) -> dict:
        """Only the provided fields, in storage shape (barber_id left as hex)."""
        out: dict = {}
        if self.duration is not None:
            out["duration"] = self.duration
        if self.email is not None:
            out["email"] = self.email
        if self.name is not None:
            out["name"] = self.name.to_document()
        if self.phone_number is not None:
            out["phone_number"] = self.phone_number
        if self.service_name is not None:
            out["service_name"] = self.service_name.value
        if self.time is not None:
            out["time"] = to_storage(self.time)
        if self.barber_id is not None:
            out["barber_id"] = self.barber_id
        return out
