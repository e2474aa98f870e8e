# app/db/models/barber.py

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from app.db.models.common import PersonName, Specialisation


class BarberRecord(BaseModel):
    """A barber as the rest of the app sees it (ids as hex strings)."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: PersonName
    profile_image_url: str
    specialisation: Specialisation
    # Creation order, not time order
    appointment_ids: tuple[str, ...] = ()
    completed: bool = False

    @property
    def full_name(self) -> str:
        return self.name.full_name

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "BarberRecord":
        return cls(
            id=str(doc["_id"]),
            email=doc["email"],
            name=PersonName.from_document(doc["name"]),
            profile_image_url=doc["profile_image_url"],
            specialisation=Specialisation(doc["specialisation"]),
            appointment_ids=tuple(str(oid) for oid in doc.get("appointment_ids", [])),
            completed=bool(doc.get("completed", False)),
        )
