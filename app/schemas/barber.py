# app/schemas/barber.py

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.db.models.common import PersonName, Specialisation


class BarberCreate(BaseModel):
    """createBarber input; the password only goes to the identity provider."""

    email: str = Field(..., min_length=3)
    name: PersonName
    specialisation: Specialisation
    password: str = Field(..., min_length=1, repr=False)


class BarberProfileCreate(BaseModel):
    email: str = Field(..., min_length=3)
    name: PersonName
    specialisation: Specialisation
    profile_image_url: str

    def to_document(self) -> dict:
        return {
            "email": self.email,
            "name": self.name.to_document(),
            "profile_image_url": self.profile_image_url,
            "specialisation": self.specialisation.value,
            "appointment_ids": [],
            "completed": False,
        }


class BarberUpdate(BaseModel):
    email: Optional[str] = Field(None, min_length=3)
    name: Optional[PersonName] = None
    profile_image_url: Optional[str] = None
    specialisation: Optional[Specialisation] = None

    def changes(self) -> dict:
        out: dict = {}
        if self.email is not None:
            out["email"] = self.email
        if self.name is not None:
            out["name"] = self.name.to_document()
        if self.profile_image_url is not None:
            out["profile_image_url"] = self.profile_image_url
            # An uploaded image is the last step of profile setup
            out["completed"] = True
        if self.specialisation is not None:
            out["specialisation"] = self.specialisation.value
        return out
