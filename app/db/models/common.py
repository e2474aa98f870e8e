# app/db/models/common.py

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field


class Specialisation(str, Enum):
    BEARDS = "BEARDS"
    HAIRCUTS = "HAIRCUTS"


class ServiceName(str, Enum):
    HAIRCUT = "HAIRCUT"
    SHAVING = "SHAVING"
    COMBO = "COMBO"
    FATHERSON = "FATHERSON"
    JUNIOR = "JUNIOR"


class PersonName(BaseModel):
    model_config = ConfigDict(frozen=True)

    first: str = Field(..., min_length=1)
    last: str = Field(..., min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.first} {self.last}"

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "PersonName":
        return cls(first=doc["first"], last=doc["last"])

    def to_document(self) -> dict:
        return {"first": self.first, "last": self.last}
