# app/graphql/types.py
"""
GraphQL object and input types.

Object types wrap the gateway records; every field is projected explicitly,
so storage-only attributes (``completed``, raw ObjectIds) never reach the
wire. Protected fields go through the guard on every access.
"""
from typing import List, Optional

import strawberry
from strawberry.types import Info

from app.core.times import to_iso
from app.crud import appointment as appointment_crud
from app.crud import barber as barber_crud
from app.db.models.appointment import AppointmentRecord
from app.db.models.barber import BarberRecord
from app.db.models.common import ServiceName as ServiceNameEnum
from app.db.models.common import Specialisation as SpecialisationEnum
from app.services.authorization import (
    READ_APPOINTMENTS_DATA,
    READ_BARBER_DATA,
    ensure_field_access,
    has_scope,
)
from app.services.context import RequestContext

Specialisation = strawberry.enum(SpecialisationEnum, name="Specialisation")
Service = strawberry.enum(ServiceNameEnum, name="Service")


def get_context(info: Info) -> RequestContext:
    return info.context["request_context"]


@strawberry.type
class Barber:
    record: strawberry.Private[BarberRecord]

    @strawberry.field
    def id(self) -> strawberry.ID:
        return strawberry.ID(self.record.id)

    @strawberry.field
    def full_name(self) -> str:
        return self.record.full_name

    @strawberry.field(name="profileImageURL")
    def profile_image_url(self) -> str:
        return self.record.profile_image_url

    @strawberry.field
    def specialisation(self) -> Specialisation:
        return self.record.specialisation

    @strawberry.field
    def email(self, info: Info) -> str:
        ctx = get_context(info)
        ensure_field_access(ctx.caller, self.record.email, READ_BARBER_DATA)
        return self.record.email

    @strawberry.field
    async def appointments(self, info: Info, date: Optional[str] = None) -> List[Optional["Appointment"]]:
        ctx = get_context(info)
        found = await appointment_crud.list_appointments_by_ids(
            ctx.db, self.record.appointment_ids, date=date
        )
        return [Appointment(record=a) for a in found]


@strawberry.type
class Appointment:
    record: strawberry.Private[AppointmentRecord]

    async def _protected(self, info: Info, value: str) -> str:
        ctx = get_context(info)
        owner_email = None
        if has_scope(ctx.caller, READ_APPOINTMENTS_DATA):
            owner_email = await ctx.owner_email(self.record.barber_id)
        ensure_field_access(ctx.caller, owner_email, READ_APPOINTMENTS_DATA)
        return value

    @strawberry.field
    def id(self) -> strawberry.ID:
        return strawberry.ID(self.record.id)

    @strawberry.field
    def duration(self) -> int:
        return self.record.duration

    @strawberry.field
    def service_name(self) -> Service:
        return self.record.service_name

    @strawberry.field
    def time(self) -> str:
        return to_iso(self.record.time)

    @strawberry.field
    async def barber(self, info: Info) -> Barber:
        ctx = get_context(info)
        found = await barber_crud.get_barber(ctx.db, barber_id=self.record.barber_id)
        return Barber(record=found)

    @strawberry.field
    async def full_name(self, info: Info) -> str:
        return await self._protected(info, self.record.full_name)

    @strawberry.field
    async def email(self, info: Info) -> str:
        return await self._protected(info, self.record.email)

    @strawberry.field
    async def phone_number(self, info: Info) -> str:
        return await self._protected(info, self.record.phone_number)


@strawberry.input(name="Name")
class NameInput:
    first: str
    last: str


@strawberry.input
class CreateAppointmentInput:
    duration: int
    email: str
    name: NameInput
    phone_number: str
    service_name: Service
    time: str
    barber_id: strawberry.ID = strawberry.field(name="barberID")


@strawberry.input
class UpdateAppointmentInput:
    duration: Optional[int] = None
    email: Optional[str] = None
    name: Optional[NameInput] = None
    phone_number: Optional[str] = None
    service_name: Optional[Service] = None
    time: Optional[str] = None
    barber_id: Optional[strawberry.ID] = strawberry.field(name="barberID", default=None)


@strawberry.input
class CreateBarberInput:
    email: str
    name: NameInput
    specialisation: Specialisation
    password: str


@strawberry.input
class UpdateBarberInput:
    email: Optional[str] = None
    name: Optional[NameInput] = None
    profile_image_url: Optional[str] = strawberry.field(name="profileImageURL", default=None)
    specialisation: Optional[Specialisation] = None
