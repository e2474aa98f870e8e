# app/graphql/schema.py

import dataclasses
from typing import Annotated, List, Optional, Type, TypeVar

import strawberry
from pydantic import BaseModel, ValidationError
from strawberry.types import Info

from app.core.errors import BookingError, InvalidInput, Unauthorized, UpstreamFailure
from app.core.logging import get_logger
from app.core.times import parse_instant
from app.crud import appointment as appointment_crud
from app.crud import barber as barber_crud
from app.graphql.extensions import OperationLogger
from app.graphql.types import (
    Appointment,
    Barber,
    CreateAppointmentInput,
    CreateBarberInput,
    UpdateAppointmentInput,
    UpdateBarberInput,
    get_context,
)
from app.schemas.appointment import AppointmentCreate, AppointmentUpdate
from app.schemas.barber import BarberCreate, BarberProfileCreate, BarberUpdate
from app.services.authorization import CREATE_BARBER, UPDATE_BARBER, require_scope
from app.services.availability import filter_available_barbers

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

BarberIDArg = Annotated[strawberry.ID, strawberry.argument(name="barberID")]
OptionalBarberIDArg = Annotated[Optional[strawberry.ID], strawberry.argument(name="barberID")]
AppointmentIDArg = Annotated[strawberry.ID, strawberry.argument(name="appointmentID")]


def _validate(model: Type[M], graphql_input) -> M:
    """Turn a GraphQL input object into its pydantic schema."""
    try:
        return model(**dataclasses.asdict(graphql_input))
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidInput(f"Invalid input: {problems}")


@strawberry.type
class Query:
    @strawberry.field
    async def appointments(
        self,
        info: Info,
        date: Optional[str] = None,
        barber_id: OptionalBarberIDArg = None,
    ) -> List[Optional[Appointment]]:
        ctx = get_context(info)
        found = await appointment_crud.list_appointments(ctx.db, barber_id=barber_id, date=date)
        return [Appointment(record=a) for a in found]

    @strawberry.field
    async def appointment(self, info: Info, appointment_id: AppointmentIDArg) -> Appointment:
        ctx = get_context(info)
        return Appointment(record=await appointment_crud.get_appointment(ctx.db, appointment_id))

    @strawberry.field
    async def barbers(self, info: Info, date_time: Optional[str] = None) -> List[Optional[Barber]]:
        ctx = get_context(info)
        found = await barber_crud.list_barbers(ctx.db, only_completed=True)
        if date_time is not None:
            # Looking for free barbers: load every listed barber's appointments
            at = parse_instant(date_time)
            ids = [i for b in found for i in b.appointment_ids]
            booked = await appointment_crud.list_appointments_by_ids(ctx.db, ids)
            found = filter_available_barbers(found, booked, at)
        return [Barber(record=b) for b in found]

    @strawberry.field
    async def barber(
        self,
        info: Info,
        barber_id: OptionalBarberIDArg = None,
        email: Optional[str] = None,
    ) -> Barber:
        ctx = get_context(info)
        return Barber(record=await barber_crud.get_barber(ctx.db, barber_id=barber_id, email=email))

    @strawberry.field(name="getSignedURL")
    async def get_signed_url(self, info: Info, barber_id: BarberIDArg, file_extension: str) -> str:
        ctx = get_context(info)
        require_scope(ctx.caller, CREATE_BARBER)
        return await ctx.storage.signed_upload_url(barber_id, file_extension)


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def create_appointment(self, info: Info, input: CreateAppointmentInput) -> Appointment:
        ctx = get_context(info)
        data = _validate(AppointmentCreate, input)
        created = await appointment_crud.create_appointment(ctx.db, data)
        logger.info("appointment_created", appointment_id=created.id, barber_id=created.barber_id)
        return Appointment(record=created)

    @strawberry.mutation
    async def create_barber(self, info: Info, input: CreateBarberInput) -> Barber:
        ctx = get_context(info)
        require_scope(ctx.caller, CREATE_BARBER)
        if ctx.management_token is None:
            raise Unauthorized()
        data = _validate(BarberCreate, input)

        # The Auth0 account comes first so its default avatar can seed profileImageURL
        account = await ctx.identity.register_barber(
            ctx.management_token,
            email=data.email,
            password=data.password,
            name=data.name.full_name,
        )
        created = await barber_crud.create_barber(
            ctx.db,
            BarberProfileCreate(
                email=data.email,
                name=data.name,
                specialisation=data.specialisation,
                profile_image_url=account.get("picture") or "",
            ),
        )
        logger.info("barber_created", barber_id=created.id, auth0_user_id=account.get("user_id"))
        return Barber(record=created)

    @strawberry.mutation
    async def update_appointment(
        self,
        info: Info,
        appointment_id: AppointmentIDArg,
        input: UpdateAppointmentInput,
    ) -> Appointment:
        ctx = get_context(info)
        data = _validate(AppointmentUpdate, input)
        updated = await appointment_crud.update_appointment(ctx.db, appointment_id, data)
        return Appointment(record=updated)

    @strawberry.mutation
    async def update_barber(self, info: Info, barber_id: BarberIDArg, input: UpdateBarberInput) -> Barber:
        ctx = get_context(info)
        require_scope(ctx.caller, UPDATE_BARBER)
        if ctx.management_token is None:
            raise Unauthorized()
        data = _validate(BarberUpdate, input)

        # Locate the Auth0 account by the email on record before it can change
        current = await barber_crud.get_barber(ctx.db, barber_id=barber_id)
        auth0_user_id = await ctx.identity.find_user_id_by_email(ctx.management_token, current.email)

        updated = await barber_crud.update_barber(ctx.db, barber_id, data)

        profile_changes = {}
        if data.name is not None:
            profile_changes["name"] = data.name.full_name
        if data.profile_image_url is not None:
            profile_changes["picture"] = data.profile_image_url
        if data.email is not None and data.email != current.email:
            profile_changes["email"] = data.email
        if profile_changes:
            await ctx.identity.update_user(ctx.management_token, auth0_user_id, profile_changes)

        logger.info("barber_updated", barber_id=updated.id, fields=sorted(data.changes()))
        return Barber(record=updated)


class BookingSchema(strawberry.Schema):
    def process_errors(self, errors, execution_context=None):
        # Expected client errors are not logged
        unexpected = [
            e for e in errors
            if not isinstance(e.original_error, BookingError) or isinstance(e.original_error, UpstreamFailure)
        ]
        if unexpected:
            super().process_errors(unexpected, execution_context)


schema = BookingSchema(query=Query, mutation=Mutation, extensions=[OperationLogger])
