# app/services/authorization.py
"""
Field-level access policy.

Protected values (appointment contact details, a barber's email) are only
handed to the barber they belong to, and only when the caller's token
carries the matching permission. Every denial raises the same
``Unauthorized`` error, whether the caller is anonymous, lacks the scope,
or is a different barber.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from app.core.errors import Unauthorized

if TYPE_CHECKING:
    from app.services.context import CallerIdentity

READ_APPOINTMENTS_DATA = "read:appointments_data"
READ_BARBER_DATA = "read:barber_data"
CREATE_BARBER = "create:barber"
UPDATE_BARBER = "update:barber"


def has_scope(caller: Optional["CallerIdentity"], scope: str) -> bool:
    return caller is not None and scope in caller.permissions


def is_allowed(caller: Optional["CallerIdentity"], owner_email: Optional[str], scope: str) -> bool:
    if not has_scope(caller, scope):
        return False
    if not caller.email or not owner_email:
        return False
    return caller.email == owner_email


def require_scope(caller: Optional["CallerIdentity"], scope: str) -> None:
    if not has_scope(caller, scope):
        raise Unauthorized()


def ensure_field_access(caller: Optional["CallerIdentity"], owner_email: Optional[str], scope: str) -> None:
    if not is_allowed(caller, owner_email, scope):
        raise Unauthorized()
