# app/services/context.py
"""
Per-request context: who is calling, plus the collaborators resolvers use.

Authentication never fails a request here. A missing, malformed or
unverifiable bearer token (or a failed email lookup) yields an anonymous
context, and the guard rejects the caller later at the first protected
field or mutation it touches.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from jose import JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.errors import BookingError, NotFound
from app.crud.barber import get_barber
from app.services.identity import IdentityClient, ManagementToken
from app.services.storage import ProfileImageStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    subject: str
    # Empty for machine-to-machine callers
    email: str = ""
    permissions: Tuple[str, ...] = ()


@dataclass
class RequestContext:
    db: AsyncIOMotorDatabase
    identity: IdentityClient
    storage: ProfileImageStorage
    caller: Optional[CallerIdentity] = None
    management_token: Optional[ManagementToken] = None
    _owner_emails: Dict[str, Optional[str]] = field(default_factory=dict, init=False, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self.caller is not None

    async def owner_email(self, barber_id: str) -> Optional[str]:
        """Email of the barber with ``barber_id``; looked up once per request."""
        if barber_id not in self._owner_emails:
            try:
                barber = await get_barber(self.db, barber_id=barber_id)
                self._owner_emails[barber_id] = barber.email
            except NotFound:
                self._owner_emails[barber_id] = None
        return self._owner_emails[barber_id]


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def build_request_context(
    authorization: Optional[str],
    *,
    db: AsyncIOMotorDatabase,
    identity: IdentityClient,
    storage: ProfileImageStorage,
) -> RequestContext:
    ctx = RequestContext(db=db, identity=identity, storage=storage)
    token = _bearer_token(authorization)
    if token is None:
        return ctx

    try:
        claims = await identity.verify_token(token)
        management_token = await identity.get_management_token()
        subject = claims.get("sub", "")
        email = ""
        if identity.is_end_user(claims):
            email = await identity.get_user_email(management_token, subject)
    except (JWTError, BookingError) as e:
        logger.warning("Falling back to anonymous context: %s", type(e).__name__)
        return ctx

    ctx.caller = CallerIdentity(
        subject=subject,
        email=email,
        permissions=tuple(claims.get("permissions") or ()),
    )
    ctx.management_token = management_token
    return ctx
