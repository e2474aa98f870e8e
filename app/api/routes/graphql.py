# app/api/routes/graphql.py

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from strawberry.fastapi import GraphQLRouter

from app.core.config import settings
from app.core.logging import set_user_context
from app.db.session import get_database
from app.graphql.schema import schema
from app.services.context import build_request_context
from app.services.identity import IdentityClient
from app.services.storage import ProfileImageStorage

# Shared across requests so the JWKS and management token stay cached.
# The getters are async: FastAPI runs them on the event loop, never in its
# threadpool, and they do not await before publishing the instance.
_identity_client: Optional[IdentityClient] = None
_storage: Optional[ProfileImageStorage] = None


async def get_identity_client() -> IdentityClient:
    global _identity_client
    if _identity_client is None:
        _identity_client = IdentityClient(settings)
    return _identity_client


async def get_storage() -> ProfileImageStorage:
    global _storage
    if _storage is None:
        _storage = ProfileImageStorage(settings)
    return _storage


async def close_services() -> None:
    global _identity_client, _storage
    if _identity_client is not None:
        await _identity_client.aclose()
    _identity_client = None
    _storage = None


async def get_graphql_context(
    request: Request,
    identity: IdentityClient = Depends(get_identity_client),
    storage: ProfileImageStorage = Depends(get_storage),
):
    db = await get_database()
    ctx = await build_request_context(
        request.headers.get("Authorization"),
        db=db,
        identity=identity,
        storage=storage,
    )
    if ctx.caller is not None:
        set_user_context(user_id=ctx.caller.subject)
    return {"request_context": ctx}


router = GraphQLRouter(schema, context_getter=get_graphql_context)
