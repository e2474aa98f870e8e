# app/services/identity.py
"""
Auth0 integration: bearer-token verification and Management API calls.

Tokens are RS256 JWTs checked against the tenant's published key set
(issuer and audience bound). Management API calls use a client-credentials
token held by the server, cached until shortly before it expires.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from jose import jwt

from app.core.config import Settings
from app.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)

SERVICE = "auth0"
# Refresh the management token this many seconds before Auth0 expires it
TOKEN_EXPIRY_MARGIN = 60


@dataclass(frozen=True)
class ManagementToken:
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 86400
    scope: str = ""

    @property
    def authorization(self) -> str:
        return f"{self.token_type} {self.access_token}"


class IdentityClient:
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
        self._jwks: Optional[Dict[str, Any]] = None
        self._token: Optional[ManagementToken] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.settings.auth0_base_url}{path}"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Auth0 %s %s failed with status %s", method, url, e.response.status_code)
            raise UpstreamFailure("Identity provider request failed", service=SERVICE) from e
        except httpx.HTTPError as e:
            logger.error("Auth0 %s %s failed: %s", method, url, e)
            raise UpstreamFailure("Identity provider unreachable", service=SERVICE) from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ---------- Bearer tokens ----------

    async def get_jwks(self, refresh: bool = False) -> Dict[str, Any]:
        if self._jwks is None or refresh:
            self._jwks = await self._request("GET", self.settings.auth0_jwks_url)
        return self._jwks

    @staticmethod
    def _has_key(jwks: Dict[str, Any], kid: Optional[str]) -> bool:
        return any(key.get("kid") == kid for key in jwks.get("keys", []))

    async def verify_token(self, token: str) -> Dict[str, Any]:
        """Return the verified claims; raises ``jose.JWTError`` on a bad token.

        A ``kid`` missing from the cached key set triggers one refetch, so
        signing keys rotated by Auth0 are picked up without a restart.
        """
        kid = jwt.get_unverified_header(token).get("kid")
        jwks = await self.get_jwks()
        if not self._has_key(jwks, kid):
            logger.info("Unknown signing key %s; refreshing JWKS", kid)
            jwks = await self.get_jwks(refresh=True)
        return jwt.decode(
            token,
            jwks,
            algorithms=["RS256"],
            audience=self.settings.AUTH0_AUDIENCE,
            issuer=self.settings.auth0_issuer,
        )

    def is_end_user(self, claims: Dict[str, Any]) -> bool:
        """Machine-to-machine tokens lack the userinfo audience."""
        audience = claims.get("aud") or []
        if isinstance(audience, str):
            audience = [audience]
        return self.settings.auth0_userinfo_audience in audience

    # ---------- Management API ----------

    async def get_management_token(self) -> ManagementToken:
        async with self._token_lock:
            if self._token is not None and time.monotonic() < self._token_expires_at:
                return self._token

            if not (self.settings.AUTH0_CLIENT_ID and self.settings.AUTH0_CLIENT_SECRET):
                raise UpstreamFailure("Identity provider credentials are not configured", service=SERVICE)

            payload = await self._request(
                "POST",
                self._url("/oauth/token"),
                json={
                    "client_id": self.settings.AUTH0_CLIENT_ID,
                    "client_secret": self.settings.AUTH0_CLIENT_SECRET,
                    "audience": self.settings.auth0_management_audience,
                    "grant_type": "client_credentials",
                },
            )
            token = ManagementToken(
                access_token=payload["access_token"],
                token_type=payload.get("token_type", "Bearer"),
                expires_in=int(payload.get("expires_in", 86400)),
                scope=payload.get("scope", ""),
            )
            self._token = token
            self._token_expires_at = time.monotonic() + max(token.expires_in - TOKEN_EXPIRY_MARGIN, 0)
            logger.info("Fetched Auth0 management token (expires in %ss)", token.expires_in)
            return token

    async def get_user_email(self, token: ManagementToken, user_id: str) -> str:
        data = await self._request(
            "GET",
            self._url(f"/api/v2/users/{quote(user_id, safe='')}"),
            params={"fields": "email", "include_fields": "true"},
            headers={"Authorization": token.authorization},
        )
        return data.get("email", "")

    async def create_user(
        self,
        token: ManagementToken,
        *,
        email: str,
        password: str,
        name: str,
    ) -> Dict[str, Any]:
        """Create a database-connection user; the response carries ``user_id`` and ``picture``."""
        return await self._request(
            "POST",
            self._url("/api/v2/users"),
            json={
                "connection": self.settings.AUTH0_DB_CONNECTION,
                "email": email,
                "password": password,
                "name": name,
            },
            headers={"Authorization": token.authorization},
        )

    async def assign_role(self, token: ManagementToken, user_id: str, role_id: str) -> None:
        await self._request(
            "POST",
            self._url(f"/api/v2/roles/{quote(role_id, safe='')}/users"),
            json={"users": [user_id]},
            headers={"Authorization": token.authorization},
        )

    async def register_barber(
        self,
        token: ManagementToken,
        *,
        email: str,
        password: str,
        name: str,
    ) -> Dict[str, Any]:
        """Create the barber's Auth0 account and give it the barber role.

        Nothing is rolled back if the role assignment fails after the
        account was created.
        """
        role_id = self.settings.AUTH0_BARBER_ROLE_ID
        if not role_id:
            raise UpstreamFailure("Barber role is not configured", service=SERVICE)

        account = await self.create_user(token, email=email, password=password, name=name)
        try:
            await self.assign_role(token, account["user_id"], role_id)
        except UpstreamFailure:
            logger.error("Auth0 user %s created but role assignment failed", account.get("user_id"))
            raise
        return account

    async def find_user_id_by_email(self, token: ManagementToken, email: str) -> str:
        users: List[Dict[str, Any]] = await self._request(
            "GET",
            self._url("/api/v2/users-by-email"),
            params={"email": email, "fields": "user_id", "include_fields": "true"},
            headers={"Authorization": token.authorization},
        ) or []
        if not users:
            raise UpstreamFailure("No identity account for this barber", service=SERVICE)
        return users[0]["user_id"]

    async def update_user(self, token: ManagementToken, user_id: str, changes: Dict[str, Any]) -> None:
        await self._request(
            "PATCH",
            self._url(f"/api/v2/users/{quote(user_id, safe='')}"),
            json=changes,
            headers={"Authorization": token.authorization},
        )
