#!/usr/bin/env python3
"""
Tests for the Auth0 client: token verification and Management API calls.

Auth0 is replaced with an httpx.MockTransport; tokens are signed with a
throwaway RSA key published through the mocked JWKS endpoint.
"""

import json
import os
import sys
import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import JWTError, jwk, jwt

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.core.errors import UpstreamFailure
from app.services.identity import IdentityClient, ManagementToken

KID = "test-key"
TOKEN = ManagementToken(access_token="mgmt-token")


def _make_key(kid):
    """Private PEM and public JWK for a fresh RSA signing key."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk.update({"kid": kid, "use": "sig", "alg": "RS256"})
    return private_pem, public_jwk


@pytest.fixture(scope="module")
def rsa_keys():
    private_pem, public_jwk = _make_key(KID)
    return private_pem, {"keys": [public_jwk]}


class FakeAuth0:
    """Records requests and answers them from a route table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "not_found"})
        return handler(request)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]


def _client(test_settings, routes):
    fake = FakeAuth0(routes)
    client = IdentityClient(test_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(fake)))
    return client, fake


def _token_response(expires_in=86400):
    return lambda request: httpx.Response(
        200, json={"access_token": "mgmt-token", "token_type": "Bearer", "expires_in": expires_in}
    )


def _sign(private_pem, test_settings, kid=KID, **overrides):
    claims = {
        "sub": "auth0|jane",
        "aud": [test_settings.AUTH0_AUDIENCE, test_settings.auth0_userinfo_audience],
        "iss": test_settings.auth0_issuer,
        "exp": int(time.time()) + 300,
        "permissions": ["read:appointments_data"],
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})


class TestVerifyToken:

    @pytest.mark.asyncio
    async def test_valid_token(self, test_settings, rsa_keys):
        private_pem, jwks = rsa_keys
        client, fake = _client(test_settings, {
            ("GET", "/.well-known/jwks.json"): lambda r: httpx.Response(200, json=jwks),
        })

        claims = await client.verify_token(_sign(private_pem, test_settings))

        assert claims["sub"] == "auth0|jane"
        assert client.is_end_user(claims)

        # The key set is fetched once
        await client.verify_token(_sign(private_pem, test_settings))
        assert len(fake.calls("GET", "/.well-known/jwks.json")) == 1

    @pytest.mark.asyncio
    async def test_wrong_audience(self, test_settings, rsa_keys):
        private_pem, jwks = rsa_keys
        client, _ = _client(test_settings, {
            ("GET", "/.well-known/jwks.json"): lambda r: httpx.Response(200, json=jwks),
        })

        with pytest.raises(JWTError):
            await client.verify_token(_sign(private_pem, test_settings, aud="https://elsewhere"))

    @pytest.mark.asyncio
    async def test_expired_token(self, test_settings, rsa_keys):
        private_pem, jwks = rsa_keys
        client, _ = _client(test_settings, {
            ("GET", "/.well-known/jwks.json"): lambda r: httpx.Response(200, json=jwks),
        })

        with pytest.raises(JWTError):
            await client.verify_token(_sign(private_pem, test_settings, exp=int(time.time()) - 10))

    @pytest.mark.asyncio
    async def test_rotated_signing_key_is_picked_up(self, test_settings, rsa_keys):
        """A token signed with a key published after the first fetch still verifies"""
        old_pem, old_jwks = rsa_keys
        new_pem, new_jwk = _make_key("rotated-key")
        published = {"keys": list(old_jwks["keys"])}
        client, fake = _client(test_settings, {
            ("GET", "/.well-known/jwks.json"): lambda r: httpx.Response(200, json=published),
        })

        await client.verify_token(_sign(old_pem, test_settings))
        published["keys"] = [new_jwk] + old_jwks["keys"]

        claims = await client.verify_token(_sign(new_pem, test_settings, kid="rotated-key"))

        assert claims["sub"] == "auth0|jane"
        assert len(fake.calls("GET", "/.well-known/jwks.json")) == 2

        # Both keys are now cached
        await client.verify_token(_sign(old_pem, test_settings))
        await client.verify_token(_sign(new_pem, test_settings, kid="rotated-key"))
        assert len(fake.calls("GET", "/.well-known/jwks.json")) == 2

    @pytest.mark.asyncio
    async def test_unknown_key_refetches_once_then_fails(self, test_settings, rsa_keys):
        _, jwks = rsa_keys
        stranger_pem, _ = _make_key("never-published")
        client, fake = _client(test_settings, {
            ("GET", "/.well-known/jwks.json"): lambda r: httpx.Response(200, json=jwks),
        })

        with pytest.raises(JWTError):
            await client.verify_token(_sign(stranger_pem, test_settings, kid="never-published"))
        assert len(fake.calls("GET", "/.well-known/jwks.json")) == 2

    def test_machine_token_is_not_end_user(self, test_settings):
        client = IdentityClient(test_settings, client=httpx.AsyncClient())
        assert not client.is_end_user({"aud": test_settings.AUTH0_AUDIENCE})


class TestManagementToken:

    @pytest.mark.asyncio
    async def test_token_is_cached(self, test_settings):
        client, fake = _client(test_settings, {("POST", "/oauth/token"): _token_response()})

        first = await client.get_management_token()
        second = await client.get_management_token()

        assert first is second
        assert first.authorization == "Bearer mgmt-token"
        assert len(fake.calls("POST", "/oauth/token")) == 1

        body = json.loads(fake.requests[0].content)
        assert body["grant_type"] == "client_credentials"
        assert body["audience"] == "https://tenant.test/api/v2/"

    @pytest.mark.asyncio
    async def test_short_lived_token_is_refetched(self, test_settings):
        client, fake = _client(test_settings, {("POST", "/oauth/token"): _token_response(expires_in=30)})

        await client.get_management_token()
        await client.get_management_token()

        assert len(fake.calls("POST", "/oauth/token")) == 2

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_settings):
        settings = test_settings.model_copy(update={"AUTH0_CLIENT_SECRET": None})
        client = IdentityClient(settings, client=httpx.AsyncClient())

        with pytest.raises(UpstreamFailure):
            await client.get_management_token()

    @pytest.mark.asyncio
    async def test_auth0_error_becomes_upstream_failure(self, test_settings):
        client, _ = _client(test_settings, {
            ("POST", "/oauth/token"): lambda r: httpx.Response(401, json={"error": "access_denied"}),
        })

        with pytest.raises(UpstreamFailure) as exc:
            await client.get_management_token()
        assert exc.value.extensions["service"] == "auth0"


class TestUserManagement:

    @pytest.mark.asyncio
    async def test_get_user_email(self, test_settings):
        client, fake = _client(test_settings, {
            ("GET", "/api/v2/users/auth0|jane"): lambda r: httpx.Response(200, json={"email": "jane@example.com"}),
        })

        assert await client.get_user_email(TOKEN, "auth0|jane") == "jane@example.com"
        assert fake.requests[0].headers["Authorization"] == "Bearer mgmt-token"

    @pytest.mark.asyncio
    async def test_register_barber_creates_user_and_assigns_role(self, test_settings):
        client, fake = _client(test_settings, {
            ("POST", "/api/v2/users"): lambda r: httpx.Response(
                201, json={"user_id": "auth0|new", "picture": "https://s.gravatar.com/avatar/x.png"}
            ),
            ("POST", "/api/v2/roles/rol_barber/users"): lambda r: httpx.Response(204),
        })

        account = await client.register_barber(TOKEN, email="new@example.com", password="s3cret!", name="New Barber")

        assert account["picture"] == "https://s.gravatar.com/avatar/x.png"
        created = json.loads(fake.calls("POST", "/api/v2/users")[0].content)
        assert created["connection"] == "Username-Password-Authentication"
        assert created["email"] == "new@example.com"
        assigned = json.loads(fake.calls("POST", "/api/v2/roles/rol_barber/users")[0].content)
        assert assigned == {"users": ["auth0|new"]}

    @pytest.mark.asyncio
    async def test_register_barber_needs_role_config(self, test_settings):
        settings = test_settings.model_copy(update={"AUTH0_BARBER_ROLE_ID": None})
        client, fake = _client(settings, {})

        with pytest.raises(UpstreamFailure):
            await client.register_barber(TOKEN, email="new@example.com", password="pw", name="New Barber")
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_find_user_id_by_email(self, test_settings):
        client, fake = _client(test_settings, {
            ("GET", "/api/v2/users-by-email"): lambda r: httpx.Response(
                200, json=[{"user_id": "auth0|jane"}] if r.url.params["email"] == "jane@example.com" else []
            ),
        })

        assert await client.find_user_id_by_email(TOKEN, "jane@example.com") == "auth0|jane"
        with pytest.raises(UpstreamFailure):
            await client.find_user_id_by_email(TOKEN, "ghost@example.com")

    @pytest.mark.asyncio
    async def test_update_user_patches_profile(self, test_settings):
        client, fake = _client(test_settings, {
            ("PATCH", "/api/v2/users/auth0|jane"): lambda r: httpx.Response(200, json={"user_id": "auth0|jane"}),
        })

        await client.update_user(TOKEN, "auth0|jane", {"name": "Janet Doe"})

        assert json.loads(fake.requests[0].content) == {"name": "Janet Doe"}

    @pytest.mark.asyncio
    async def test_network_error_becomes_upstream_failure(self, test_settings):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = IdentityClient(test_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(boom)))

        with pytest.raises(UpstreamFailure):
            await client.get_user_email(TOKEN, "auth0|jane")
