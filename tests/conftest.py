#!/usr/bin/env python3
"""
Shared pytest fixtures: an in-memory MongoDB, test settings, record
factories and request contexts for the GraphQL layer.
"""

import os
import sys
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.core.config import Settings
from app.crud import appointment as appointment_crud
from app.crud import barber as barber_crud
from app.db.models.common import PersonName, ServiceName, Specialisation
from app.db.session import ensure_indexes
from app.schemas.appointment import AppointmentCreate
from app.schemas.barber import BarberProfileCreate, BarberUpdate
from app.services.context import CallerIdentity, RequestContext
from app.services.identity import IdentityClient, ManagementToken
from app.services.storage import ProfileImageStorage

UTC = timezone.utc


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Keep tests away from real services."""
    test_env = {
        'APP_ENV': 'testing',
        'MONGODB_URI': 'mongodb://localhost:27017',
        'MONGODB_DB': 'barbershop_test',
        'AUTH0_DOMAIN': 'https://tenant.test',
        'AUTH0_AUDIENCE': 'https://api.barbershop.test/graphql',
        'AUTH0_CLIENT_ID': 'test_client_id',
        'AUTH0_CLIENT_SECRET': 'test_client_secret',
        'AUTH0_BARBER_ROLE_ID': 'rol_barber',
        'S3_BUCKET_NAME': 'test-bucket',
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
    }

    with patch.dict(os.environ, test_env):
        yield


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        AUTH0_DOMAIN="https://tenant.test",
        AUTH0_AUDIENCE="https://api.barbershop.test/graphql",
        AUTH0_CLIENT_ID="test_client_id",
        AUTH0_CLIENT_SECRET="test_client_secret",
        AUTH0_BARBER_ROLE_ID="rol_barber",
        S3_BUCKET_NAME="test-bucket",
        AWS_REGION="eu-central-1",
    )


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    client = AsyncMongoMockClient()
    database = client["barbershop_test"]
    await ensure_indexes(database)
    return database


@pytest.fixture
def barber_factory(db):
    async def _make(
        email="jane@example.com",
        first="Jane",
        last="Doe",
        specialisation=Specialisation.HAIRCUTS,
        completed=True,
    ):
        barber = await barber_crud.create_barber(
            db,
            BarberProfileCreate(
                email=email,
                name=PersonName(first=first, last=last),
                specialisation=specialisation,
                profile_image_url="https://s.gravatar.com/avatar/default.png",
            ),
        )
        if completed:
            barber = await barber_crud.update_barber(
                db, barber.id, BarberUpdate(profile_image_url=f"https://img.test/{barber.id}.png")
            )
        return barber

    return _make


@pytest.fixture
def appointment_factory(db):
    async def _make(barber_id, time, **overrides):
        data = {
            "duration": 30,
            "email": "client@example.com",
            "name": {"first": "John", "last": "Smith"},
            "phone_number": "+14165551234",
            "service_name": ServiceName.HAIRCUT,
            "time": time,
            "barber_id": barber_id,
        }
        data.update(overrides)
        return await appointment_crud.create_appointment(db, AppointmentCreate(**data))

    return _make


@pytest.fixture
def at():
    """Build a UTC datetime: at(2024, 3, 1, 10) -> 2024-03-01T10:00Z."""
    def _at(*args, **kwargs):
        return datetime(*args, tzinfo=UTC, **kwargs)

    return _at


@pytest.fixture
def identity_mock():
    identity = AsyncMock(spec=IdentityClient)
    identity.is_end_user.return_value = True
    return identity


@pytest.fixture
def storage(test_settings):
    return ProfileImageStorage(test_settings)


@pytest.fixture
def make_context(db, identity_mock, storage):
    """Request context for an anonymous caller, or one with given email/scopes."""
    def _make(email=None, permissions=(), subject="auth0|caller"):
        ctx = RequestContext(db=db, identity=identity_mock, storage=storage)
        if email is not None or permissions:
            ctx.caller = CallerIdentity(subject=subject, email=email or "", permissions=tuple(permissions))
            ctx.management_token = ManagementToken(access_token="mgmt-token")
        return ctx

    return _make


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Tests that exercise several layers together")
