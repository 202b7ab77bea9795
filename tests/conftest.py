"""Shared fixtures: an in-memory MongoDB, a store over it and an API client."""
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from core.config import Settings
from core.registration_store import RegistrationStore
from main import create_app

PROJECT_DESCRIPTION = (
    "Solar-powered cold storage for fish traders in riverine communities, "
    "cutting post-harvest losses and diesel use across the delta."
)
GUIDED_LABS_INTEREST = "Mentorship on unit economics and access to pilot sites."


@pytest.fixture
def mock_db():
    client = AsyncMongoMockClient()
    return client["test_event_registrations"]


@pytest.fixture
def store(mock_db):
    return RegistrationStore(mock_db["registrations"], audit_collection=mock_db["audit"])


@pytest.fixture
async def opened_store(store):
    await store.open()
    return store


@pytest.fixture
def test_settings():
    return Settings(ENVIRONMENT="test", ENABLE_RATE_LIMITING=False)


@pytest.fixture
def client(test_settings, store):
    app = create_app(settings=test_settings, store=store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_payload():
    """Build a valid submission for a registration type, with overrides"""
    def _make(registration_type="attend", **overrides):
        payload = {
            "fullName": "Ada Okafor",
            "email": "ada.okafor@example.com",
            "phone": "+234 803 123 4567",
            "organization": "Delta Climate Lab",
            "registrationType": registration_type,
        }
        if registration_type == "anchor-partner":
            payload.update({
                "sponsorshipTier": "tier1",
                "participationType": "sponsor",
            })
        elif registration_type == "series-venture":
            payload.update({
                "ventureStage": "pilot",
                "location": "Port Harcourt",
                "teamSize": 6,
                "projectDescription": PROJECT_DESCRIPTION,
                "fundingNeeds": "5m-10m",
                "guidedLabsInterest": GUIDED_LABS_INTEREST,
            })
        payload.update(overrides)
        return payload
    return _make
