"""
Fixtures for admissions tests.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from progress_api.modules.admissions.schemas import ApplicationCreate


@pytest.fixture
def admin_id():
    return uuid4()


@pytest.fixture
def member_payload() -> dict:
    """Wire payload for a member application (camelCase, as sent by clients)."""
    return {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@example.com",
        "constituency": "Islington North",
        "interests": ["policy"],
        "volunteer": False,
        "newsletter": True,
    }


@pytest.fixture
def volunteer_payload(member_payload) -> dict:
    """Wire payload for a volunteer application with every volunteer field."""
    return {
        **member_payload,
        "firstName": "Grace",
        "lastName": "Hopper",
        "email": "grace@example.com",
        "volunteer": True,
        "socialMediaHandle": "@grace",
        "isBritishCitizen": False,
        "livesInUK": True,
        "briefBio": "Compiler author.",
        "briefCV": "Navy, Harvard Mark I, COBOL.",
        "otherAffiliations": None,
        "interestedIn": ["canvassing"],
        "canContribute": ["weekends"],
        "signedNDA": True,
        "gdprConsent": True,
    }


@pytest.fixture
def member_application(member_payload) -> ApplicationCreate:
    return ApplicationCreate.model_validate(member_payload)


@pytest.fixture
def volunteer_application(volunteer_payload) -> ApplicationCreate:
    return ApplicationCreate.model_validate(volunteer_payload)


@pytest.fixture
def mock_emails():
    """Patch both outgoing emails used by the service."""
    with (
        patch(
            "progress_api.modules.admissions.service.send_application_received",
            new_callable=AsyncMock,
            return_value=True,
        ) as received,
        patch(
            "progress_api.modules.admissions.service.send_application_approved",
            new_callable=AsyncMock,
            return_value=True,
        ) as approved,
    ):
        yield {"received": received, "approved": approved}
