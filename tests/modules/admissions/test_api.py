"""
HTTP tests for the public, admin and auth endpoints.

Requests go through the real routers with the database dependency pointed
at the in-memory test database.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

from progress_api.core.database import get_db
from progress_api.core.security import create_access_token, create_refresh_token
from progress_api.main import app
from progress_api.modules.admissions.models import ApplicationStatus

from .factories import make_access_code, make_application

API = "/api/v1"


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()


def _auth_headers(roles: list[str]) -> dict[str, str]:
    token = create_access_token(
        subject=str(uuid4()),
        additional_claims={"email": "admin@example.com", "roles": roles, "name": "Admin"},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _auth_headers(["ADMIN"])


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_ready_reports_in_memory_rate_limiting(self, client):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "redis": "disabled"}


class TestSubmitEndpoint:
    """Tests for POST /applications."""

    @pytest.mark.asyncio
    async def test_submit_returns_201(self, client, volunteer_payload):
        response = await client.post(f"{API}/applications", json=volunteer_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "UNREVIEWED"
        assert "id" in body

    @pytest.mark.asyncio
    async def test_missing_fields_return_400_with_labels(self, client, member_payload):
        member_payload["volunteer"] = True

        response = await client.post(f"{API}/applications", json=member_payload)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "VALIDATION_ERROR"
        assert "Brief CV" in detail["missing_fields"]

    @pytest.mark.asyncio
    async def test_malformed_email_returns_400(self, client, member_payload):
        member_payload["email"] = "not an email"

        response = await client.post(f"{API}/applications", json=member_payload)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "VALIDATION_ERROR"
        assert detail["invalid_fields"] == ["Email"]

    @pytest.mark.asyncio
    async def test_duplicate_returns_409(self, client, member_payload):
        await client.post(f"{API}/applications", json=member_payload)

        response = await client.post(f"{API}/applications", json=member_payload)

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "APPLICATION_PENDING"

    @pytest.mark.asyncio
    async def test_submissions_are_rate_limited(self, client, member_payload):
        for i in range(5):
            member_payload["email"] = f"person{i}@example.com"
            response = await client.post(f"{API}/applications", json=member_payload)
            assert response.status_code == 201

        member_payload["email"] = "one-too-many@example.com"
        response = await client.post(f"{API}/applications", json=member_payload)

        assert response.status_code == 429
        assert response.json()["detail"]["error"] == "RATE_LIMIT_EXCEEDED"


class TestValidateEndpoint:
    """Tests for POST /applications/access-codes/validate."""

    @pytest.mark.asyncio
    async def test_valid_code(self, client, db_session):
        await make_application(db_session, status=ApplicationStatus.APPROVED)
        await make_access_code(db_session)

        response = await client.post(
            f"{API}/applications/access-codes/validate",
            json={"code": "abcd2345", "email": "ada@example.com"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "constituency": "Islington North",
            "role": "MEMBER",
            "roles": ["MEMBER"],
        }

    @pytest.mark.asyncio
    async def test_unknown_code_returns_404(self, client):
        response = await client.post(
            f"{API}/applications/access-codes/validate",
            json={"code": "NOPE2345", "email": "ada@example.com"},
        )

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "ACCESS_CODE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_used_code_returns_410(self, client, db_session):
        await make_application(db_session, status=ApplicationStatus.APPROVED)
        await make_access_code(db_session, used=True, used_at=datetime.now(UTC))

        response = await client.post(
            f"{API}/applications/access-codes/validate",
            json={"code": "ABCD2345", "email": "ada@example.com"},
        )

        assert response.status_code == 410
        assert response.json()["detail"]["error"] == "ACCESS_CODE_USED"


class TestAdminEndpoints:
    """Tests for /admin/applications."""

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.get(f"{API}/admin/applications")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_requires_admin_role(self, client):
        response = await client.get(
            f"{API}/admin/applications", headers=_auth_headers(["MEMBER"])
        )

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "ADMIN_ACCESS_REQUIRED"

    @pytest.mark.asyncio
    async def test_rejects_refresh_token(self, client):
        token = create_refresh_token(subject=str(uuid4()))
        response = await client.get(
            f"{API}/admin/applications", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_and_stats(self, client, db_session, admin_headers):
        await make_application(db_session)
        await make_application(
            db_session, email="grace@example.com", status=ApplicationStatus.CONTACTED
        )

        listing = await client.get(
            f"{API}/admin/applications", params={"status": "CONTACTED"}, headers=admin_headers
        )
        stats = await client.get(f"{API}/admin/applications/stats", headers=admin_headers)

        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert listing.json()["items"][0]["email"] == "grace@example.com"
        assert stats.json()["unreviewed"] == 1
        assert stats.json()["contacted"] == 1

    @pytest.mark.asyncio
    async def test_approve_returns_access_code(self, client, db_session, admin_headers):
        application = await make_application(db_session)

        response = await client.post(
            f"{API}/admin/applications/{application.id}/approve",
            json={"notes": "Welcome aboard"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "APPROVED"
        assert body["reviewNotes"] == "Welcome aboard"
        assert body["resolvedAt"] is not None
        assert body["accessCode"]["roles"] == ["MEMBER"]
        assert len(body["accessCode"]["code"]) == 8

    @pytest.mark.asyncio
    async def test_invalid_transition_returns_409(self, client, db_session, admin_headers):
        application = await make_application(db_session, status=ApplicationStatus.APPROVED)

        response = await client.post(
            f"{API}/admin/applications/{application.id}/transition",
            json={"status": "REJECTED"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "INVALID_TRANSITION"
        assert detail["current_status"] == "APPROVED"
        assert detail["requested_status"] == "REJECTED"

    @pytest.mark.asyncio
    async def test_unknown_application_returns_404(self, client, admin_headers):
        response = await client.get(f"{API}/admin/applications/{uuid4()}", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "APPLICATION_NOT_FOUND"


class TestRegisterAndLogin:
    """Tests for /auth/register and /auth/login."""

    @pytest.mark.asyncio
    async def test_register_then_login(self, client, db_session):
        await make_application(db_session, status=ApplicationStatus.APPROVED)
        await make_access_code(db_session)

        registered = await client.post(
            f"{API}/auth/register",
            json={
                "email": "ada@example.com",
                "password": "correct-horse",
                "accessCode": "ABCD2345",
            },
        )
        logged_in = await client.post(
            f"{API}/auth/login",
            json={"email": "ada@example.com", "password": "correct-horse"},
        )

        assert registered.status_code == 201
        assert registered.json()["user"]["roles"] == ["MEMBER"]
        assert logged_in.status_code == 200
        assert logged_in.json()["tokenType"] == "bearer"

    @pytest.mark.asyncio
    async def test_register_with_used_code_returns_410(self, client, db_session):
        await make_application(db_session, status=ApplicationStatus.APPROVED)
        await make_access_code(db_session, used=True, used_at=datetime.now(UTC))

        response = await client.post(
            f"{API}/auth/register",
            json={
                "email": "ada@example.com",
                "password": "correct-horse",
                "accessCode": "ABCD2345",
            },
        )

        assert response.status_code == 410

    @pytest.mark.asyncio
    async def test_wrong_password_returns_401(self, client):
        response = await client.post(
            f"{API}/auth/login",
            json={"email": "nobody@example.com", "password": "whatever"},
        )

        assert response.status_code == 401
