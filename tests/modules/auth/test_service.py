"""
Unit tests for authentication service layer.

These tests cover:
- Account creation from an access code
- Rollback when the code cannot be redeemed
- Login and token claims
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from progress_api.core.security import decode_token, hash_password
from progress_api.modules.admissions import repository
from progress_api.modules.admissions.errors import (
    AccessCodeExpiredError,
    AccessCodeMismatchError,
    AccessCodeNotFoundError,
    UserExistsError,
)
from progress_api.modules.admissions.models import ApplicationStatus
from progress_api.modules.auth import service
from progress_api.modules.auth.schemas import RegisterRequest
from progress_api.modules.users.repository import UserRepository
from tests.modules.admissions.factories import make_access_code, make_application


@pytest_asyncio.fixture
async def approved_volunteer(db_session):
    await make_application(db_session, status=ApplicationStatus.APPROVED, volunteer=True)
    return await make_access_code(db_session, roles=["VOLUNTEER"])


def _register_request(**overrides) -> RegisterRequest:
    data = {"email": "ada@example.com", "password": "correct-horse", "accessCode": "abcd2345"}
    data.update(overrides)
    return RegisterRequest.model_validate(data)


class TestRegisterMember:
    """Tests for register_member."""

    @pytest.mark.asyncio
    async def test_creates_user_with_code_roles(self, db_session, approved_volunteer):
        result = await service.register_member(db_session, _register_request())

        assert result.user.email == "ada@example.com"
        assert result.user.first_name == "Ada"
        assert result.user.constituency == "Islington North"
        assert result.user.roles == ["VOLUNTEER"]
        assert result.user.primary_role.value == "VOLUNTEER"

    @pytest.mark.asyncio
    async def test_consumes_the_code(self, db_session, approved_volunteer):
        await service.register_member(db_session, _register_request())

        code = await repository.get_access_code(db_session, "ABCD2345")
        await db_session.refresh(code)
        assert code.used is True
        assert code.used_at is not None

    @pytest.mark.asyncio
    async def test_password_is_hashed(self, db_session, approved_volunteer):
        result = await service.register_member(db_session, _register_request())

        assert result.user.password_hash != "correct-horse"
        assert result.user.password_hash.startswith("$2")

    @pytest.mark.asyncio
    async def test_existing_account_rejected(self, db_session, approved_volunteer):
        await UserRepository.create(
            db_session,
            email="ada@example.com",
            password_hash=hash_password("whatever-else"),
            first_name="Ada",
            last_name="Lovelace",
            roles=["MEMBER"],
        )
        await db_session.commit()

        with pytest.raises(UserExistsError):
            await service.register_member(db_session, _register_request())

        code = await repository.get_access_code(db_session, "ABCD2345")
        assert code.used is False

    @pytest.mark.asyncio
    async def test_unknown_code_creates_nothing(self, db_session, approved_volunteer):
        with pytest.raises(AccessCodeNotFoundError):
            await service.register_member(db_session, _register_request(accessCode="ZZZZ9999"))

        assert await UserRepository.get_by_email(db_session, "ada@example.com") is None

    @pytest.mark.asyncio
    async def test_code_for_another_email_creates_nothing(self, db_session, approved_volunteer):
        with pytest.raises(AccessCodeMismatchError):
            await service.register_member(
                db_session, _register_request(email="mallory@example.com")
            )

        assert await UserRepository.get_by_email(db_session, "mallory@example.com") is None

    @pytest.mark.asyncio
    async def test_lost_consume_race_rolls_back_account(self, db_session, approved_volunteer):
        """If another request consumes the code first, the new account is not kept."""
        with patch.object(
            service,
            "consume_access_code",
            AsyncMock(side_effect=AccessCodeExpiredError(AccessCodeExpiredError.REASON_USED)),
        ):
            with pytest.raises(AccessCodeExpiredError):
                await service.register_member(db_session, _register_request())

        assert await UserRepository.get_by_email(db_session, "ada@example.com") is None

    @pytest.mark.asyncio
    async def test_second_registration_with_same_code_fails(self, db_session, approved_volunteer):
        await service.register_member(db_session, _register_request())

        with pytest.raises(UserExistsError):
            await service.register_member(db_session, _register_request())


class TestAuthenticate:
    """Tests for authenticate."""

    @pytest_asyncio.fixture
    async def member(self, db_session):
        user = await UserRepository.create(
            db_session,
            email="ada@example.com",
            password_hash=hash_password("correct-horse"),
            first_name="Ada",
            last_name="Lovelace",
            roles=["MEMBER", "ADMIN"],
        )
        await db_session.commit()
        return user

    @pytest.mark.asyncio
    async def test_valid_credentials_issue_tokens(self, db_session, member):
        result = await service.authenticate(db_session, " ADA@example.com ", "correct-horse")

        payload = decode_token(result.access_token)
        assert payload["sub"] == str(member.id)
        assert payload["type"] == "access"
        assert payload["roles"] == ["ADMIN", "MEMBER"]
        assert payload["role"] == "ADMIN"
        assert payload["name"] == "Ada Lovelace"
        assert decode_token(result.refresh_token)["type"] == "refresh"

    @pytest.mark.asyncio
    async def test_wrong_password(self, db_session, member):
        with pytest.raises(service.AuthError) as exc_info:
            await service.authenticate(db_session, "ada@example.com", "wrong-horse")

        assert exc_info.value.status_code == 401
        assert exc_info.value.error_code == "INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_unknown_email(self, db_session):
        with pytest.raises(service.AuthError) as exc_info:
            await service.authenticate(db_session, "nobody@example.com", "correct-horse")

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_account(self, db_session, member):
        member.is_active = False
        await db_session.commit()

        with pytest.raises(service.AuthError) as exc_info:
            await service.authenticate(db_session, "ada@example.com", "correct-horse")

        assert exc_info.value.status_code == 403
