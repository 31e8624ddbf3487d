"""
Seed Admin User

Creates the initial admin account that reviews membership applications.
Credentials are read from the environment so none live in the repository.

Usage:
    ADMIN_EMAIL=admin@example.org ADMIN_PASSWORD=... \
    ADMIN_FIRST_NAME=Ada ADMIN_LAST_NAME=Lovelace \
    python scripts/seed_admin.py
"""

import asyncio
import os
import sys

from progress_api.core.database import async_session_maker, engine
from progress_api.core.security import hash_password
from progress_api.modules.admissions.helpers import normalize_email
from progress_api.modules.users.models import UserRole
from progress_api.modules.users.repository import UserRepository


async def _seed_admin() -> int:
    """Create the admin user if it doesn't exist."""
    email = os.environ.get("ADMIN_EMAIL", "")
    password = os.environ.get("ADMIN_PASSWORD", "")
    first_name = os.environ.get("ADMIN_FIRST_NAME", "Admin")
    last_name = os.environ.get("ADMIN_LAST_NAME", "User")

    if not email or not password:
        print("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        return 1

    if len(password) < 12:
        print("ADMIN_PASSWORD must be at least 12 characters")
        return 1

    email = normalize_email(email)

    async with async_session_maker() as db:
        existing_user = await UserRepository.get_by_email(db, email)

        if existing_user:
            print(f"Admin already exists: {email}")
            print(f"  ID: {existing_user.id}")
            print(f"  Roles: {existing_user.roles}")
            return 0

        admin_user = await UserRepository.create(
            db,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            roles=[UserRole.ADMIN.value],
        )
        await db.commit()

        print("Admin created successfully!")
        print(f"  Email: {email}")
        print(f"  Name: {admin_user.full_name}")
        print(f"  ID: {admin_user.id}")
        print(f"  Roles: {admin_user.roles}")

    return 0


async def seed_admin() -> int:
    try:
        return await _seed_admin()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(seed_admin()))
