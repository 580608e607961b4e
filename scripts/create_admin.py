#!/usr/bin/env python3
"""
Promote an existing LMS user to ADMIN.

Users are created on their first authenticated request, so the account must
have signed in once. Reads from .env:
    ADMIN_EMAIL        — email of the account to promote
    ADMIN_EXTERNAL_ID  — identity-provider subject (alternative to ADMIN_EMAIL)
    LMS_DATABASE_URL   — target database (required)

Usage:
    cd techgetafrica-lms
    python -m scripts.create_admin
"""
from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

# Add backend root to path so imports resolve
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "services" / "lms"))
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "shared"))

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.models.user import User
from shared.constants import Role


async def main() -> None:
    email = os.getenv("ADMIN_EMAIL")
    external_id = os.getenv("ADMIN_EXTERNAL_ID")
    if not email and not external_id:
        print("Error: ADMIN_EMAIL or ADMIN_EXTERNAL_ID must be set in .env")
        sys.exit(1)
    db_url = os.environ["LMS_DATABASE_URL"]

    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as session:
        if external_id:
            stmt = select(User).where(User.external_id == external_id)
        else:
            stmt = select(User).where(func.lower(User.email) == email.lower())
        user = (await session.execute(stmt)).scalar_one_or_none()

        if user is None:
            print(f"No user found for {external_id or email}. Sign in once, then re-run.")
            await engine.dispose()
            sys.exit(1)

        if user.role == Role.ADMIN:
            print(f"User {user.email} (id={user.user_id}) is already an admin. Nothing to do.")
        else:
            previous = user.role.value
            user.role = Role.ADMIN
            await session.commit()
            print(f"User {user.email} (id={user.user_id}) promoted: {previous} -> ADMIN")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
