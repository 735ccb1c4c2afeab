"""
Script to create (or promote) an ADMIN account for local development.

    python -m app.scripts.create_local_admin --email admin@example.com \
        --username admin --password 'Admin123!'
"""

import argparse
import asyncio

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context, init_db
from app.models.user import User


async def ensure_admin(
    session: AsyncSession, email: str, username: str, password: str
) -> tuple[User, bool]:
    """Return (user, created). An existing account with the email or username is promoted."""
    result = await session.execute(
        select(User).where(or_(User.email == email.lower(), User.username == username))
    )
    user = result.scalars().first()
    created = user is None

    if created:
        user = User(
            email=email.lower(),
            username=username,
            first_name="Local",
            last_name="Admin",
            password_hash=hash_password(password),
            role="ADMIN",
            is_email_verified=True,
        )
    else:
        user.role = "ADMIN"
        user.is_active = True
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user, created


async def main(email: str, username: str, password: str) -> None:
    await init_db()
    async with get_session_context() as session:
        user, created = await ensure_admin(session, email, username, password)
    if created:
        print(f"Created admin user: {user.email}")
    else:
        print(f"Promoted existing user {user.email} to ADMIN.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--username", default="admin", help="Username for the user")
    parser.add_argument("--password", required=True, help="Password for the user")

    args = parser.parse_args()

    asyncio.run(main(args.email, args.username, args.password))
