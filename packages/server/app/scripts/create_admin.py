"""
Create an admin user, or promote an existing user to admin.

    python -m app.scripts.create_admin --email admin@example.com --password secret123
"""

import argparse
import asyncio
from typing import Optional

from sqlmodel import select

from app.core.auth import hash_password
from app.core.config import Settings, get_settings
from app.core.database import Database
from app.core.errors import ValidationError
from app.models.user import User
from app.services.users import MAX_PASSWORD_BYTES, MIN_PASSWORD_LENGTH, normalize_email
from taskhub_shared.schemas.common import Role


async def create_admin(
    db: Database,
    settings: Settings,
    email: str,
    password: str,
    username: Optional[str] = None,
) -> User:
    email = normalize_email(email)
    async with db.session() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            if len(password.encode()) > MAX_PASSWORD_BYTES:
                raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
            user = User(
                username=username or email.split("@")[0],
                email=email,
                password_hash=hash_password(password, settings.bcrypt_rounds),
                role=Role.ADMIN.value,
            )
            session.add(user)
            print(f"Created admin user: {email}")
        else:
            user.role = Role.ADMIN.value
            session.add(user)
            print(f"Promoted {email} to admin.")

        await session.flush()
    return user


async def main(email: str, password: str, username: Optional[str] = None) -> None:
    settings = get_settings()
    db = Database(settings)
    try:
        await db.init_db()
        await create_admin(db, settings, email, password, username)
    finally:
        await db.dispose()
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote an admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for a new user")
    parser.add_argument("--username", help="Username for a new user (default: email local part)")

    args = parser.parse_args()
    if len(args.password) < MIN_PASSWORD_LENGTH:
        parser.error(f"password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(args.password.encode()) > MAX_PASSWORD_BYTES:
        parser.error(f"password must be at most {MAX_PASSWORD_BYTES} bytes")

    asyncio.run(main(args.email, args.password, args.username))
