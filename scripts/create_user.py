"""
Create a user account from the command line.

    python -m scripts.create_user alice --role admin

The password is read from the terminal. Missing tables are created first.
"""

import argparse
import asyncio
from getpass import getpass

from authcore.core.database.session import async_session, init_models
from authcore.core.utils.security import hash_password
from authcore.user.enums import UserRole
from authcore.user.repositories import UserRepository


async def create_user(
    username: str, password: str, role: UserRole, nickname: str = ""
) -> None:
    await init_models()
    repository = UserRepository()
    async with async_session() as session:
        if await repository.get_single(session, username=username) is not None:
            raise SystemExit(f"User '{username}' already exists.")
        user = await repository.create(
            session,
            {
                "username": username,
                "nickname": nickname or username,
                "password_hash": hash_password(password),
                "role": role,
                "is_active": True,
            },
            commit=True,
        )
    print(f"Created user {user.username} (id={user.id}, role={user.role}).")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("username")
    parser.add_argument("--nickname", default="")
    parser.add_argument(
        "--role", choices=[role.value for role in UserRole], default=UserRole.USER.value
    )
    args = parser.parse_args()

    password = getpass("Password: ")
    if not password:
        raise SystemExit("Password must not be empty.")

    asyncio.run(create_user(args.username, password, UserRole(args.role), args.nickname))


if __name__ == "__main__":
    main()
