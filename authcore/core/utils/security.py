import asyncio
from functools import lru_cache

from passlib.context import CryptContext

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__memory_cost=65536,  # 64 MB
    argon2__time_cost=3,
    argon2__parallelism=2,
)


def hash_password(password: str) -> str:
    """
    Hashes the provided password using Argon2 with the configured parameters.

    :param password: The plaintext password as a string.
    :return: The hashed password as a string.
    """
    return pwd_context.hash(password)


@lru_cache
def dummy_password_hash() -> str:
    return hash_password("dummy-password")


async def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return await asyncio.to_thread(
            pwd_context.verify, plain_password, hashed_password
        )
    except ValueError:
        return False


async def verify_credentials(plain_password: str, hashed_password: str | None) -> bool:
    """
    Check a password against a stored hash.

    Without a stored hash (unknown user) a dummy hash is verified instead, so
    both outcomes cost one Argon2 verification.
    """
    if hashed_password is None:
        await verify_password(plain_password, dummy_password_hash())
        return False
    return await verify_password(plain_password, hashed_password)
