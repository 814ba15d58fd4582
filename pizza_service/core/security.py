"""
Password hashing and bearer tokens.

Passwords are hashed with bcrypt; hashing and checking run in a worker
thread so they never block the event loop. Tokens are HS256 JWTs over the
user's public representation. Only the signature segment of a token is
ever stored server-side.
"""

import asyncio
import time
import uuid
from typing import Optional

import bcrypt
from jose import JWTError, jwt
from pydantic import ValidationError

from pizza_service.schemas import User

ALGORITHM = "HS256"

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def _encode_password(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


async def hash_password(password: str, rounds: int) -> str:
    """Hash a plaintext password with the given bcrypt cost."""
    hashed = await asyncio.to_thread(
        bcrypt.hashpw, _encode_password(password), bcrypt.gensalt(rounds)
    )
    return hashed.decode("utf-8")


async def verify_password(password: Optional[str], hashed: str) -> bool:
    """Check a plaintext password against a stored hash. A missing password never matches."""
    if not password:
        return False
    return await asyncio.to_thread(
        bcrypt.checkpw, _encode_password(password), hashed.encode("utf-8")
    )


def sign_token(user: User, secret: str) -> str:
    """
    Sign a token for a user.

    ``jti`` makes every token unique, so two logins in the same second
    never share a session key.
    """
    claims = user.to_json()
    claims["iat"] = int(time.time())
    claims["jti"] = uuid.uuid4().hex
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> Optional[User]:
    """Return the user a token was signed for, or None if it is invalid."""
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    try:
        return User.model_validate(claims)
    except ValidationError:
        return None


def get_token_signature(token: Optional[str]) -> str:
    """Session key of a token: its third dot-separated segment, or ""."""
    if not token:
        return ""
    parts = token.split(".")
    if len(parts) > 2:
        return parts[2]
    return ""
