"""Password hashing and the bearer tokens issued at login."""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from arenabook.core.config import settings

ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, role: str | None = None) -> str:
    """Signed token for a user.

    The role claim is for clients only. Capability checks always reload the
    user, so a role change takes effect before the token expires.
    """
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    claims = {"sub": str(user_id), "exp": expire, "type": ACCESS_TOKEN_TYPE}
    if role is not None:
        claims["role"] = role
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def read_access_token(token: str) -> int:
    """User id carried by an access token. Raises JWTError on any invalid token."""
    claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise JWTError("Not an access token")
    try:
        return int(claims["sub"])
    except (KeyError, ValueError) as exc:
        raise JWTError("Token does not name a user") from exc
