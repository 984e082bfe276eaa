"""FastAPI dependencies for injection into route handlers."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.auth import read_access_token
from arenabook.core.database import get_db
from arenabook.models.member import User
from arenabook.services.booking_rules import BookingViolation
from arenabook.services.permissions import can_manage, manages_any_sport

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the current user from the JWT bearer token."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        user_id = read_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None

    result = await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user


# ---------------------------------------------------------------------------
# Capability checks
# ---------------------------------------------------------------------------

def require_manager(user: User, sport_type: str | None) -> None:
    """Raise 403 unless the user may manage bookings for this sport."""
    if not can_manage(user, sport_type):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to manage bookings for this sport",
        )


async def require_any_manager(user: User = Depends(get_current_user)) -> User:
    """Require a user who manages at least some sport (used for court admin)."""
    if not manages_any_sport(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Manager access required")
    return user


# ---------------------------------------------------------------------------
# Booking rejections
# ---------------------------------------------------------------------------

def violation_error(violation: BookingViolation) -> HTTPException:
    """Map a booking rule violation to the HTTP error the client sees."""
    if violation.is_not_found:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=violation.message)
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=[violation.to_detail()])
