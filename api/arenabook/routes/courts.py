"""Court routes: catalogue, availability maintenance and the per-day view."""

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.database import get_db
from arenabook.core.dependencies import get_current_user, require_manager
from arenabook.models.booking import CourtType
from arenabook.models.court import Court
from arenabook.models.member import User
from arenabook.schemas import BookedRangeOut, CourtCreate, CourtDayOut, CourtOut, CourtUpdate, WindowOut
from arenabook.services.availability import fix_court_availability, normalize, normalize_availability, retire_court
from arenabook.services.overlap import find_overlapping_bookings, find_overlapping_guest_bookings
from arenabook.services.time_window import local_datetime, local_now, weekday_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courts", tags=["courts"])


def _court_out(court: Court) -> CourtOut:
    out = CourtOut.model_validate(court)
    out.availability = normalize(court).to_dict()
    return out


def _normalized_or_422(raw: dict | None) -> dict:
    try:
        return normalize_availability(raw)
    except (ValueError, KeyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid availability: {exc}",
        ) from exc


async def _get_court(db: AsyncSession, court_id: int) -> Court:
    result = await db.execute(select(Court).where(Court.id == court_id))
    court = result.scalar_one_or_none()
    if court is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Court not found")
    return court


@router.get("", response_model=list[CourtOut])
async def list_courts(
    sport_type: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    query = select(Court).where(Court.is_active.is_(True)).order_by(Court.name)
    if sport_type:
        query = query.where(Court.sport_type == sport_type)
    result = await db.execute(query)
    return [_court_out(c) for c in result.scalars().all()]


@router.post("", response_model=CourtOut, status_code=status.HTTP_201_CREATED)
async def create_court(
    body: CourtCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    require_manager(user, body.sport_type)

    raw = None
    if body.availability is not None:
        raw = {day: [slot.model_dump() for slot in slots] for day, slots in body.availability.items()}

    court = Court(
        name=body.name,
        sport_type=body.sport_type,
        location=body.location,
        description=body.description,
        capacity=body.capacity,
        hourly_rate=body.hourly_rate,
        availability=_normalized_or_422(raw),
    )
    db.add(court)
    await db.flush()
    logger.info("Court %s created by user %s", court.id, user.id)
    return _court_out(court)


@router.post("/fix-availability")
async def fix_availability(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Persist the default weekly window on every court that lacks one."""
    require_manager(user, None)
    changed = await fix_court_availability(db)
    return {"updated": changed}


@router.get("/{court_id}", response_model=CourtOut)
async def get_court(court_id: int, db: AsyncSession = Depends(get_db)):
    return _court_out(await _get_court(db, court_id))


@router.patch("/{court_id}", response_model=CourtOut)
async def update_court(
    court_id: int,
    body: CourtUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    court = await _get_court(db, court_id)
    require_manager(user, court.sport_type)

    changes = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"availability"})
    if "sport_type" in changes:
        require_manager(user, changes["sport_type"])
    for field, value in changes.items():
        setattr(court, field, value)

    if body.availability is not None:
        raw = {day: [slot.model_dump() for slot in slots] for day, slots in body.availability.items()}
        court.availability = _normalized_or_422(raw)

    await db.flush()
    return _court_out(court)


@router.delete("/{court_id}", response_model=CourtOut)
async def delete_court(
    court_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Retire a court. Refused while it still has upcoming bookings."""
    court = await _get_court(db, court_id)
    require_manager(user, court.sport_type)

    upcoming = await retire_court(db, court, local_now())
    if upcoming:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete court with future bookings ({upcoming})",
        )
    return _court_out(court)


@router.get("/{court_id}/availability", response_model=CourtDayOut)
async def court_day(
    court_id: int,
    day: date = Query(alias="date"),
    db: AsyncSession = Depends(get_db),
):
    """Every configured window for the weekday plus the day's live bookings."""
    court = await _get_court(db, court_id)
    weekday = weekday_name(day)
    day_start = local_datetime(day.year, day.month, day.day)
    day_end = day_start + timedelta(days=1)

    regular = await find_overlapping_bookings(db, court.id, day_start, day_end)
    guests = await find_overlapping_guest_bookings(db, court.id, day_start, day_end)
    booked = [
        BookedRangeOut(start_time=b.start_time, end_time=b.end_time, court_type=CourtType.FULL_COURT) for b in regular
    ]
    booked += [
        BookedRangeOut(start_time=g.start_time, end_time=g.end_time, court_type=g.court_type, is_guest=True)
        for g in guests
    ]
    booked.sort(key=lambda r: r.start_time)

    return CourtDayOut(
        court_id=court.id,
        date=day,
        day=weekday,
        windows=[WindowOut(**entry.to_dict()) for entry in normalize(court).entries(weekday)],
        bookings=booked,
    )
