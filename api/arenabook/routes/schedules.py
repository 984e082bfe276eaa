"""Recurring schedule routes: weekly team slots and their exception dates."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arenabook.core.database import get_db
from arenabook.core.dependencies import get_current_user, require_manager, violation_error
from arenabook.models.court import Court
from arenabook.models.member import User
from arenabook.models.schedule import RecurringSchedule
from arenabook.schemas import (
    BookingOut,
    ExceptionCreate,
    ExceptionOut,
    ExceptionResult,
    GenerateRequest,
    GenerateResult,
    ScheduleCreate,
    ScheduleOut,
    ScheduleUpdate,
)
from arenabook.services import recurrence
from arenabook.services.booking_rules import BookingViolation, Rule, find_active_court, find_team
from arenabook.services.permissions import can_manage, is_staff

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedules", tags=["schedules"])


async def _load(db: AsyncSession, schedule_id: int) -> tuple[RecurringSchedule, Court]:
    schedule = await recurrence.load_schedule(db, schedule_id)
    if schedule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring schedule not found")
    result = await db.execute(select(Court).where(Court.id == schedule.court_id))
    return schedule, result.scalar_one()


async def _load_managed(db: AsyncSession, schedule_id: int, user: User) -> RecurringSchedule:
    schedule, court = await _load(db, schedule_id)
    require_manager(user, court.sport_type)
    return schedule


async def _court_or_404(db: AsyncSession, court_id: int) -> Court:
    court = await find_active_court(db, court_id)
    if court is None:
        raise violation_error(BookingViolation(Rule.COURT_NOT_FOUND, "Court not found"))
    return court


@router.post("", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    body: ScheduleCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a weekly slot and generate its first weeks of bookings."""
    court = await _court_or_404(db, body.court_id)
    if not (can_manage(user, court.sport_type) or is_staff(user)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to create schedules")
    if await find_team(db, body.team_id) is None:
        raise violation_error(BookingViolation(Rule.TEAM_NOT_FOUND, "Team not found"))
    if body.end_date is not None and body.end_date < body.start_date:
        raise violation_error(BookingViolation(Rule.INVALID_TIME_RANGE, "End date must not precede start date."))

    violation = recurrence.check_schedule_slot(court, body.day_of_week, body.start_time, body.end_time, body.purpose)
    if violation:
        raise violation_error(violation)

    schedule = RecurringSchedule(
        team_id=body.team_id,
        court_id=body.court_id,
        created_by_id=user.id,
        purpose=body.purpose,
        day_of_week=body.day_of_week,
        start_time=body.start_time,
        end_time=body.end_time,
        duration=recurrence.calculate_duration(body.start_time, body.end_time),
        start_date=body.start_date,
        end_date=body.end_date,
        notes=body.notes,
        is_active=True,
        exceptions=[],
        bookings=[],
    )
    db.add(schedule)
    await db.flush()

    generated = await recurrence.generate_recurring_bookings(db, schedule)
    logger.info("Schedule %s created by user %s, %d bookings generated", schedule.id, user.id, len(generated))
    return schedule


@router.get("", response_model=list[ScheduleOut])
async def list_schedules(
    team_id: int | None = None,
    court_id: int | None = None,
    active: bool | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(RecurringSchedule).order_by(RecurringSchedule.day_of_week, RecurringSchedule.start_time)
    if team_id is not None:
        query = query.where(RecurringSchedule.team_id == team_id)
    if court_id is not None:
        query = query.where(RecurringSchedule.court_id == court_id)
    if active is not None:
        query = query.where(RecurringSchedule.is_active.is_(active))
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{schedule_id}", response_model=ScheduleOut)
async def get_schedule(
    schedule_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    schedule, _ = await _load(db, schedule_id)
    return schedule


@router.patch("/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(
    schedule_id: int,
    body: ScheduleUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update a schedule. Already generated bookings are left as they are."""
    schedule = await _load_managed(db, schedule_id, user)
    changes = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field in ("end_date", "notes")
    }

    slot_fields = {"court_id", "day_of_week", "start_time", "end_time", "purpose"}
    if slot_fields & changes.keys():
        court = await _court_or_404(db, changes.get("court_id") or schedule.court_id)
        require_manager(user, court.sport_type)
        violation = recurrence.check_schedule_slot(
            court,
            changes.get("day_of_week") or schedule.day_of_week,
            changes.get("start_time") or schedule.start_time,
            changes.get("end_time") or schedule.end_time,
            changes.get("purpose") or schedule.purpose,
        )
        if violation:
            raise violation_error(violation)

    for field, value in changes.items():
        setattr(schedule, field, value)
    schedule.duration = recurrence.calculate_duration(schedule.start_time, schedule.end_time)

    if schedule.end_date is not None and schedule.end_date < schedule.start_date:
        raise violation_error(BookingViolation(Rule.INVALID_TIME_RANGE, "End date must not precede start date."))

    await db.flush()
    return schedule


@router.post("/{schedule_id}/deactivate", response_model=ScheduleOut)
async def deactivate_schedule(
    schedule_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    schedule = await _load_managed(db, schedule_id, user)
    schedule.is_active = False
    await db.flush()
    logger.info("Schedule %s deactivated by user %s", schedule.id, user.id)
    return schedule


@router.delete("/{schedule_id}")
async def delete_schedule(
    schedule_id: int,
    cancel_bookings: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    schedule = await _load_managed(db, schedule_id, user)
    cancelled = await recurrence.delete_schedule(db, schedule, cancel_bookings=cancel_bookings)
    return {"deleted": schedule_id, "cancelled_bookings": cancelled}


@router.post("/{schedule_id}/generate", response_model=GenerateResult)
async def generate_bookings(
    schedule_id: int,
    body: GenerateRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    schedule = await _load_managed(db, schedule_id, user)
    if not schedule.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Schedule is not active")

    weeks = body.weeks if body else None
    generated = await recurrence.generate_recurring_bookings(db, schedule, week_count=weeks)
    return GenerateResult(
        schedule_id=schedule.id,
        created=len(generated),
        bookings=[BookingOut.model_validate(b) for b in generated],
    )


@router.post("/{schedule_id}/exceptions", response_model=ExceptionResult, status_code=status.HTTP_201_CREATED)
async def add_exception(
    schedule_id: int,
    body: ExceptionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Skip one date. A booking already generated for it is cancelled."""
    schedule = await _load_managed(db, schedule_id, user)
    try:
        exception, cancelled = await recurrence.add_exception(db, schedule, body.date, body.reason)
    except recurrence.DuplicateExceptionDate as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return ExceptionResult(
        exception=ExceptionOut.model_validate(exception),
        cancelled_booking_ids=[b.id for b in cancelled],
    )


@router.delete("/{schedule_id}/exceptions/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_exception(
    schedule_id: int,
    exception_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    schedule = await _load_managed(db, schedule_id, user)
    if not await recurrence.remove_exception(db, schedule, exception_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exception not found")
