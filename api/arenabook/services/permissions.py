"""Capability checks for booking management.

The scheduling engine is authorization-agnostic; routes call can_manage()
before handing it a request.
"""

from arenabook.models.member import SupervisorType, User, UserRole

# Roles whose own bookings are confirmed on creation
STAFF_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPERVISOR, UserRole.COACH})


def can_manage(actor: User, sport_type: str | None) -> bool:
    """Whether actor may manage bookings and schedules for a sport.

    Admins manage everything. General and booking supervisors manage every
    sport, sports supervisors only their assigned sports, cafeteria
    supervisors nothing.
    """
    if actor.role == UserRole.ADMIN:
        return True
    if actor.role != UserRole.SUPERVISOR:
        return False
    if actor.supervisor_type in (SupervisorType.GENERAL, SupervisorType.BOOKING):
        return True
    if actor.supervisor_type == SupervisorType.SPORTS:
        return sport_type is not None and sport_type in (actor.supervisor_sport_types or [])
    return False


def is_staff(actor: User) -> bool:
    return actor.role in STAFF_ROLES


def managed_sport_types(actor: User) -> list[str] | None:
    """Sports actor may manage, or None when they manage every sport.

    The list form of can_manage(), for filtering queries by court sport.
    """
    if can_manage(actor, None):
        return None
    if actor.role == UserRole.SUPERVISOR and actor.supervisor_type == SupervisorType.SPORTS:
        return list(actor.supervisor_sport_types or [])
    return []


def manages_any_sport(actor: User) -> bool:
    return managed_sport_types(actor) != []
