"""Half-court exclusion rule tests."""

from datetime import datetime

from arenabook.models.booking import CourtType
from arenabook.services.overlap import Conflict, ConflictKind, resolve_conflict

START = datetime(2024, 6, 3, 14, 0)
END = datetime(2024, 6, 3, 15, 0)


def regular(booking_id=1):
    return Conflict(booking_id, False, CourtType.FULL_COURT, START, END)


def guest(court_type, booking_id=1):
    return Conflict(booking_id, True, court_type, START, END)


class TestFullCourtCandidate:
    def test_free_slot(self):
        assert resolve_conflict(CourtType.FULL_COURT, []) is None

    def test_regular_booking_blocks(self):
        assert resolve_conflict(CourtType.FULL_COURT, [regular()]) == ConflictKind.FULL_VS_FULL

    def test_full_guest_booking_blocks(self):
        assert resolve_conflict(CourtType.FULL_COURT, [guest(CourtType.FULL_COURT)]) == ConflictKind.FULL_VS_FULL

    def test_single_half_booking_blocks(self):
        assert resolve_conflict(CourtType.FULL_COURT, [guest(CourtType.HALF_COURT)]) == ConflictKind.FULL_VS_HALF


class TestHalfCourtCandidate:
    def test_free_slot(self):
        assert resolve_conflict(CourtType.HALF_COURT, []) is None

    def test_one_half_taken_leaves_room(self):
        assert resolve_conflict(CourtType.HALF_COURT, [guest(CourtType.HALF_COURT)]) is None

    def test_both_halves_taken(self):
        conflicts = [guest(CourtType.HALF_COURT, 1), guest(CourtType.HALF_COURT, 2)]
        assert resolve_conflict(CourtType.HALF_COURT, conflicts) == ConflictKind.HALF_CAPACITY

    def test_full_guest_booking_blocks(self):
        assert resolve_conflict(CourtType.HALF_COURT, [guest(CourtType.FULL_COURT)]) == ConflictKind.FULL_VS_HALF

    def test_regular_booking_counts_as_full_court(self):
        assert resolve_conflict(CourtType.HALF_COURT, [regular()]) == ConflictKind.FULL_VS_HALF
