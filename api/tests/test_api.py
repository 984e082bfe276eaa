"""API tests: auth, courts, bookings, guest bookings and recurring schedules."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from jose import jwt

from arenabook.core.exceptions import StorageError
from arenabook.models import Booking, BookingStatus, GuestBooking, SportType
from arenabook.services.time_window import local_now, local_today
from conftest import auth_headers, create_court, create_team, create_user, next_weekday

API = "/api/v1"


def booking_payload(court_id, day, start="14:00", end="15:00", **extra) -> dict:
    return {"court_id": court_id, "booking_date": day.isoformat(), "start_time": start, "end_time": end, **extra}


def guest_payload(court_id, day, start="14:00", end="15:00", **extra) -> dict:
    return {
        **booking_payload(court_id, day, start, end),
        "guest_name": "Alex Guest",
        "guest_email": "alex@example.com",
        "guest_phone": "0700 000000",
        **extra,
    }


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["app"] == "ArenaBook"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_login_and_me(client, player):
    resp = await client.post(f"{API}/auth/login", json={"email": player.email, "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    assert jwt.get_unverified_claims(token)["role"] == "player"

    resp = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["email"] == player.email
    assert resp.json()["role"] == "player"


@pytest.mark.asyncio
async def test_login_wrong_password(client, player):
    resp = await client.post(f"{API}/auth/login", json={"email": player.email, "password": "nope"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_unauthenticated(client):
    resp = await client.get(f"{API}/auth/me")
    assert resp.status_code == 401

    resp = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Courts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_court_read_normalizes_availability(client, court):
    resp = await client.get(f"{API}/courts/{court.id}")
    assert resp.status_code == 200
    availability = resp.json()["availability"]
    assert availability["monday"] == [
        {"start": "09:00", "end": "21:00", "type": "academy"},
        {"start": "09:00", "end": "21:00", "type": "rental"},
    ]


@pytest.mark.asyncio
async def test_create_court_requires_manager(client, admin, player, football_supervisor):
    body = {
        "name": "Pitch 2",
        "sport_type": "Football",
        "hourly_rate": "60.00",
        "availability": {"sunday": [], "saturday": [{"start": "10:00", "end": "16:00", "type": "rental"}]},
    }
    resp = await client.post(f"{API}/courts", json=body, headers=auth_headers(player))
    assert resp.status_code == 403

    resp = await client.post(f"{API}/courts", json=body, headers=auth_headers(football_supervisor))
    assert resp.status_code == 201
    data = resp.json()
    assert data["availability"]["sunday"] == []
    assert data["availability"]["saturday"] == [{"start": "10:00", "end": "16:00", "type": "rental"}]

    resp = await client.post(
        f"{API}/courts", json={**body, "sport_type": "Basketball"}, headers=auth_headers(football_supervisor)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_court_rejects_bad_availability(client, admin, court):
    body = {"availability": {"monday": [{"start": "09:00", "end": "21:00", "type": "party"}]}}
    resp = await client.patch(f"{API}/courts/{court.id}", json=body, headers=auth_headers(admin))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_fix_availability(client, db, admin):
    await create_court(db, name="Legacy", availability=None)
    resp = await client.post(f"{API}/courts/fix-availability", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json() == {"updated": 1}


@pytest.mark.asyncio
async def test_court_day_view(client, court, coach):
    day = next_weekday("wednesday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(coach))
    assert resp.status_code == 201

    resp = await client.get(f"{API}/courts/{court.id}/availability", params={"date": day.isoformat()})
    assert resp.status_code == 200
    data = resp.json()
    assert data["day"] == "wednesday"
    assert len(data["windows"]) == 2
    assert len(data["bookings"]) == 1
    assert data["bookings"][0]["court_type"] == "full_court"


@pytest.mark.asyncio
async def test_delete_court_refused_while_bookings_are_upcoming(client, court, admin, player, football_supervisor):
    day = next_weekday("monday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(player))
    booking_id = resp.json()["id"]

    resp = await client.delete(f"{API}/courts/{court.id}", headers=auth_headers(football_supervisor))
    assert resp.status_code == 403

    resp = await client.delete(f"{API}/courts/{court.id}", headers=auth_headers(admin))
    assert resp.status_code == 400

    await client.post(f"{API}/bookings/{booking_id}/cancel", headers=auth_headers(player))
    resp = await client.delete(f"{API}/courts/{court.id}", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    resp = await client.get(f"{API}/courts")
    assert resp.json() == []


@pytest.mark.asyncio
async def test_upcoming_guest_booking_blocks_court_delete(client, court, admin):
    resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, next_weekday("friday")))
    assert resp.status_code == 201

    resp = await client.delete(f"{API}/courts/{court.id}", headers=auth_headers(admin))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_past_bookings_do_not_block_court_delete(client, db, court, admin, player):
    start = local_now() - timedelta(days=2)
    db.add(
        Booking(
            court_id=court.id,
            user_id=player.id,
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=BookingStatus.CONFIRMED,
        )
    )
    await db.commit()

    resp = await client.delete(f"{API}/courts/{court.id}", headers=auth_headers(admin))
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Regular bookings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_player_booking_is_pending(client, court, player, mock_send_email):
    day = next_weekday("monday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(player))
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "pending"
    assert Decimal(data["total_price"]) == Decimal("20")
    assert data["start_time"] == f"{day.isoformat()}T14:00:00"
    mock_send_email.assert_awaited_once()
    assert mock_send_email.await_args.args[0] == player.email


@pytest.mark.asyncio
async def test_staff_booking_is_confirmed(client, court, coach):
    day = next_weekday("monday")
    payload = booking_payload(court.id, day, purpose="training")
    resp = await client.post(f"{API}/bookings", json=payload, headers=auth_headers(coach))
    assert resp.status_code == 201
    assert resp.json()["status"] == "confirmed"
    assert Decimal(resp.json()["total_price"]) == 0


@pytest.mark.asyncio
async def test_double_booking_rejected(client, court, player, coach):
    day = next_weekday("monday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(coach))
    assert resp.status_code == 201

    payload = booking_payload(court.id, day, "14:30", "15:30")
    resp = await client.post(f"{API}/bookings", json=payload, headers=auth_headers(player))
    assert resp.status_code == 422
    detail = resp.json()["detail"][0]
    assert detail["rule"] == "slot_already_booked"
    assert detail["conflict"] == "full_conflict"

    payload = booking_payload(court.id, day, "15:00", "16:00")
    resp = await client.post(f"{API}/bookings", json=payload, headers=auth_headers(player))
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_booking_outside_hours_lists_windows(client, court, player):
    payload = booking_payload(court.id, next_weekday("monday"), "20:00", "22:00")
    resp = await client.post(f"{API}/bookings", json=payload, headers=auth_headers(player))
    assert resp.status_code == 422
    detail = resp.json()["detail"][0]
    assert detail["rule"] == "outside_available_hours"
    assert detail["available_windows"] == [{"start": "09:00", "end": "21:00"}]


@pytest.mark.asyncio
async def test_booking_unknown_court(client, player):
    resp = await client.post(
        f"{API}/bookings", json=booking_payload(999, next_weekday("monday")), headers=auth_headers(player)
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_booking_requires_auth(client, court):
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, next_weekday("monday")))
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_list_and_cancel_own_booking(client, court, player):
    day = next_weekday("tuesday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(player))
    booking_id = resp.json()["id"]

    resp = await client.get(f"{API}/bookings", headers=auth_headers(player))
    assert [b["id"] for b in resp.json()] == [booking_id]

    resp = await client.post(f"{API}/bookings/{booking_id}/cancel", headers=auth_headers(player))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"

    resp = await client.post(f"{API}/bookings/{booking_id}/cancel", headers=auth_headers(player))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_other_users_booking_is_private(client, db, court, player):
    day = next_weekday("tuesday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(player))
    booking_id = resp.json()["id"]

    other = await create_user(db, "other@example.com")
    resp = await client.get(f"{API}/bookings/{booking_id}", headers=auth_headers(other))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_manager_status_update(client, court, player, admin, football_supervisor):
    day = next_weekday("thursday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(player))
    booking_id = resp.json()["id"]

    url = f"{API}/bookings/{booking_id}/status"
    resp = await client.patch(url, json={"status": "confirmed"}, headers=auth_headers(football_supervisor))
    assert resp.status_code == 403

    resp = await client.patch(url, json={"status": "confirmed"}, headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_storage_failure_is_503(client, court, player):
    with patch(
        "arenabook.services.bookings.validate_booking",
        new_callable=AsyncMock,
        side_effect=StorageError("database unavailable"),
    ):
        resp = await client.post(
            f"{API}/bookings", json=booking_payload(court.id, next_weekday("monday")), headers=auth_headers(player)
        )
    assert resp.status_code == 503


@pytest.mark.asyncio
@pytest.mark.parametrize("start, end", [("14:00", "15:00"), ("14:30", "15:30")])
async def test_cancelled_booking_cannot_be_reopened(client, court, player, coach, admin, start, end):
    day = next_weekday("monday")
    resp = await client.post(f"{API}/bookings", json=booking_payload(court.id, day), headers=auth_headers(player))
    first_id = resp.json()["id"]
    await client.post(f"{API}/bookings/{first_id}/cancel", headers=auth_headers(player))

    resp = await client.post(
        f"{API}/bookings", json=booking_payload(court.id, day, start, end), headers=auth_headers(coach)
    )
    assert resp.status_code == 201

    url = f"{API}/bookings/{first_id}/status"
    for new_status in ("confirmed", "pending"):
        resp = await client.patch(url, json={"status": new_status}, headers=auth_headers(admin))
        assert resp.status_code == 400

    resp = await client.get(f"{API}/bookings/{first_id}", headers=auth_headers(admin))
    assert resp.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_manager_cannot_cancel_started_booking(client, db, court, player, admin):
    start = local_now() - timedelta(days=2)
    booking = Booking(
        court_id=court.id,
        user_id=player.id,
        start_time=start,
        end_time=start + timedelta(hours=1),
        status=BookingStatus.CONFIRMED,
    )
    db.add(booking)
    await db.commit()

    resp = await client.patch(
        f"{API}/bookings/{booking.id}/status", json={"status": "cancelled"}, headers=auth_headers(admin)
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Cannot cancel past bookings"


@pytest.mark.asyncio
async def test_manager_listing_filters_by_sport_before_paging(client, db, court, player, football_supervisor):
    pitch = await create_court(db, name="Pitch", sport_type=SportType.FOOTBALL)
    base = datetime(2030, 1, 7, 10, 0)
    db.add(
        Booking(
            court_id=pitch.id,
            user_id=player.id,
            start_time=base,
            end_time=base + timedelta(hours=1),
            status=BookingStatus.CONFIRMED,
        )
    )
    db.add_all(
        Booking(
            court_id=court.id,
            user_id=player.id,
            start_time=base + timedelta(days=1, hours=i),
            end_time=base + timedelta(days=1, hours=i + 1),
            status=BookingStatus.CONFIRMED,
        )
        for i in range(200)
    )
    await db.commit()

    resp = await client.get(f"{API}/bookings", params={"mine": "false"}, headers=auth_headers(football_supervisor))
    assert resp.status_code == 200
    assert [b["court_id"] for b in resp.json()] == [pitch.id]

    resp = await client.get(f"{API}/bookings", params={"mine": "false"}, headers=auth_headers(player))
    assert resp.json() == []


# ---------------------------------------------------------------------------
# Guest bookings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_guest_slots_and_courts(client, db, court):
    await create_court(db, name="Closed Sundays", sport_type=SportType.FOOTBALL, availability={"sunday": []})
    sunday = next_weekday("sunday")

    resp = await client.get(f"{API}/guest-bookings/courts", params={"date": sunday.isoformat()})
    assert [c["name"] for c in resp.json()] == ["Main Hall"]

    resp = await client.get(f"{API}/guest-bookings/slots", params={"court_id": court.id, "date": sunday.isoformat()})
    assert resp.status_code == 200
    data = resp.json()
    assert data["is_basketball_court"] is True
    assert data["available_slots"] == [
        {"start_time": f"{sunday.isoformat()}T09:00:00", "end_time": f"{sunday.isoformat()}T21:00:00"}
    ]
    assert data["booked_slots"] == []


@pytest.mark.asyncio
async def test_guest_booking_flow(client, court, mock_send_email):
    day = next_weekday("friday")
    resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, day, court_type="half_court"))
    assert resp.status_code == 201
    data = resp.json()
    reference = data["booking_reference"]
    assert reference.startswith("GB-")
    assert data["status"] == "pending"
    assert data["purpose"] == "rental"
    assert Decimal(data["total_price"]) == Decimal("10")
    assert mock_send_email.await_args.args[0] == "alex@example.com"

    resp = await client.get(f"{API}/guest-bookings/reference/{reference.lower()}")
    assert resp.status_code == 200

    payment_url = f"{API}/guest-bookings/reference/{reference}/payment"
    resp = await client.post(payment_url, json={"payment_method": "cash", "pay_later": True})
    assert resp.json()["status"] == "pending"
    assert resp.json()["payment_status"] == "unpaid"

    resp = await client.post(payment_url, json={"payment_method": "card", "payment_id": "ch_1"})
    assert resp.json()["status"] == "confirmed"
    assert resp.json()["payment_status"] == "paid"

    resp = await client.post(payment_url, json={"payment_method": "card", "payment_id": "ch_2"})
    assert resp.status_code == 400

    resp = await client.get(f"{API}/guest-bookings/slots", params={"court_id": court.id, "date": day.isoformat()})
    booked = resp.json()["booked_slots"]
    assert booked[0]["court_type"] == "half_court"


@pytest.mark.asyncio
async def test_guest_lead_time(client, court):
    tomorrow = local_today() + timedelta(days=1)
    resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, tomorrow))
    assert resp.status_code == 422
    detail = resp.json()["detail"][0]
    assert detail["rule"] == "lead_time_violation"
    assert detail["earliest_date"] == (local_today() + timedelta(days=2)).isoformat()


@pytest.mark.asyncio
async def test_guest_half_court_capacity(client, court):
    day = next_weekday("saturday")
    for _ in range(2):
        resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, day, court_type="half_court"))
        assert resp.status_code == 201

    resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, day, court_type="half_court"))
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["conflict"] == "half_capacity"


@pytest.mark.asyncio
async def test_guest_cancel_checks_email(client, court):
    resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, next_weekday("friday")))
    reference = resp.json()["booking_reference"]
    url = f"{API}/guest-bookings/reference/{reference}/cancel"

    resp = await client.post(url, json={"email": "someone@example.com"})
    assert resp.status_code == 403

    resp = await client.post(url, json={"email": "ALEX@example.com"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_staff_guest_status_update(client, court, admin, football_supervisor):
    resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, next_weekday("friday")))
    booking_id = resp.json()["id"]
    url = f"{API}/guest-bookings/{booking_id}/status"

    resp = await client.patch(url, json={"status": "confirmed"}, headers=auth_headers(football_supervisor))
    assert resp.status_code == 403

    resp = await client.patch(url, json={"status": "confirmed"}, headers=auth_headers(admin))
    assert resp.json()["payment_status"] == "paid"

    resp = await client.patch(url, json={"status": "cancelled"}, headers=auth_headers(admin))
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["payment_status"] == "refunded"

    resp = await client.get(f"{API}/guest-bookings", headers=auth_headers(admin))
    assert [b["id"] for b in resp.json()] == [booking_id]


@pytest.mark.asyncio
async def test_cancelled_guest_booking_cannot_be_reopened(client, court, admin):
    resp = await client.post(f"{API}/guest-bookings", json=guest_payload(court.id, next_weekday("friday")))
    url = f"{API}/guest-bookings/{resp.json()['id']}/status"

    resp = await client.patch(url, json={"status": "cancelled"}, headers=auth_headers(admin))
    assert resp.status_code == 200

    for new_status in ("confirmed", "pending", "cancelled"):
        resp = await client.patch(url, json={"status": new_status}, headers=auth_headers(admin))
        assert resp.status_code == 400


@pytest.mark.asyncio
async def test_staff_cannot_cancel_started_guest_booking(client, db, court, admin):
    start = local_now() - timedelta(days=2)
    booking = GuestBooking(
        court_id=court.id,
        booking_reference="GB-00000001",
        guest_name="Alex Guest",
        guest_email="alex@example.com",
        guest_phone="0700 000000",
        start_time=start,
        end_time=start + timedelta(hours=1),
        status=BookingStatus.CONFIRMED,
        total_price=Decimal("20.00"),
    )
    db.add(booking)
    await db.commit()

    resp = await client.patch(
        f"{API}/guest-bookings/{booking.id}/status", json={"status": "cancelled"}, headers=auth_headers(admin)
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_staff_guest_listing_filters_by_sport_before_paging(client, db, court, football_supervisor):
    pitch = await create_court(db, name="Pitch", sport_type=SportType.FOOTBALL)
    base = datetime(2030, 1, 7, 10, 0)

    def guest_booking(court_id, reference, start):
        return GuestBooking(
            court_id=court_id,
            booking_reference=reference,
            guest_name="Alex Guest",
            guest_email="alex@example.com",
            guest_phone="0700 000000",
            start_time=start,
            end_time=start + timedelta(hours=1),
            total_price=Decimal("20.00"),
        )

    db.add(guest_booking(pitch.id, "GB-FFFFFFFF", base))
    db.add_all(guest_booking(court.id, f"GB-{i:08X}", base + timedelta(days=1, hours=i)) for i in range(200))
    await db.commit()

    resp = await client.get(f"{API}/guest-bookings", headers=auth_headers(football_supervisor))
    assert resp.status_code == 200
    assert [b["booking_reference"] for b in resp.json()] == ["GB-FFFFFFFF"]


# ---------------------------------------------------------------------------
# Recurring schedules
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_schedule_lifecycle(client, db, court, coach, admin):
    team = await create_team(db, coach)
    start = next_weekday("tuesday")
    body = {
        "team_id": team.id,
        "court_id": court.id,
        "day_of_week": "Tuesday",
        "start_time": "18:00",
        "end_time": "20:00",
        "start_date": start.isoformat(),
    }
    resp = await client.post(f"{API}/schedules", json=body, headers=auth_headers(coach))
    assert resp.status_code == 201
    schedule = resp.json()
    assert schedule["duration"] == 120
    assert schedule["day_of_week"] == "tuesday"

    resp = await client.get(f"{API}/bookings", params={"mine": "true"}, headers=auth_headers(coach))
    generated = resp.json()
    assert len(generated) == 4
    assert all(b["is_recurring"] and b["status"] == "confirmed" for b in generated)

    url = f"{API}/schedules/{schedule['id']}"
    resp = await client.post(f"{url}/generate", json={"weeks": 4}, headers=auth_headers(admin))
    assert resp.json()["created"] == 0

    resp = await client.post(
        f"{url}/exceptions",
        json={"date": (start + timedelta(weeks=1)).isoformat(), "reason": "Holiday"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201
    result = resp.json()
    assert len(result["cancelled_booking_ids"]) == 1
    assert result["exception"]["date"] == (start + timedelta(weeks=1)).isoformat()

    resp = await client.delete(f"{url}/exceptions/{result['exception']['id']}", headers=auth_headers(admin))
    assert resp.status_code == 204

    resp = await client.get(f"{API}/bookings/{result['cancelled_booking_ids'][0]}", headers=auth_headers(coach))
    assert resp.json()["status"] == "cancelled"

    resp = await client.post(f"{url}/deactivate", headers=auth_headers(admin))
    assert resp.json()["is_active"] is False
    resp = await client.get(f"{API}/schedules", params={"active": "true"}, headers=auth_headers(admin))
    assert resp.json() == []

    resp = await client.delete(url, params={"cancel_bookings": "true"}, headers=auth_headers(admin))
    assert resp.json() == {"deleted": schedule["id"], "cancelled_bookings": 3}
    resp = await client.get(url, headers=auth_headers(admin))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_schedule_must_fit_court_hours(client, db, court, coach):
    team = await create_team(db, coach)
    body = {
        "team_id": team.id,
        "court_id": court.id,
        "day_of_week": "monday",
        "start_time": "20:00",
        "end_time": "22:00",
        "start_date": next_weekday("monday").isoformat(),
    }
    resp = await client.post(f"{API}/schedules", json=body, headers=auth_headers(coach))
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "outside_available_hours"

    resp = await client.post(f"{API}/schedules", json={**body, "team_id": 999}, headers=auth_headers(coach))
    assert resp.status_code == 404

    resp = await client.post(f"{API}/schedules", json={**body, "start_time": "8pm"}, headers=auth_headers(coach))
    assert resp.status_code == 422
