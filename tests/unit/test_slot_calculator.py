"""Slot availability calculator with an in-memory booking source."""

from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest

from app.core.branches import Branch, OperatingHours, get_operating_hours
from app.core.exceptions import BookingFetchError
from app.schemas.scheduling import BookedSlot
from app.services.scheduling import (
    SlotAvailabilityService,
    blocked_slots,
    calculate_end_time,
    estimate_duration,
    format_display_time,
    generate_candidate_slots,
    subtract_booked_slots,
)
from tests.conftest import SATURDAY, SUNDAY, WEDNESDAY


class FakeBookings:
    """Booking source over a fixed list, honouring exclude_id."""

    def __init__(self, bookings=None):
        self.bookings = list(bookings or [])
        self.calls = []

    async def list_active_bookings(self, appointment_date, branch, exclude_id=None):
        self.calls.append((appointment_date, branch, exclude_id))
        return [
            b
            for b in self.bookings
            if b.appointment_id != exclude_id and b.status != "cancelled"
        ]


def booked(appointment_id, slot, practitioner_id=None, duration=30, status="confirmed"):
    return BookedSlot(
        appointment_id=appointment_id,
        time=slot,
        practitioner_id=practitioner_id,
        status=status,
        duration_minutes=duration,
    )


class TestCandidateSlots:
    def test_cabugao_weekday(self):
        assert generate_candidate_slots(OperatingHours(8, 12)) == [
            "08:00", "08:30", "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
        ]

    def test_slots_are_aligned_and_inside_hours(self):
        for hours in (OperatingHours(8, 17), OperatingHours(13, 17)):
            slots = generate_candidate_slots(hours)
            assert len(slots) == (hours.close_hour - hours.open_hour) * 2
            for slot in slots:
                hour, minute = map(int, slot.split(":"))
                assert hours.open_hour <= hour < hours.close_hour
                assert minute in (0, 30)

    def test_other_interval(self):
        assert generate_candidate_slots(OperatingHours(13, 15), 60) == ["13:00", "14:00"]


class TestSubtractBookedSlots:
    def test_without_practitioner_every_booking_counts(self):
        bookings = [booked(1, "08:30", "D1"), booked(2, "09:00")]
        result = subtract_booked_slots(["08:00", "08:30", "09:00"], bookings)
        assert result == ["08:00"]

    def test_practitioner_filter(self):
        bookings = [booked(1, "08:30", "D1"), booked(2, "09:00", "D2")]
        assert subtract_booked_slots(["08:00", "08:30", "09:00"], bookings, "D1") == [
            "08:00",
            "09:00",
        ]


class TestFormatting:
    def test_display_time(self):
        assert format_display_time("08:00") == "8:00 AM"
        assert format_display_time("12:00") == "12:00 PM"
        assert format_display_time("13:30") == "1:30 PM"
        assert format_display_time("00:30") == "12:30 AM"

    def test_end_time(self):
        assert calculate_end_time("11:30", 30) == "12:00"
        assert calculate_end_time("08:00", 90) == "09:30"

    def test_estimate_duration(self):
        assert estimate_duration([]) == 30
        assert estimate_duration([45, None]) == 75
        assert estimate_duration([15]) == 30

    def test_blocked_slots_cover_duration(self):
        blocked = blocked_slots([booked(1, "08:00", duration=60), booked(2, "10:00", duration=45)])
        assert blocked == {"08:00", "08:30", "10:00", "10:30"}


class TestComputeAvailableSlots:
    async def test_closed_day_returns_empty_without_fetch(self):
        source = FakeBookings()
        service = SlotAvailabilityService(source)

        assert await service.compute_available_slots(SUNDAY, "Cabugao") == []
        assert await service.compute_available_slots(SATURDAY, "San Juan") == []
        assert source.calls == []

    async def test_unknown_or_missing_branch_returns_empty(self):
        service = SlotAvailabilityService(FakeBookings())

        assert await service.compute_available_slots(WEDNESDAY, "Vigan") == []
        assert await service.compute_available_slots(WEDNESDAY, None) == []

    async def test_closed_days_never_error_over_a_month(self):
        source = AsyncMock()
        source.list_active_bookings.side_effect = AssertionError("should not fetch")
        service = SlotAvailabilityService(source)

        start = date(2025, 3, 1)
        for offset in range(31):
            day = start + timedelta(days=offset)
            for branch in Branch:
                if get_operating_hours(branch, day) is None:
                    assert await service.compute_available_slots(day, branch) == []

    async def test_booked_slot_excluded_in_general_view(self):
        service = SlotAvailabilityService(FakeBookings([booked(1, "08:30", "D1")]))

        slots = await service.compute_available_slots(WEDNESDAY, "Cabugao")

        assert slots == ["08:00", "09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]

    async def test_other_practitioner_keeps_slot(self):
        service = SlotAvailabilityService(FakeBookings([booked(1, "08:30", "D1")]))

        with_d1 = await service.compute_available_slots(WEDNESDAY, "Cabugao", "D1")
        with_d2 = await service.compute_available_slots(WEDNESDAY, "Cabugao", "D2")

        assert "08:30" not in with_d1
        assert "08:30" in with_d2
        assert with_d2 == generate_candidate_slots(OperatingHours(8, 12))

    async def test_unassigned_booking_blocks_general_view_only(self):
        service = SlotAvailabilityService(FakeBookings([booked(1, "10:00")]))

        assert "10:00" not in await service.compute_available_slots(WEDNESDAY, "Cabugao")
        assert "10:00" in await service.compute_available_slots(WEDNESDAY, "Cabugao", "D1")

    async def test_booking_being_moved_does_not_conflict_with_itself(self):
        source = FakeBookings([booked(7, "08:30", "D1")])
        service = SlotAvailabilityService(source)

        slots = await service.compute_available_slots(
            WEDNESDAY, "Cabugao", "D1", exclude_booking_id=7
        )

        assert "08:30" in slots
        assert source.calls[-1] == (WEDNESDAY, "Cabugao", 7)

    async def test_fully_booked_day_is_empty(self):
        bookings = [
            booked(i, slot) for i, slot in enumerate(generate_candidate_slots(OperatingHours(13, 17)))
        ]
        service = SlotAvailabilityService(FakeBookings(bookings))

        assert await service.compute_available_slots(WEDNESDAY, "San Juan") == []

    async def test_idempotent(self):
        service = SlotAvailabilityService(
            FakeBookings([booked(1, "08:30", "D1"), booked(2, "14:00", "D2")])
        )

        first = await service.compute_available_slots(SATURDAY, "Cabugao")
        second = await service.compute_available_slots(SATURDAY, "Cabugao")

        assert first == second
        assert first == sorted(first)

    async def test_fetch_failure_is_raised_not_empty(self):
        source = AsyncMock()
        source.list_active_bookings.side_effect = BookingFetchError(
            "Cabugao", WEDNESDAY, "connection refused"
        )
        service = SlotAvailabilityService(source)

        with pytest.raises(BookingFetchError):
            await service.compute_available_slots(WEDNESDAY, "Cabugao")


class TestSlotGrid:
    async def test_marks_every_candidate(self):
        service = SlotAvailabilityService(FakeBookings([booked(1, "08:00", duration=60)]))

        grid = await service.build_slot_grid(WEDNESDAY, "Cabugao", 30)

        assert [s.time for s in grid] == generate_candidate_slots(OperatingHours(8, 12))
        availability = {s.time: s.available for s in grid}
        assert availability["08:00"] is False
        assert availability["08:30"] is False
        assert availability["09:00"] is True

    async def test_long_visit_must_fit_before_closing(self):
        service = SlotAvailabilityService(FakeBookings())

        grid = await service.build_slot_grid(WEDNESDAY, "Cabugao", 60)

        last = grid[-1]
        assert last.time == "11:30"
        assert last.available is False
        assert grid[-2].available is True
        assert grid[-2].display_time == "11:00 AM"
        assert grid[-2].end_time == "12:00 PM"

    async def test_long_visit_cannot_overlap_later_booking(self):
        service = SlotAvailabilityService(FakeBookings([booked(1, "10:00")]))

        grid = {s.time: s.available for s in await service.build_slot_grid(WEDNESDAY, "Cabugao", 90)}

        assert grid["08:30"] is True
        assert grid["09:00"] is False
        assert grid["09:30"] is False
        assert grid["10:30"] is True

    async def test_closed_day(self):
        service = SlotAvailabilityService(FakeBookings())
        assert await service.build_slot_grid(SUNDAY, "Cabugao", 30) == []
