"""
Tests for the night-by-night sellability rules shared by search and booking.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from pms.errors import ValidationError
from pms.models import InventoryRecord
from pms.services.stay import check_stay, stay_nights, validate_occupancy, validate_stay

CHECK_IN = date(2030, 3, 10)
CHECK_OUT = date(2030, 3, 12)
NIGHTS = stay_nights(CHECK_IN, CHECK_OUT)


def _records(overrides: dict | None = None, available: int = 5) -> dict:
    records = {}
    for night in NIGHTS:
        record = InventoryRecord(
            date=night,
            available_rooms=available,
            total_rooms=10,
            price=Decimal("100"),
            stop_sell=False,
            closed_to_arrival=False,
            closed_to_departure=False,
            min_stay=None,
            max_stay=None,
        )
        records[night] = record
    for (night, field), value in (overrides or {}).items():
        setattr(records[night], field, value)
    return records


class TestStayDates:

    def test_nights_exclude_checkout(self):
        assert NIGHTS == [CHECK_IN, CHECK_IN + timedelta(days=1)]

    def test_checkout_must_follow_checkin(self):
        with pytest.raises(ValidationError):
            validate_stay(CHECK_IN, CHECK_IN, today=date(2030, 1, 1))

    def test_past_checkin_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_stay(CHECK_IN, CHECK_OUT, today=date(2030, 3, 11))
        assert "past" in exc.value.errors[0]

    def test_returns_night_count(self):
        assert validate_stay(CHECK_IN, CHECK_OUT, today=CHECK_IN) == 2

    def test_occupancy_over_capacity(self):
        with pytest.raises(ValidationError):
            validate_occupancy(2, 2, max_adults=2, max_children=2, max_occupancy=3)
        validate_occupancy(2, 1, max_adults=2, max_children=2, max_occupancy=3)


class TestCheckStay:

    def test_exact_availability_is_enough(self):
        assert check_stay(_records(available=2), NIGHTS, rooms=2).ok

    def test_one_short_excludes(self):
        check = check_stay(_records(available=1), NIGHTS, rooms=2)
        assert not check.ok
        assert len(check.unavailable) == 2

    def test_missing_night(self):
        records = _records()
        del records[NIGHTS[1]]
        assert check_stay(records, NIGHTS, rooms=1).unavailable

    def test_stop_sell(self):
        check = check_stay(_records({(NIGHTS[1], "stop_sell"): True}), NIGHTS, rooms=1)
        assert check.unavailable == [f"Stop sell on {NIGHTS[1].isoformat()}"]

    def test_closed_to_arrival_only_on_first_night(self):
        assert not check_stay(_records({(NIGHTS[0], "closed_to_arrival"): True}), NIGHTS, 1).ok
        assert check_stay(_records({(NIGHTS[1], "closed_to_arrival"): True}), NIGHTS, 1).ok

    def test_closed_to_departure_only_on_last_night(self):
        assert not check_stay(_records({(NIGHTS[1], "closed_to_departure"): True}), NIGHTS, 1).ok
        assert check_stay(_records({(NIGHTS[0], "closed_to_departure"): True}), NIGHTS, 1).ok

    def test_min_stay(self):
        check = check_stay(_records({(NIGHTS[0], "min_stay"): 3}), NIGHTS, 1)
        assert check.restricted and not check.unavailable
        assert check_stay(_records({(NIGHTS[0], "min_stay"): 2}), NIGHTS, 1).ok

    def test_max_stay(self):
        assert not check_stay(_records({(NIGHTS[1], "max_stay"): 1}), NIGHTS, 1).ok
