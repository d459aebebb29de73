"""Stay arithmetic and the night-by-night sellability rules.

Search and booking commit both decide whether a (room, rate plan) can sell
a stay with ``check_stay``; booking maps the two failure kinds to
different errors.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta

from pms.errors import ValidationError
from pms.models.inventory import InventoryRecord


def stay_nights(check_in: date, check_out: date) -> list[date]:
    """Nights in [check_in, check_out)."""
    return [check_in + timedelta(days=i) for i in range((check_out - check_in).days)]


def validate_stay(
    check_in: date,
    check_out: date,
    today: date | None = None,
    allow_past: bool = False,
) -> int:
    """Validate a stay's dates and return its night count."""
    errors = []
    if check_out <= check_in:
        errors.append("Check-out date must be after check-in date")
    if not allow_past and check_in < (today or date.today()):
        errors.append("Check-in date cannot be in the past")
    if errors:
        raise ValidationError(errors)
    return (check_out - check_in).days


def validate_occupancy(
    adults: int,
    children: int,
    max_adults: int,
    max_children: int,
    max_occupancy: int,
) -> None:
    errors = []
    if adults > max_adults:
        errors.append(f"Room allows at most {max_adults} adults")
    if children > max_children:
        errors.append(f"Room allows at most {max_children} children")
    if adults + children > max_occupancy:
        errors.append(f"Room allows at most {max_occupancy} guests")
    if errors:
        raise ValidationError(errors)


@dataclass
class StayCheck:
    """Why a stay cannot be sold. Empty lists mean it can."""

    unavailable: list[str] = field(default_factory=list)
    restricted: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unavailable and not self.restricted


def check_stay(
    records_by_date: dict[date, InventoryRecord],
    nights: list[date],
    rooms: int,
) -> StayCheck:
    """Every night must exist, be sellable, and hold ``rooms`` units.

    Closed-to-arrival applies to the first night, closed-to-departure to the
    last night, and min/max stay to every night.
    """
    check = StayCheck()
    length = len(nights)

    for i, night in enumerate(nights):
        record = records_by_date.get(night)
        if record is None:
            check.unavailable.append(f"No inventory for {night.isoformat()}")
            continue
        if record.stop_sell:
            check.unavailable.append(f"Stop sell on {night.isoformat()}")
        elif record.available_rooms < rooms:
            check.unavailable.append(
                f"Only {record.available_rooms} rooms available on {night.isoformat()}"
            )
        if i == 0 and record.closed_to_arrival:
            check.restricted.append(f"Closed to arrival on {night.isoformat()}")
        if i == length - 1 and record.closed_to_departure:
            check.restricted.append(f"Closed to departure on {night.isoformat()}")
        if record.min_stay and length < record.min_stay:
            check.restricted.append(
                f"Minimum stay of {record.min_stay} nights required on {night.isoformat()}"
            )
        if record.max_stay and length > record.max_stay:
            check.restricted.append(
                f"Maximum stay of {record.max_stay} nights allowed on {night.isoformat()}"
            )

    return check
