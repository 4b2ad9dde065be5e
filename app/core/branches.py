"""Static branch configuration: weekly operating hours and locations."""

import enum
import math
from dataclasses import dataclass
from datetime import date, time
from typing import Optional, Union


class WeekDay(enum.Enum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class Branch(str, enum.Enum):
    CABUGAO = "Cabugao"
    SAN_JUAN = "San Juan"


@dataclass(frozen=True)
class OperatingHours:
    """Half-open interval [open_hour:00, close_hour:00)."""

    open_hour: int
    close_hour: int

    @property
    def opens_at(self) -> time:
        return time(self.open_hour, 0)

    @property
    def closes_at(self) -> time:
        return time(self.close_hour, 0)

    def contains(self, value: time) -> bool:
        return self.opens_at <= value < self.closes_at


@dataclass(frozen=True)
class BranchLocation:
    lat: float
    lng: float
    address: str


@dataclass(frozen=True)
class BranchDistance:
    branch: Branch
    distance_km: float

    @property
    def distance_text(self) -> str:
        if self.distance_km < 1:
            return f"{round(self.distance_km * 1000)} m"
        return f"{self.distance_km:.1f} km"


_WEEKDAYS = [
    WeekDay.MONDAY,
    WeekDay.TUESDAY,
    WeekDay.WEDNESDAY,
    WeekDay.THURSDAY,
    WeekDay.FRIDAY,
]

# None marks a closed day
BRANCH_HOURS: dict[Branch, dict[WeekDay, Optional[OperatingHours]]] = {
    Branch.CABUGAO: {
        **{day: OperatingHours(8, 12) for day in _WEEKDAYS},
        WeekDay.SATURDAY: OperatingHours(8, 17),
        WeekDay.SUNDAY: None,
    },
    Branch.SAN_JUAN: {
        **{day: OperatingHours(13, 17) for day in _WEEKDAYS},
        WeekDay.SATURDAY: None,
        WeekDay.SUNDAY: OperatingHours(8, 17),
    },
}

BRANCH_LOCATIONS: dict[Branch, BranchLocation] = {
    Branch.CABUGAO: BranchLocation(17.7641, 120.4183, "Cabugao, Ilocos Sur"),
    Branch.SAN_JUAN: BranchLocation(17.7305, 120.3428, "San Juan, Ilocos Sur"),
}

EARTH_RADIUS_KM = 6371.0


def parse_branch(value: Union[str, Branch, None]) -> Optional[Branch]:
    """Return the Branch for ``value`` or None when it is missing or unknown."""
    if value is None or isinstance(value, Branch):
        return value
    try:
        return Branch(value)
    except ValueError:
        return None


def get_operating_hours(
    branch: Union[str, Branch, None], target_date: date
) -> Optional[OperatingHours]:
    """Hours for ``branch`` on ``target_date``; None if closed or unknown."""
    resolved = parse_branch(branch)
    if resolved is None:
        return None
    return BRANCH_HOURS[resolved][WeekDay(target_date.weekday())]


def is_open(branch: Union[str, Branch, None], target_date: date) -> bool:
    return get_operating_hours(branch, target_date) is not None


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def nearest_branches(lat: float, lng: float) -> list[BranchDistance]:
    """All branches ordered by distance from the given coordinates."""
    distances = [
        BranchDistance(branch, haversine_km(lat, lng, loc.lat, loc.lng))
        for branch, loc in BRANCH_LOCATIONS.items()
    ]
    return sorted(distances, key=lambda d: d.distance_km)
