from datetime import date
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.core.branches import (
    BRANCH_HOURS,
    BRANCH_LOCATIONS,
    Branch,
    OperatingHours,
    get_operating_hours,
    is_open,
    nearest_branches,
)
from app.schemas.scheduling import (
    BranchDistanceResponse,
    BranchHoursResponse,
    BranchSummary,
    OperatingHoursResponse,
)

router = APIRouter()


def _hours_response(hours: Optional[OperatingHours]) -> Optional[OperatingHoursResponse]:
    if hours is None:
        return None
    return OperatingHoursResponse(opens_at=hours.opens_at, closes_at=hours.closes_at)


@router.get("/", response_model=List[BranchSummary])
async def list_branches():
    """List clinic branches with their weekly operating hours."""
    return [
        BranchSummary(
            branch=branch.value,
            address=BRANCH_LOCATIONS[branch].address,
            lat=BRANCH_LOCATIONS[branch].lat,
            lng=BRANCH_LOCATIONS[branch].lng,
            weekly_hours={
                weekday.name.title(): _hours_response(hours)
                for weekday, hours in BRANCH_HOURS[branch].items()
            },
        )
        for branch in Branch
    ]


@router.get("/nearest", response_model=List[BranchDistanceResponse])
async def get_nearest_branches(
    lat: float = Query(..., ge=-90, le=90, description="Patient latitude"),
    lng: float = Query(..., ge=-180, le=180, description="Patient longitude"),
):
    """Branches ordered by distance from the patient's location."""
    return [
        BranchDistanceResponse(
            branch=d.branch.value,
            distance_km=round(d.distance_km, 2),
            distance_text=d.distance_text,
        )
        for d in nearest_branches(lat, lng)
    ]


@router.get("/{branch}/hours", response_model=BranchHoursResponse)
async def get_branch_hours(
    branch: str,
    date: date = Query(..., description="Date to check branch hours for"),
):
    """Operating hours of a branch on a specific date."""
    try:
        resolved = Branch(branch)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown branch: {branch}"
        )

    hours = get_operating_hours(resolved, date)
    return BranchHoursResponse(
        branch=resolved.value,
        date=date,
        weekday=date.strftime("%A"),
        is_open=is_open(resolved, date),
        hours=_hours_response(hours),
    )
