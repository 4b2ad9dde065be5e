from fastapi import APIRouter

from app.api.v1.endpoints import appointments, branches, scheduling

api_router = APIRouter()

# Branch configuration endpoints
api_router.include_router(branches.router, prefix="/branches", tags=["branches"])

# Slot availability endpoints
api_router.include_router(scheduling.router, prefix="/scheduling", tags=["scheduling"])

# Appointment booking endpoints
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)
