from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import (
    AppointmentNotFoundError,
    BookingFetchError,
    ClosedBranchError,
    InvalidSlotError,
    InvalidStatusTransitionError,
    SchedulingError,
    SlotConflictError,
    SlotHoldUnavailableError,
)
from app.core.logging import configure_logging
from app.core.redis import redis_client

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    BookingFetchError: status.HTTP_503_SERVICE_UNAVAILABLE,
    SlotHoldUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    SlotConflictError: status.HTTP_409_CONFLICT,
    InvalidStatusTransitionError: status.HTTP_409_CONFLICT,
    ClosedBranchError: 422,
    InvalidSlotError: 422,
    AppointmentNotFoundError: status.HTTP_404_NOT_FOUND,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up", environment=settings.ENVIRONMENT)
    await init_db()
    yield
    await redis_client.close()
    logger.info("Application shutting down")


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SchedulingError)
    async def scheduling_exception_handler(request: Request, exc: SchedulingError):
        status_code = next(
            (
                code
                for error_type, code in ERROR_STATUS_CODES.items()
                if isinstance(exc, error_type)
            ),
            status.HTTP_400_BAD_REQUEST,
        )
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "Scheduling request failed",
            path=request.url.path,
            error=type(exc).__name__,
            detail=str(exc),
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": settings.VERSION}

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return app


app = create_app()
