from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import (
    account,
    access,
    activity,
    health,
    notifications,
    observations,
    requirements,
    schedule,
    substitutes,
    teachers,
)
from app.core.config import get_settings
from app.core.exceptions import AppError
from app.db.bootstrap import ensure_runtime_schema
from app.services.calendar import calendar_client_from_settings

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Incomplete calendar credentials stop startup instead of failing each booking.
    calendar_client_from_settings(settings)
    ensure_runtime_schema()
    yield


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500 and not exc.retryable:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "code": exc.code,
            "message": exc.message,
            "retryable": exc.retryable,
            "details": exc.details,
        },
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(account.router, prefix=settings.api_prefix, tags=["account"])
app.include_router(access.router, prefix=f"{settings.api_prefix}/access-requests", tags=["access"])
app.include_router(teachers.router, prefix=f"{settings.api_prefix}/teachers", tags=["teachers"])
app.include_router(schedule.router, prefix=f"{settings.api_prefix}/schedule", tags=["schedule"])
app.include_router(observations.router, prefix=f"{settings.api_prefix}/observations", tags=["observations"])
app.include_router(substitutes.router, prefix=f"{settings.api_prefix}/substitute-requests", tags=["substitutes"])
app.include_router(requirements.router, prefix=f"{settings.api_prefix}/requirements", tags=["requirements"])
app.include_router(activity.router, prefix=settings.api_prefix, tags=["activity"])
app.include_router(notifications.router, prefix=settings.api_prefix, tags=["notifications"])
