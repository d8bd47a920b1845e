from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from phone_field_bonus.core.config import get_settings
from phone_field_bonus.core.errors import UserNotFoundError
from phone_field_bonus.services import diagnostics
from phone_field_bonus.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_valid_internal_token,
)
from phone_field_bonus.services.phone_bonus_runtime import phone_bonus_runtime
from phone_field_bonus.workers.tasks.phone_bonus import recheck_unawarded_users

router = APIRouter(prefix="/internal/phone-bonus", tags=["internal", "phone-bonus"])
logger = structlog.get_logger(__name__)


class RecheckUserResponse(BaseModel):
    user_id: int
    status: str
    backend: str | None = None


class RecheckAllRequest(BaseModel):
    batch_size: int | None = Field(default=None, ge=1, le=1000)
    batch_delay_seconds: float | None = Field(default=None, ge=0.0, le=60.0)


class RecheckAllResponse(BaseModel):
    task_id: str


class RateLimitStateResponse(BaseModel):
    user_id: int
    count: int = Field(ge=0)
    max_checks: int = Field(ge=1)
    window_seconds: int = Field(ge=1)
    ttl_seconds: int | None = None
    limited: bool


class ClearRateLimitsResponse(BaseModel):
    deleted_keys: int = Field(ge=0)


class StatsCleanupResponse(BaseModel):
    deleted_keys: int = Field(ge=0)


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    client_ip = extract_client_ip(
        request,
        trusted_proxies=getattr(settings, "internal_api_trusted_proxies", ""),
    )
    token = request.headers.get("X-Internal-Token")

    if not is_valid_internal_token(
        expected_token=settings.internal_api_token,
        received_token=token,
    ):
        logger.warning("internal_phone_bonus_auth_failed", reason="invalid_token", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning("internal_phone_bonus_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "E_USER_NOT_FOUND"})


@router.get("/users/{user_id}")
async def get_user_diagnostics(request: Request, user_id: int) -> dict[str, object]:
    _assert_internal_access(request)
    async with phone_bonus_runtime() as runtime:
        try:
            return await diagnostics.diagnose_user(runtime, user_id=user_id)
        except UserNotFoundError:
            raise _not_found() from None


@router.post("/users/{user_id}/recheck", response_model=RecheckUserResponse)
async def post_recheck_user(request: Request, user_id: int) -> RecheckUserResponse:
    _assert_internal_access(request)
    async with phone_bonus_runtime() as runtime:
        try:
            result = await diagnostics.recheck_user(runtime, user_id=user_id)
        except UserNotFoundError:
            raise _not_found() from None

    logger.info("internal_phone_bonus_recheck_user", user_id=user_id, status=result.status)
    return RecheckUserResponse(user_id=user_id, status=result.status, backend=result.backend)


@router.post("/recheck-all", response_model=RecheckAllResponse, status_code=202)
async def post_recheck_all(request: Request, payload: RecheckAllRequest) -> RecheckAllResponse:
    _assert_internal_access(request)
    async_result = recheck_unawarded_users.delay(
        batch_size=payload.batch_size,
        batch_delay_seconds=payload.batch_delay_seconds,
    )
    logger.info("internal_phone_bonus_recheck_all_enqueued", task_id=str(async_result.id))
    return RecheckAllResponse(task_id=str(async_result.id))


@router.get("/rate-limits/{user_id}", response_model=RateLimitStateResponse)
async def get_rate_limit_state(request: Request, user_id: int) -> RateLimitStateResponse:
    _assert_internal_access(request)
    async with phone_bonus_runtime() as runtime:
        state = await diagnostics.rate_limit_state(runtime, user_id=user_id)
    return RateLimitStateResponse(**state)


@router.delete("/rate-limits", response_model=ClearRateLimitsResponse)
async def delete_rate_limits(
    request: Request,
    user_id: int | None = Query(default=None, ge=1),
) -> ClearRateLimitsResponse:
    _assert_internal_access(request)
    async with phone_bonus_runtime() as runtime:
        deleted = await diagnostics.clear_rate_limits(runtime, user_id=user_id)
    return ClearRateLimitsResponse(deleted_keys=deleted)


@router.get("/health")
async def get_phone_bonus_health(request: Request) -> dict[str, object]:
    _assert_internal_access(request)
    async with phone_bonus_runtime() as runtime:
        return await diagnostics.health_summary(runtime)


@router.get("/stats")
async def get_job_stats(
    request: Request,
    days: int = Query(default=7, ge=1, le=31),
) -> dict[str, object]:
    _assert_internal_access(request)
    end = datetime.now(timezone.utc).date()
    start = end - timedelta(days=days - 1)
    async with phone_bonus_runtime() as runtime:
        rows = await runtime.stats.get_range(start, end)
    return {"start": start.isoformat(), "end": end.isoformat(), "days": rows}


@router.post("/stats/cleanup", response_model=StatsCleanupResponse)
async def post_stats_cleanup(
    request: Request,
    days_to_keep: int | None = Query(default=None, ge=1, le=365),
) -> StatsCleanupResponse:
    _assert_internal_access(request)
    async with phone_bonus_runtime() as runtime:
        deleted = await runtime.stats.cleanup_old(days_to_keep)
    return StatsCleanupResponse(deleted_keys=deleted)
