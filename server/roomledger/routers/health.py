"""Heartbeat router."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..core.calendar import business_date
from ..core.dependencies import NightAuditDependency
from ..schemas.health import HealthResponse, HealthStatus
from ..services.night_audit import NightAuditRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])


@router.post("/ping", response_model=HealthResponse)
async def health_ping(request: Request, runner: NightAuditRunner = NightAuditDependency) -> JSONResponse:
    """
    Report the business date and whether the night audit is keeping up.

    The service is ``audit_behind`` when no completed audit covers either of
    the two dates before the business date, including when none has ever run.
    """
    now = runner.clock()
    today = business_date(now, request.app.state.settings.audit_cutover_hour)
    last_audited = await runner.get_last_audited_date()

    status = HealthStatus.HEALTHY
    if last_audited is None or last_audited < today - timedelta(days=2):
        status = HealthStatus.AUDIT_BEHIND

    response_data = HealthResponse(
        status=status,
        timestamp=now,
        business_date=today,
        last_audited_date=last_audited,
    )

    logger.debug(
        "Heartbeat requested",
        extra={"status": status.value, "business_date": today.isoformat()}
    )

    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
