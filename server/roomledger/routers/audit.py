"""Night audit router."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..core.calendar import audit_target_date
from ..core.dependencies import NightAuditDependency
from ..schemas.audit import (
    AuditOutcome,
    AuditRun,
    AuditRunList,
    GetAuditRunRequest,
    LastAuditedDate,
    ListAuditRunsRequest,
    RunAuditRequest,
)
from ..services.night_audit import NightAuditRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/audit", tags=["audit"])


def _convert_run_to_schema(run_model, include_outcomes: bool = True) -> AuditRun:
    """Convert audit run model to schema."""
    outcomes = []
    if include_outcomes:
        outcomes = [
            AuditOutcome(
                booking_id=str(outcome.booking_id),
                action=outcome.action,
                succeeded=outcome.succeeded,
                error=outcome.error,
            )
            for outcome in run_model.outcomes
        ]

    return AuditRun(
        id=str(run_model.id),
        target_date=run_model.target_date,
        status=run_model.status,
        started_at=run_model.started_at,
        completed_at=run_model.completed_at,
        processed_count=run_model.processed_count,
        succeeded_count=run_model.succeeded_count,
        failed_count=run_model.failed_count,
        total_rooms=run_model.total_rooms,
        occupied_rooms=run_model.occupied_rooms,
        blocked_rooms=run_model.blocked_rooms,
        occupancy_rate=run_model.occupancy_rate,
        arrivals=run_model.arrivals,
        departures=run_model.departures,
        no_shows=run_model.no_shows,
        checkouts=run_model.checkouts,
        error=run_model.error,
        outcomes=outcomes,
    )


@router.post("/run", response_model=AuditRun)
async def run_audit(
    request: RunAuditRequest,
    http_request: Request,
    runner: NightAuditRunner = NightAuditDependency,
) -> JSONResponse:
    """
    Run the night audit for a business date.

    Repeating a completed audit returns the existing record. A second run
    while one is in progress fails with 409 AUDIT_ALREADY_RUNNING.
    """
    target_date = request.target_date
    if target_date is None:
        settings = http_request.app.state.settings
        target_date = audit_target_date(runner.clock(), settings.audit_cutover_hour)

    run = await runner.run_audit(target_date)
    return JSONResponse(status_code=200, content=_convert_run_to_schema(run).model_dump(mode="json"))


@router.post("/get", response_model=AuditRun)
async def get_audit_run(
    request: GetAuditRunRequest,
    runner: NightAuditRunner = NightAuditDependency,
) -> JSONResponse:
    """Get the audit record for a business date."""
    run = await runner.get_audit_run(request.target_date)
    return JSONResponse(status_code=200, content=_convert_run_to_schema(run).model_dump(mode="json"))


@router.post("/recent", response_model=AuditRunList)
async def list_recent_runs(
    request: ListAuditRunsRequest,
    runner: NightAuditRunner = NightAuditDependency,
) -> JSONResponse:
    """List recent audit runs without their per-booking outcomes."""
    runs = await runner.list_recent_runs(request.limit)
    response_data = AuditRunList(runs=[_convert_run_to_schema(run, include_outcomes=False) for run in runs])
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/last", response_model=LastAuditedDate)
async def get_last_audited_date(
    runner: NightAuditRunner = NightAuditDependency,
) -> JSONResponse:
    """Latest business date with a completed audit."""
    last = await runner.get_last_audited_date()
    return JSONResponse(status_code=200, content=LastAuditedDate(last_audited_date=last).model_dump(mode="json"))
