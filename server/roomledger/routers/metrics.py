"""Prometheus scrape endpoint."""

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..core.calendar import business_date
from ..core.dependencies import NightAuditDependency
from ..core.observability import get_prometheus_metrics, metrics_collector
from ..services.night_audit import NightAuditRunner

router = APIRouter(tags=["Observability"])


@router.get("/metrics", response_class=Response, summary="Prometheus Metrics")
async def metrics(request: Request, runner: NightAuditRunner = NightAuditDependency) -> Response:
    """
    Return booking, inventory and audit metrics in Prometheus text format.

    The audit lag gauge is refreshed on every scrape since it moves with the
    clock rather than with events.
    """
    today = business_date(runner.clock(), request.app.state.settings.audit_cutover_hour)
    last_audited = await runner.get_last_audited_date()
    metrics_collector.set_audit_lag((today - last_audited).days if last_audited else -1)

    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
