"""Night audit: end-of-day rollover of no-shows and overdue check-outs."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import Database
from ..core.exceptions import AuditAlreadyRunningError, InvalidTransitionError, NotFoundError
from ..core.observability import metrics_collector
from ..models.audit import AuditAction, AuditOutcome, AuditRun, AuditRunStatus
from ..models.booking import Booking, BookingState
from ..models.inventory import InventoryCell
from .booking_service import BookingService
from .inventory_ledger import utc_now

logger = logging.getLogger(__name__)


@dataclass
class _Candidate:
    booking_id: UUID
    action: AuditAction
    expected_state: BookingState


@dataclass
class _Result:
    booking_id: UUID
    action: AuditAction
    succeeded: bool
    error: Optional[str] = None


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class NightAuditRunner:
    """
    Runs the night audit for one business date at a time.

    Each booking is moved through ``BookingService`` in its own unit of work,
    so a failure on one booking is recorded on the run and never rolls back
    the others. At most one run per date is ``RUNNING`` and at most one is
    ``COMPLETED``; repeating a completed audit returns the existing record.
    """

    def __init__(
        self,
        db: Database,
        booking_service: BookingService,
        no_show_grace_days: int = 0,
        stale_after_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.booking_service = booking_service
        self.no_show_grace_days = no_show_grace_days
        self.stale_after_seconds = stale_after_seconds
        self.clock = clock

    async def run_audit(self, target_date: date) -> AuditRun:
        """
        Run the night audit for ``target_date``.

        Confirmed bookings that should have arrived before ``target_date``
        become no-shows; checked-in bookings due to leave on or before it are
        checked out.

        Args:
            target_date: Business date being closed

        Returns:
            The finished run: ``COMPLETED`` if every booking succeeded,
            ``FAILED`` otherwise. A previously completed run is returned as is.

        Raises:
            AuditAlreadyRunningError: If another run for the date is in progress
        """
        run, existing = await self._start_run(target_date)
        if existing:
            logger.info(
                "Night audit already completed",
                extra={"audit_run_id": str(run.id), "target_date": target_date.isoformat()}
            )
            return run

        logger.info(
            "Night audit started",
            extra={"audit_run_id": str(run.id), "target_date": target_date.isoformat()}
        )

        results: list[_Result] = []
        try:
            candidates = await self._find_candidates(target_date)
            for candidate in candidates:
                results.append(await self._process(candidate, target_date))
        except Exception as e:
            logger.error(
                f"Night audit aborted: {e!s}",
                exc_info=True,
                extra={"audit_run_id": str(run.id), "target_date": target_date.isoformat()}
            )
            return await self._finalize(run.id, target_date, results, error=str(e))

        return await self._finalize(run.id, target_date, results)

    async def get_audit_run(self, target_date: date) -> AuditRun:
        """
        Get the audit record for a business date.

        Returns the completed run when there is one, otherwise the most
        recent attempt.

        Raises:
            NotFoundError: If the date has never been audited
        """
        async with self.db.transaction() as session:
            result = await session.execute(
                select(AuditRun)
                .where(AuditRun.target_date == target_date)
                .order_by(
                    (AuditRun.status == AuditRunStatus.COMPLETED.value).desc(),
                    AuditRun.started_at.desc(),
                )
                .limit(1)
            )
            run = result.scalar_one_or_none()

        if not run:
            raise NotFoundError(resource_type="audit_run", resource_id=target_date.isoformat())
        return run

    async def list_recent_runs(self, limit: int = 30) -> list[AuditRun]:
        """List audit runs, newest business date first."""
        async with self.db.transaction() as session:
            result = await session.execute(
                select(AuditRun)
                .order_by(AuditRun.target_date.desc(), AuditRun.started_at.desc())
                .limit(limit)
            )
            return list(result.scalars())

    async def get_last_audited_date(self) -> Optional[date]:
        """Return the latest business date with a completed audit."""
        async with self.db.transaction() as session:
            result = await session.execute(
                select(func.max(AuditRun.target_date))
                .where(AuditRun.status == AuditRunStatus.COMPLETED.value)
            )
            return result.scalar_one_or_none()

    async def _start_run(self, target_date: date) -> tuple[AuditRun, bool]:
        """Open a RUNNING record for the date, or return the completed one."""
        try:
            async with self.db.transaction() as session:
                result = await session.execute(
                    select(AuditRun)
                    .where(
                        AuditRun.target_date == target_date,
                        AuditRun.status.in_([AuditRunStatus.RUNNING.value, AuditRunStatus.COMPLETED.value]),
                    )
                    .with_for_update()
                )
                found = list(result.scalars())
                for existing in found:
                    if existing.status == AuditRunStatus.COMPLETED.value:
                        return existing, True
                for existing in found:
                    if not self._is_stale(existing):
                        raise AuditAlreadyRunningError(target_date, str(existing.id))
                    self._close_stale(existing)
                await session.flush()

                now = self.clock()
                run = AuditRun(
                    id=uuid4(),
                    target_date=target_date,
                    status=AuditRunStatus.RUNNING.value,
                    started_at=now,
                )
                session.add(run)
        except IntegrityError as e:
            # Lost the race against a concurrent run for the same date
            raise AuditAlreadyRunningError(target_date) from e

        return run, False

    def _is_stale(self, run: AuditRun) -> bool:
        age = self.clock() - _as_utc(run.started_at)
        return age > timedelta(seconds=self.stale_after_seconds)

    def _close_stale(self, run: AuditRun) -> None:
        run.status = AuditRunStatus.FAILED.value
        run.completed_at = self.clock()
        run.error = f"Abandoned: still running after {self.stale_after_seconds}s"
        logger.warning(
            "Closed abandoned night audit run",
            extra={
                "audit_run_id": str(run.id),
                "target_date": run.target_date.isoformat(),
                "started_at": _as_utc(run.started_at).isoformat(),
            }
        )
        metrics_collector.record_audit_run(AuditRunStatus.FAILED.value)

    async def _find_candidates(self, target_date: date) -> list[_Candidate]:
        no_show_before = target_date - timedelta(days=self.no_show_grace_days)

        async with self.db.transaction() as session:
            result = await session.execute(
                select(Booking.id, Booking.state)
                .where(
                    or_(
                        and_(
                            Booking.state == BookingState.CONFIRMED.value,
                            Booking.arrival < no_show_before,
                        ),
                        and_(
                            Booking.state == BookingState.CHECKED_IN.value,
                            Booking.departure <= target_date,
                        ),
                    )
                )
                .order_by(Booking.arrival, Booking.id)
            )
            rows = result.all()

        candidates = []
        for booking_id, state in rows:
            if state == BookingState.CONFIRMED.value:
                candidates.append(_Candidate(booking_id, AuditAction.NO_SHOW, BookingState.CONFIRMED))
            else:
                candidates.append(_Candidate(booking_id, AuditAction.CHECK_OUT, BookingState.CHECKED_IN))

        logger.info(
            "Night audit candidates found",
            extra={"target_date": target_date.isoformat(), "candidate_count": len(candidates)}
        )
        return candidates

    async def _process(self, candidate: _Candidate, target_date: date) -> _Result:
        booking_id = candidate.booking_id
        try:
            booking = await self.booking_service.get_booking(booking_id)
            if BookingState(booking.state) is not candidate.expected_state:
                result = _Result(booking_id, AuditAction.SKIPPED, True)
            elif candidate.action is AuditAction.NO_SHOW:
                await self.booking_service.mark_no_show(booking_id, target_date)
                result = _Result(booking_id, AuditAction.NO_SHOW, True)
            else:
                await self.booking_service.check_out(booking_id, current_date=target_date)
                result = _Result(booking_id, AuditAction.CHECK_OUT, True)
        except InvalidTransitionError as e:
            if e.current_state == candidate.expected_state.value:
                result = _Result(booking_id, candidate.action, False, f"{type(e).__name__}: {e!s}")
                logger.error(
                    "Night audit booking failed",
                    extra={"booking_id": str(booking_id), "action": candidate.action.value, "error": str(e)}
                )
            else:
                # Moved on between the state check and the locked transition
                result = _Result(booking_id, AuditAction.SKIPPED, True)
        except Exception as e:
            result = _Result(booking_id, candidate.action, False, f"{type(e).__name__}: {e!s}")
            logger.error(
                "Night audit booking failed",
                exc_info=True,
                extra={
                    "booking_id": str(booking_id),
                    "action": candidate.action.value,
                    "target_date": target_date.isoformat(),
                }
            )
        else:
            logger.info(
                "Night audit booking processed",
                extra={
                    "booking_id": str(booking_id),
                    "action": result.action.value,
                    "target_date": target_date.isoformat(),
                }
            )

        metrics_collector.record_audit_outcome(result.action.value, result.succeeded)
        return result

    async def _finalize(
        self,
        run_id: UUID,
        target_date: date,
        results: list[_Result],
        error: Optional[str] = None,
    ) -> AuditRun:
        async with self.db.transaction() as session:
            result = await session.execute(
                select(AuditRun)
                .where(AuditRun.id == run_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            run = result.scalar_one()

            if run.status != AuditRunStatus.RUNNING.value:
                # Closed by a stale takeover while this run was still working
                logger.warning(
                    "Night audit run closed before it finished",
                    extra={
                        "audit_run_id": str(run.id),
                        "target_date": target_date.isoformat(),
                        "status": run.status,
                        "processed": len(results),
                    }
                )
                return run

            for position, item in enumerate(results):
                run.outcomes.append(AuditOutcome(
                    id=uuid4(),
                    position=position,
                    booking_id=item.booking_id,
                    action=item.action.value,
                    succeeded=item.succeeded,
                    error=item.error,
                ))

            succeeded = sum(1 for item in results if item.succeeded)
            run.processed_count = len(results)
            run.succeeded_count = succeeded
            run.failed_count = len(results) - succeeded
            run.no_shows = sum(1 for item in results if item.succeeded and item.action is AuditAction.NO_SHOW)
            run.checkouts = sum(1 for item in results if item.succeeded and item.action is AuditAction.CHECK_OUT)

            await self._record_statistics(session, run, target_date)

            all_succeeded = error is None and run.failed_count == 0
            run.status = (AuditRunStatus.COMPLETED if all_succeeded else AuditRunStatus.FAILED).value
            run.error = error
            run.completed_at = self.clock()

        logger.info(
            "Night audit finished",
            extra={
                "audit_run_id": str(run.id),
                "target_date": target_date.isoformat(),
                "status": run.status,
                "processed": run.processed_count,
                "succeeded": run.succeeded_count,
                "failed": run.failed_count,
                "occupancy_rate": run.occupancy_rate,
            }
        )
        metrics_collector.record_audit_run(run.status)
        if run.status == AuditRunStatus.COMPLETED.value:
            metrics_collector.set_occupancy_rate(run.occupancy_rate)

        return run

    async def _record_statistics(self, session: AsyncSession, run: AuditRun, target_date: date) -> None:
        """Snapshot rooms and guest movements for the business date."""
        rooms = await session.execute(
            select(
                func.coalesce(func.sum(InventoryCell.total), 0),
                func.coalesce(func.sum(InventoryCell.blocked), 0),
            ).where(InventoryCell.night == target_date)
        )
        total_rooms, blocked_rooms = rooms.one()

        occupied = await session.execute(
            select(func.count(Booking.id)).where(
                Booking.state == BookingState.CHECKED_IN.value,
                Booking.arrival <= target_date,
                Booking.departure > target_date,
            )
        )
        arrivals = await session.execute(
            select(func.count(Booking.id)).where(
                Booking.arrival == target_date,
                Booking.state.in_([BookingState.CHECKED_IN.value, BookingState.CHECKED_OUT.value]),
            )
        )
        departures = await session.execute(
            select(func.count(Booking.id)).where(
                Booking.departure == target_date,
                Booking.state == BookingState.CHECKED_OUT.value,
            )
        )

        run.total_rooms = int(total_rooms)
        run.blocked_rooms = int(blocked_rooms)
        run.occupied_rooms = occupied.scalar_one()
        run.arrivals = arrivals.scalar_one()
        run.departures = departures.scalar_one()
        run.occupancy_rate = (
            round(run.occupied_rooms / run.total_rooms * 100, 2) if run.total_rooms > 0 else 0.0
        )
