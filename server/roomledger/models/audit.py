"""Night audit run and per-booking outcome model definitions."""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base


class AuditRunStatus(str, Enum):
    """Night audit run status enumeration."""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class AuditAction(str, Enum):
    """Action a night audit took on a booking."""
    NO_SHOW = "NO_SHOW"
    CHECK_OUT = "CHECK_OUT"
    SKIPPED = "SKIPPED"


class AuditRun(Base):
    """Permanent record of one night audit attempt for a business date."""

    __tablename__ = "audit_runs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    target_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AuditRunStatus] = mapped_column(String(20), nullable=False, default=AuditRunStatus.RUNNING)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    processed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    succeeded_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Snapshot of the business date
    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    occupied_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blocked_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    occupancy_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    arrivals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    departures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    no_shows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    checkouts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    outcomes: Mapped[list["AuditOutcome"]] = relationship(
        "AuditOutcome",
        back_populates="audit_run",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AuditOutcome.position",
    )

    # At most one running and one completed run per business date
    __table_args__ = (
        Index(
            "uq_audit_runs_running_per_date",
            "target_date",
            unique=True,
            postgresql_where=text("status = 'RUNNING'"),
            sqlite_where=text("status = 'RUNNING'"),
        ),
        Index(
            "uq_audit_runs_completed_per_date",
            "target_date",
            unique=True,
            postgresql_where=text("status = 'COMPLETED'"),
            sqlite_where=text("status = 'COMPLETED'"),
        ),
    )

    @property
    def is_finished(self) -> bool:
        return AuditRunStatus(self.status) is not AuditRunStatus.RUNNING

    def __repr__(self) -> str:
        return (
            f"<AuditRun(id={self.id}, target_date={self.target_date}, status={self.status}, "
            f"processed={self.processed_count})>"
        )


class AuditOutcome(Base):
    """What a night audit did to one booking."""

    __tablename__ = "audit_outcomes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    audit_run_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("audit_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    # Reference only; audit runs never own bookings
    booking_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    action: Mapped[AuditAction] = mapped_column(String(20), nullable=False)
    succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    audit_run: Mapped["AuditRun"] = relationship("AuditRun", back_populates="outcomes")

    def __repr__(self) -> str:
        return (
            f"<AuditOutcome(booking_id={self.booking_id}, action={self.action}, "
            f"succeeded={self.succeeded})>"
        )
