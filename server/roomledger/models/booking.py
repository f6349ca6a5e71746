"""Booking and booking log model definitions."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.calendar import StayRange
from ..core.database import Base


class BookingState(str, Enum):
    """Booking lifecycle states."""
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


TERMINAL_STATES = frozenset({BookingState.CHECKED_OUT, BookingState.CANCELLED, BookingState.NO_SHOW})

# States whose nights are counted in the inventory reserved counter
INVENTORY_HOLDING_STATES = frozenset({BookingState.DRAFT, BookingState.CONFIRMED, BookingState.CHECKED_IN})


class BookingSource(str, Enum):
    """Where a reservation request came from."""
    DIRECT = "direct"
    WEBSITE = "website"
    PHONE = "phone"
    WALK_IN = "walk_in"
    CHANNEL = "channel"


class Booking(Base):
    """Booking entity holding one room of a room type for a range of nights."""

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True, index=True)

    # Opaque external references
    guest_ref: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    room_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    folio_ref: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default=BookingSource.DIRECT.value)

    arrival: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    departure: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    state: Mapped[BookingState] = mapped_column(String(20), nullable=False, default=BookingState.DRAFT, index=True)

    # Captured once at confirmation, never changed afterwards
    rate_snapshot: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    checked_out_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency counter, bumped by SQLAlchemy on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("arrival < departure", name="ck_booking_arrival_before_departure"),
        CheckConstraint("length(guest_ref) > 0", name="ck_booking_guest_ref_not_empty"),
        CheckConstraint("length(room_type) > 0", name="ck_booking_room_type_not_empty"),
        Index("ix_bookings_state_arrival", "state", "arrival"),
        Index("ix_bookings_state_departure", "state", "departure"),
    )

    @property
    def stay(self) -> StayRange:
        return StayRange(self.arrival, self.departure)

    @property
    def is_terminal(self) -> bool:
        return BookingState(self.state) in TERMINAL_STATES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, code='{self.code}', room_type='{self.room_type}', "
            f"stay={self.arrival}..{self.departure}, state={self.state}, version={self.version})>"
        )


class BookingLog(Base):
    """Append-only history of booking state transitions."""

    __tablename__ = "booking_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id"),
        nullable=False,
        index=True
    )

    action: Mapped[str] = mapped_column(String(32), nullable=False)
    from_state: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    to_state: Mapped[str] = mapped_column(String(20), nullable=False)
    business_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    # Booking version this entry produced
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<BookingLog(booking_id={self.booking_id}, action='{self.action}', "
            f"{self.from_state}->{self.to_state})>"
        )
