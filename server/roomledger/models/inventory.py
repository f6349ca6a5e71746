"""Inventory cell and inventory adjustment model definitions."""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class InventoryCell(Base):
    """Capacity and counters of one room type on one calendar date."""

    __tablename__ = "inventory_cells"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    room_type: Mapped[str] = mapped_column(String(64), nullable=False)
    night: Mapped[date] = mapped_column(Date, nullable=False)

    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blocked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stop_sell: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("room_type", "night", name="uq_inventory_cell_room_type_night"),
        CheckConstraint("total >= 0", name="ck_inventory_cell_total_non_negative"),
        CheckConstraint("reserved >= 0", name="ck_inventory_cell_reserved_non_negative"),
        CheckConstraint("blocked >= 0", name="ck_inventory_cell_blocked_non_negative"),
        CheckConstraint("reserved + blocked <= total", name="ck_inventory_cell_held_lte_total"),
    )

    @property
    def available(self) -> int:
        """Rooms still sellable on this date."""
        if self.stop_sell:
            return 0
        return self.total - self.reserved - self.blocked

    def __repr__(self) -> str:
        return (
            f"<InventoryCell(room_type='{self.room_type}', night={self.night}, "
            f"total={self.total}, reserved={self.reserved}, blocked={self.blocked})>"
        )


class AdjustmentKind(str, Enum):
    """Kinds of administrative inventory change."""
    SEED = "SEED"
    ADJUST = "ADJUST"
    BLOCK = "BLOCK"
    UNBLOCK = "UNBLOCK"
    STOP_SELL = "STOP_SELL"
    RESUME_SELL = "RESUME_SELL"


class InventoryAdjustment(Base):
    """Audit trail of administrative inventory changes."""

    __tablename__ = "inventory_adjustments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    room_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    kind: Mapped[AdjustmentKind] = mapped_column(String(20), nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_inventory_adjustment_range"),
        CheckConstraint("length(actor) > 0", name="ck_inventory_adjustment_actor_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryAdjustment(id={self.id}, room_type='{self.room_type}', kind={self.kind}, "
            f"range={self.start_date}..{self.end_date}, delta={self.delta}, actor='{self.actor}')>"
        )
