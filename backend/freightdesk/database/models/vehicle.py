"""
Vehicle (truck / power unit) model.

Vehicles are created and edited by the fleet screens; the dispatch core reads
them to decide whether a unit may take an order.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, true
from sqlalchemy.orm import Mapped, mapped_column

from freightdesk.database.base import AccountMixin, BaseModel


class VehicleStatus(str, Enum):
    """Fleet-maintained operational status of a vehicle."""

    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class Vehicle(BaseModel, AccountMixin):
    """
    Power unit that can be assigned to an order.

    ``is_active`` is the dispatchability flag checked by the assignment
    resolver; ``status`` is fleet state. ``version`` is bumped each time the
    unit is dispatched so two orders cannot claim it concurrently.
    """

    __tablename__ = "vehicles"

    unit_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Fleet unit number painted on the truck",
    )

    make: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    license_plate: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        unique=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        comment="Whether the vehicle may be dispatched",
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=VehicleStatus.AVAILABLE.value,
        comment="Fleet status label",
    )

    last_dispatched_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the unit last became active on an order",
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_vehicles_unit_number", "unit_number"),
    )

    @property
    def display_name(self) -> str:
        """Unit label used in tracking-event notes."""
        parts = [p for p in (self.make, self.model) if p]
        label = " ".join(parts) if parts else "Unit"
        if self.license_plate:
            return f"{label} ({self.license_plate})"
        return f"{label} #{self.unit_number}"
