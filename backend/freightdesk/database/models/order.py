"""
Order (load) model for the dispatch lifecycle.

An order moves through the status vocabulary configured at startup. Status and
priority are stored as plain labels rather than database enums because the
vocabulary is versioned: historical rows may carry labels that have since
been renamed, and adding a label must not require an ALTER TYPE.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from freightdesk.database.base import AccountMixin, BaseModel


class Order(BaseModel, AccountMixin):
    """
    Freight order from pickup to delivery.

    The ``status`` column is a cache of the tracking ledger fold and is only
    written together with a ledger append. ``version`` is the optimistic
    concurrency counter; every flush that modifies the row checks and bumps
    it, so two writers racing on the same order cannot both commit.
    ``account_id`` is copied from the customer when the order is created.
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Human-readable order number",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    customer_load_number: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Customer's own reference for the load",
    )

    # Assignment
    vehicle_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vehicles.id", ondelete="SET NULL"),
        nullable=True,
    )

    driver_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )

    handler_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
        comment="Office employee who took the load",
    )

    assigned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Route
    pickup_address: Mapped[str] = mapped_column(String(500), nullable=False)

    pickup_postal_code: Mapped[str] = mapped_column(String(10), nullable=False)

    delivery_address: Mapped[str] = mapped_column(String(500), nullable=False)

    delivery_postal_code: Mapped[str] = mapped_column(String(10), nullable=False)

    pickup_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    delivery_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Set when the order is delivered",
    )

    miles: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Recorded route distance in miles",
    )

    estimated_duration_minutes: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Current status label, equal to the ledger fold",
    )

    priority: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    # Cargo
    pieces: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    weight: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Weight in pounds",
    )

    load_pay: Mapped[Optional[float]] = mapped_column(
        Numeric(precision=10, scale=2, asdecimal=False),
        nullable=True,
    )

    driver_pay: Mapped[Optional[float]] = mapped_column(
        Numeric(precision=10, scale=2, asdecimal=False),
        nullable=True,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    documents: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Attached document references",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_vehicle_status", "vehicle_id", "status"),
        Index("ix_orders_driver_status", "driver_id", "status"),
        CheckConstraint("pieces IS NULL OR pieces > 0", name="ck_orders_pieces_positive"),
        CheckConstraint("weight IS NULL OR weight > 0", name="ck_orders_weight_positive"),
    )

    @property
    def has_assignment(self) -> bool:
        """Whether both a vehicle and a driver are attached."""
        return self.vehicle_id is not None and self.driver_id is not None
