"""
Tracking event model: the append-only status/location history of an order.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from freightdesk.database.base import Base, UUIDMixin, utcnow


class TrackingEvent(Base, UUIDMixin):
    """
    One entry in an order's tracking ledger.

    Rows are inserted exactly once per successful transition and never
    updated or deleted. ``status`` holds the label as it was recorded, which
    may be a legacy alias of a current vocabulary label. ``sequence`` is the
    per-order insertion counter used to break timestamp ties; the unique
    constraint on ``(order_id, sequence)`` rejects a second writer that read
    the same ledger tail.
    """

    __tablename__ = "tracking_events"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    location: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="uq_tracking_events_order_sequence"),
        Index("ix_tracking_events_order_timestamp", "order_id", "timestamp", "sequence"),
    )
