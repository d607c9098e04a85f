"""Append-only tracking ledger for orders.

The ledger is the source of truth for an order's status: the ``status``
column on ``orders`` is a cache kept equal to ``fold_status`` of the ledger.
Events are ordered by ``(timestamp, sequence)``; appends never move time
backwards, so insertion order and timestamp order agree.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.logging import get_logger
from freightdesk.database.base import as_utc, utcnow
from freightdesk.database.models.tracking_event import TrackingEvent
from freightdesk.services.orders.vocabulary import StatusVocabulary

logger = get_logger(__name__)


@dataclass(frozen=True)
class EventMeta:
    """Where and why a status change happened."""

    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    notes: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def has_coordinate(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def _sort_key(event: TrackingEvent) -> tuple[datetime, int]:
    return as_utc(event.timestamp), event.sequence


def fold_status(events: Sequence[TrackingEvent], vocabulary: StatusVocabulary) -> str:
    """
    Derive the current status from a ledger.

    The status of the last event by ``(timestamp, sequence)`` wins, resolved
    through the vocabulary so legacy labels map to current ones. An empty
    ledger folds to the vocabulary's initial status.

    Raises:
        UnknownStatusError: If the winning event carries an unparseable label
    """
    if not events:
        return vocabulary.initial_status
    last = max(events, key=_sort_key)
    return vocabulary.canonical(last.status)


class TrackingLedger:
    """Read/append access to the ``tracking_events`` table."""

    def __init__(self, session: AsyncSession, vocabulary: StatusVocabulary):
        self.session = session
        self.vocabulary = vocabulary

    async def _tail(self, order_id: uuid.UUID) -> Optional[TrackingEvent]:
        stmt = (
            select(TrackingEvent)
            .where(TrackingEvent.order_id == order_id)
            .order_by(TrackingEvent.sequence.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def append(
        self,
        order_id: uuid.UUID,
        status: str,
        meta: Optional[EventMeta] = None,
    ) -> TrackingEvent:
        """
        Append one event to an order's ledger and flush it.

        The timestamp defaults to now and is clamped so it is never earlier
        than the previous event's; ``sequence`` continues from the tail.
        The caller owns the transaction.
        """
        meta = meta or EventMeta()
        tail = await self._tail(order_id)

        timestamp = as_utc(meta.timestamp) or utcnow()
        sequence = 1
        if tail is not None:
            sequence = tail.sequence + 1
            previous = as_utc(tail.timestamp)
            if timestamp < previous:
                logger.debug(
                    "Clamping tracking event timestamp",
                    order_id=str(order_id),
                    requested=timestamp.isoformat(),
                    previous=previous.isoformat(),
                )
                timestamp = previous

        event = TrackingEvent(
            order_id=order_id,
            sequence=sequence,
            status=status,
            location=meta.location,
            latitude=meta.latitude,
            longitude=meta.longitude,
            notes=meta.notes,
            timestamp=timestamp,
        )
        self.session.add(event)
        await self.session.flush()

        logger.debug(
            "Tracking event appended",
            order_id=str(order_id),
            status=status,
            sequence=sequence,
        )
        return event

    async def history(self, order_id: uuid.UUID) -> list[TrackingEvent]:
        """Full ledger of an order in ``(timestamp, sequence)`` order, read fresh."""
        stmt = (
            select(TrackingEvent)
            .where(TrackingEvent.order_id == order_id)
            .order_by(TrackingEvent.timestamp.asc(), TrackingEvent.sequence.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def latest_status(self, order_id: uuid.UUID) -> str:
        """Current status of an order as derived from its ledger."""
        return fold_status(await self.history(order_id), self.vocabulary)
