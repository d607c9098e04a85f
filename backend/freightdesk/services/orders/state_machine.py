"""Order state machine implementation with transition validation.

This module implements the OrderStateMachine class for moving an order
between statuses of the active vocabulary. Each successful transition
appends exactly one tracking event, updates the cached ``status`` column and
applies the side effects attached to the target status through its tags.
"""

from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.errors import InvalidTransitionError, MissingAssignmentError
from freightdesk.core.logging import get_logger
from freightdesk.database.base import as_utc
from freightdesk.database.models.order import Order
from freightdesk.database.models.tracking_event import TrackingEvent
from freightdesk.services.orders.ledger import EventMeta, TrackingLedger
from freightdesk.services.orders.vocabulary import StatusTag, StatusVocabulary

logger = get_logger(__name__)

AvailabilityCheck = Callable[[Order], Awaitable[None]]


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    Guards and side effects are keyed by status tag rather than by status
    name, so a vocabulary that renames or adds statuses keeps the same
    behaviour as long as it tags them.
    """

    def __init__(
        self,
        session: AsyncSession,
        vocabulary: StatusVocabulary,
        availability_check: Optional[AvailabilityCheck] = None,
    ):
        """Initialize state machine.

        Args:
            session: Async database session owning the transaction
            vocabulary: Active status vocabulary
            availability_check: Re-validates vehicle and driver before an
                order enters a status that requires an assignment
        """
        self.session = session
        self.vocabulary = vocabulary
        self.ledger = TrackingLedger(session, vocabulary)
        self.availability_check = availability_check

        self._transition_guards: dict[StatusTag, Callable[[Order], None]] = {
            StatusTag.REQUIRES_ASSIGNMENT: self._guard_assignment_present,
        }
        self._side_effects: dict[
            StatusTag, Callable[[Order, TrackingEvent], None]
        ] = {
            StatusTag.MARKS_DELIVERY: self._effect_delivered,
            StatusTag.CANCELS: self._effect_cancelled,
        }

    def validate_transition(self, order: Order, target_status: str) -> str:
        """Validate that ``order`` may move to ``target_status``.

        Args:
            order: Order to validate
            target_status: Requested status label, possibly a legacy alias

        Returns:
            Canonical target status

        Raises:
            UnknownStatusError: If the target label is not in the vocabulary
            InvalidTransitionError: If the target is not reachable
            MissingAssignmentError: If the target needs a vehicle and driver
        """
        target = self.vocabulary.canonical(target_status)
        current = self.vocabulary.canonical(order.status)

        if target not in self.vocabulary.allowed_transitions(current):
            allowed = sorted(self.vocabulary.allowed_transitions(current))
            raise InvalidTransitionError(
                f"Invalid transition from {current} to {target}",
                current_status=current,
                target_status=target,
                order_id=str(order.id),
                allowed_transitions=allowed,
            )

        definition = self.vocabulary.definition(target)
        for tag in definition.tags:
            guard = self._transition_guards.get(tag)
            if guard is not None:
                guard(order)

        return target

    async def transition(
        self,
        order: Order,
        target_status: str,
        meta: Optional[EventMeta] = None,
    ) -> TrackingEvent:
        """Apply a transition and record it in the ledger.

        Nothing is committed here; the caller commits or rolls back. The
        final flush checks the order's version column, so a concurrent
        writer surfaces as ``StaleDataError`` from SQLAlchemy.

        Returns:
            The tracking event appended for this transition
        """
        target = self.validate_transition(order, target_status)
        previous = self.vocabulary.canonical(order.status)

        if self.availability_check is not None and self.vocabulary.requires_assignment(target):
            await self.availability_check(order)

        event = await self.ledger.append(order.id, target, meta)
        order.status = target

        for tag in self.vocabulary.definition(target).tags:
            effect = self._side_effects.get(tag)
            if effect is not None:
                effect(order, event)

        await self.session.flush()

        logger.info(
            "State transition applied",
            order_id=str(order.id),
            transition=f"{previous}->{target}",
            sequence=event.sequence,
        )
        return event

    def get_allowed_transitions(self, order: Order) -> frozenset[str]:
        """Statuses reachable from the order's current status."""
        return self.vocabulary.allowed_transitions(order.status)

    def can_cancel(self, order: Order) -> bool:
        """Whether any cancelling status is reachable from the current one."""
        return any(
            self.vocabulary.has_tag(status, StatusTag.CANCELS)
            for status in self.get_allowed_transitions(order)
        )

    # Transition Guards

    def _guard_assignment_present(self, order: Order) -> None:
        if order.vehicle_id is None or order.driver_id is None:
            missing = [
                name
                for name, value in (("vehicle", order.vehicle_id), ("driver", order.driver_id))
                if value is None
            ]
            raise MissingAssignmentError(
                "Order must have a vehicle and driver assigned",
                order_id=str(order.id),
                missing=missing,
            )

    # Side Effects

    def _effect_delivered(self, order: Order, event: TrackingEvent) -> None:
        if order.delivery_date is None:
            order.delivery_date = as_utc(event.timestamp)
        logger.info(
            "Order delivered",
            order_id=str(order.id),
            delivery_date=as_utc(order.delivery_date).isoformat(),
        )

    def _effect_cancelled(self, order: Order, event: TrackingEvent) -> None:
        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            had_assignment=order.has_assignment,
        )


def get_order_state_machine(
    session: AsyncSession,
    vocabulary: StatusVocabulary,
    availability_check: Optional[AvailabilityCheck] = None,
) -> OrderStateMachine:
    """Factory function to create OrderStateMachine instance."""
    return OrderStateMachine(session, vocabulary, availability_check)
