"""
Order service orchestrating the dispatch lifecycle.

This module implements the OrderService class: creating orders, assigning
vehicles and drivers, moving orders through the status vocabulary, and
recording route distances. Each public operation is one unit of work: it
either commits all of its changes or rolls back and raises a DispatchError.
Network calls to the mapping provider complete before any row is modified.
"""

import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from freightdesk.core.errors import (
    ConcurrentTransitionError,
    CustomerNotFoundError,
    DispatchError,
    OrderLockedError,
    OrderNotFoundError,
    ProviderError,
)
from freightdesk.core.logging import get_logger
from freightdesk.database.models.order import Order
from freightdesk.database.models.tracking_event import TrackingEvent
from freightdesk.services.maps.distance import DistanceEstimator, DrivingDistance
from freightdesk.services.maps.geocoder import Coordinate, Geocoder
from freightdesk.services.orders.assignment import (
    Assignment,
    AssignmentResolver,
    AvailableDriver,
    AvailableVehicle,
)
from freightdesk.services.orders.ledger import EventMeta, TrackingLedger
from freightdesk.services.orders.repository import OrderRepository
from freightdesk.services.orders.state_machine import OrderStateMachine
from freightdesk.services.orders.vocabulary import StatusVocabulary

logger = get_logger(__name__)


class OrderService:
    """
    Order service orchestrating repository, state machine and maps.

    Attributes:
        repository: Order repository for data access
        ledger: Tracking ledger for the order history
        resolver: Assignment resolver for vehicles and drivers
        state_machine: State machine for order lifecycle management
        geocoder: Optional geocoder for postal codes on status updates
        distance_estimator: Optional estimator for route recording
        account_id: Account the service acts for; None reads every account
    """

    def __init__(
        self,
        session: AsyncSession,
        vocabulary: StatusVocabulary,
        geocoder: Optional[Geocoder] = None,
        distance_estimator: Optional[DistanceEstimator] = None,
        account_id: Optional[str] = None,
    ):
        self.session = session
        self.vocabulary = vocabulary
        self.account_id = account_id
        self.repository = OrderRepository(session, account_id)
        self.ledger = TrackingLedger(session, vocabulary)
        self.resolver = AssignmentResolver(session, vocabulary, account_id)
        self.state_machine = OrderStateMachine(
            session,
            vocabulary,
            availability_check=self.resolver.ensure_available,
        )
        self.geocoder = geocoder
        self.distance_estimator = distance_estimator

    async def create_order(
        self,
        customer_id: uuid.UUID,
        pickup_address: str,
        pickup_postal_code: str,
        delivery_address: str,
        delivery_postal_code: str,
        pickup_date: datetime,
        priority: Optional[str] = None,
        **details: Any,
    ) -> Order:
        """
        Create an order in the vocabulary's initial status.

        No tracking event is written; an empty ledger folds to the initial
        status.

        Args:
            customer_id: Customer the load is hauled for
            pickup_address: Pickup street address
            pickup_postal_code: Pickup postal code
            delivery_address: Delivery street address
            delivery_postal_code: Delivery postal code
            pickup_date: Scheduled pickup
            priority: Priority label, defaults to the vocabulary default
            **details: Optional cargo, pay and reference fields

        Raises:
            UnknownPriorityError: If the priority is not configured
            CustomerNotFoundError: If the customer does not exist
        """
        parsed_priority = self.vocabulary.parse_priority(priority)

        customer = await self.repository.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(
                "Customer not found",
                customer_id=str(customer_id),
            )

        try:
            order = await self.repository.create(
                customer_id=customer_id,
                account_id=customer.account_id,
                pickup_address=pickup_address,
                pickup_postal_code=pickup_postal_code.strip(),
                delivery_address=delivery_address,
                delivery_postal_code=delivery_postal_code.strip(),
                pickup_date=pickup_date,
                status=self.vocabulary.initial_status,
                priority=parsed_priority,
                **details,
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            priority=parsed_priority,
        )
        return order

    async def get_order(self, order_id: uuid.UUID) -> Order:
        """
        Get an order by id.

        Raises:
            OrderNotFoundError: If order not found
        """
        order = await self.repository.get(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))
        return order

    async def list_orders(
        self,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """List orders, optionally filtered by (canonical or legacy) status."""
        labels = self.vocabulary.stored_labels([status]) if status else None
        return await self.repository.list_orders(labels, skip=skip, limit=limit)

    async def assign(
        self,
        order_id: uuid.UUID,
        vehicle_id: uuid.UUID,
        driver_id: uuid.UUID,
        handler_id: Optional[uuid.UUID] = None,
    ) -> tuple[Order, Assignment]:
        """
        Assign vehicle, driver and optional handler. Status is unchanged.

        Raises:
            OrderNotFoundError, AssignmentLockedError, *NotFoundError,
            *UnavailableError, ConcurrentTransitionError
        """
        order = await self.get_order(order_id)
        current = order.status

        try:
            assignment = await self.resolver.assign(order, vehicle_id, driver_id, handler_id)
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            raise ConcurrentTransitionError(
                "Order was modified by another request",
                current_status=current,
                target_status=current,
                order_id=str(order_id),
            ) from e
        except DispatchError as e:
            await self.session.rollback()
            logger.warning(
                "Order assignment rejected",
                order_id=str(order_id),
                error_code=e.code,
                details=e.context,
            )
            raise

        return order, assignment

    async def transition(
        self,
        order_id: uuid.UUID,
        target_status: str,
        location: Optional[str] = None,
        postal_code: Optional[str] = None,
        coordinate: Optional[Coordinate] = None,
        notes: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> tuple[Order, TrackingEvent]:
        """
        Move an order to ``target_status`` and record one tracking event.

        A postal code is geocoded before anything is written; an explicit
        coordinate is used as given. If another request changes the order
        between read and commit, the whole unit of work rolls back and
        ``ConcurrentTransitionError`` is raised.

        Raises:
            OrderNotFoundError, UnknownStatusError, InvalidTransitionError,
            MissingAssignmentError, *UnavailableError, GeocodeNotFoundError,
            ProviderError, ConcurrentTransitionError
        """
        order = await self.get_order(order_id)
        current = order.status

        # Reject impossible requests before spending a provider call on them.
        target = self.state_machine.validate_transition(order, target_status)

        if self.vocabulary.requires_assignment(target):
            location = location or order.pickup_address
            notes = notes or await self._assignment_note(order)

        if postal_code and coordinate is None:
            if self.geocoder is None:
                raise ProviderError(
                    "Geocoding is not configured",
                    postal_code=postal_code,
                )
            coordinate = await self.geocoder.resolve(postal_code)
            location = location or postal_code.strip()

        meta = EventMeta(
            location=location,
            latitude=coordinate.latitude if coordinate else None,
            longitude=coordinate.longitude if coordinate else None,
            notes=notes,
            timestamp=timestamp,
        )

        try:
            event = await self.state_machine.transition(order, target_status, meta)
            await self.session.commit()
        except (StaleDataError, IntegrityError) as e:
            await self.session.rollback()
            logger.warning(
                "Concurrent transition detected",
                order_id=str(order_id),
                current_status=current,
                target_status=target_status,
            )
            raise ConcurrentTransitionError(
                "Order was modified by another request",
                current_status=current,
                target_status=target_status,
                order_id=str(order_id),
            ) from e
        except DispatchError as e:
            await self.session.rollback()
            logger.warning(
                "Order transition rejected",
                order_id=str(order_id),
                error_code=e.code,
                details=e.context,
            )
            raise

        return order, event

    async def update_priority(self, order_id: uuid.UUID, priority: str) -> Order:
        """
        Change an order's priority.

        Raises:
            OrderNotFoundError, UnknownPriorityError, OrderLockedError
        """
        order = await self.get_order(order_id)
        parsed = self.vocabulary.parse_priority(priority)
        self._ensure_editable(order)

        previous = order.priority
        order.priority = parsed
        await self._commit_edit(order, order_id)

        logger.info(
            "Order priority updated",
            order_id=str(order_id),
            previous=previous,
            priority=parsed,
        )
        return order

    async def record_route(self, order_id: uuid.UUID) -> tuple[Order, DrivingDistance]:
        """
        Compute the driving route between pickup and delivery and store it.

        Raises:
            OrderNotFoundError, OrderLockedError, RouteError, ProviderError
        """
        order = await self.get_order(order_id)
        self._ensure_editable(order)

        if self.distance_estimator is None:
            raise ProviderError("Routing is not configured", order_id=str(order_id))

        route = await self.distance_estimator.driving_distance(
            order.pickup_postal_code, order.delivery_postal_code
        )

        order.miles = route.miles
        order.estimated_duration_minutes = route.duration_minutes
        await self._commit_edit(order, order_id)

        return order, route

    async def tracking(self, order_id: uuid.UUID) -> list[TrackingEvent]:
        """
        Ordered tracking history of an order.

        Raises:
            OrderNotFoundError: If order not found
        """
        await self.get_order(order_id)
        return await self.ledger.history(order_id)

    async def current_status(self, order_id: uuid.UUID) -> str:
        """Status derived from the ledger, independent of the cached column."""
        await self.get_order(order_id)
        return await self.ledger.latest_status(order_id)

    async def available_vehicles(self) -> list[AvailableVehicle]:
        return await self.resolver.available_vehicles()

    async def available_drivers(self) -> list[AvailableDriver]:
        return await self.resolver.available_drivers()

    async def _assignment_note(self, order: Order) -> str:
        vehicle = await self.repository.get_vehicle(order.vehicle_id)
        driver = await self.repository.get_employee(order.driver_id)
        vehicle_name = vehicle.display_name if vehicle else str(order.vehicle_id)
        driver_name = driver.full_name if driver else str(order.driver_id)
        return f"Order assigned to vehicle {vehicle_name} with driver {driver_name}"

    def _ensure_editable(self, order: Order) -> None:
        if self.vocabulary.is_terminal(order.status):
            raise OrderLockedError(
                "Order is closed and can no longer be edited",
                order_id=str(order.id),
                status=self.vocabulary.canonical(order.status),
            )

    async def _commit_edit(self, order: Order, order_id: uuid.UUID) -> None:
        current = order.status
        try:
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            raise ConcurrentTransitionError(
                "Order was modified by another request",
                current_status=current,
                target_status=current,
                order_id=str(order_id),
            ) from e


async def check_status_compatibility(
    session: AsyncSession, vocabulary: StatusVocabulary
) -> list[str]:
    """
    Compare stored status labels with the active vocabulary.

    Returns:
        Labels present in storage that the vocabulary cannot parse
    """
    stored = await OrderRepository(session).distinct_statuses()
    unknown = vocabulary.unknown_labels(stored)

    if unknown:
        logger.warning(
            "Stored statuses not covered by vocabulary",
            vocabulary_version=vocabulary.version,
            unknown_labels=unknown,
        )
    else:
        logger.info(
            "Stored statuses compatible with vocabulary",
            vocabulary_version=vocabulary.version,
            label_count=len(stored),
        )
    return unknown
