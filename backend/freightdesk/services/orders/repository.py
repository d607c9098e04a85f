"""
Order data access repository.

This module implements the OrderRepository class providing async queries for
orders and the collaborator records (customers, vehicles, employees) the
dispatch core reads. When built with an ``account_id`` every read is restricted
to records owned by that account; records of other accounts behave as if they
did not exist. Writes go through the session the repository was given;
committing is left to the service layer.
"""

import time
import uuid
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import and_, func, select, union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.errors import DispatchError
from freightdesk.core.logging import get_logger
from freightdesk.database.models.customer import Customer
from freightdesk.database.models.employee import Employee, EmployeeStatus
from freightdesk.database.models.order import Order
from freightdesk.database.models.tracking_event import TrackingEvent
from freightdesk.database.models.vehicle import Vehicle

logger = get_logger(__name__)

# Sequential numbers tried before falling back to a timestamp-based number
MAX_ORDER_NUMBER_ATTEMPTS = 5
FALLBACK_ORDER_NUMBER_PREFIX = "ORD-"


class OrderRepositoryError(DispatchError):
    """Raised when an order query fails at the database layer."""


class OrderRepository:
    """
    Repository for order data access operations.

    Provides async methods for creating and reading orders and for the
    availability queries used by the assignment resolver.
    """

    def __init__(self, session: AsyncSession, account_id: Optional[str] = None):
        """
        Initialize order repository.

        Args:
            session: Async database session
            account_id: Owning account to scope reads to, or None for all
        """
        self.session = session
        self.account_id = account_id

    def _owns(self, record: Any) -> bool:
        return self.account_id is None or record.account_id == self.account_id

    def _account_filter(self, model: Any) -> list[Any]:
        if self.account_id is None:
            return []
        return [model.account_id == self.account_id]

    async def create(self, **fields: Any) -> Order:
        """
        Insert a new order with a freshly generated order number.

        Args:
            **fields: Order column values; ``order_number`` is generated

        Returns:
            Flushed order with its id populated
        """
        order_number = await self.generate_order_number()
        order = Order(order_number=order_number, **fields)
        self.session.add(order)
        await self.session.flush()

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order_number,
        )
        return order

    async def generate_order_number(self) -> str:
        """
        Next sequential order number.

        Numbers are decimal strings ("1", "2", ...). If the next candidates
        are already taken, a timestamp-based ``ORD-<epoch-ms>`` number is
        used instead.
        """
        stmt = (
            select(Order.order_number)
            .where(~Order.order_number.like(f"{FALLBACK_ORDER_NUMBER_PREFIX}%"))
            .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        last = result.scalar_one_or_none()

        try:
            next_number = int(last) + 1 if last else 1
        except ValueError:
            logger.warning("Non-numeric order number found", order_number=last)
            next_number = 1

        for offset in range(MAX_ORDER_NUMBER_ATTEMPTS):
            candidate = str(next_number + offset)
            if not await self.order_number_exists(candidate):
                return candidate

        fallback = f"{FALLBACK_ORDER_NUMBER_PREFIX}{int(time.time() * 1000)}"
        logger.warning(
            "Sequential order numbers exhausted, using fallback",
            last=last,
            order_number=fallback,
        )
        return fallback

    async def order_number_exists(self, order_number: str) -> bool:
        stmt = select(func.count()).select_from(Order).where(
            Order.order_number == order_number
        )
        result = await self.session.execute(stmt)
        return result.scalar_one() > 0

    async def get(self, order_id: uuid.UUID) -> Optional[Order]:
        """
        Get order by ID.

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            order = await self.session.get(Order, order_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            ) from e

        if order is None or not self._owns(order):
            return None
        return order

    async def list_orders(
        self,
        status_labels: Optional[Sequence[str]] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders, newest first, with pagination.

        Args:
            status_labels: Stored labels to match, including legacy aliases
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count)
        """
        conditions = self._account_filter(Order)
        if status_labels:
            conditions.append(Order.status.in_(list(status_labels)))

        stmt = (
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Order).where(*conditions)

        result = await self.session.execute(stmt)
        count_result = await self.session.execute(count_stmt)

        orders = result.scalars().all()
        total_count = count_result.scalar_one()

        logger.debug(
            "Orders fetched",
            count=len(orders),
            total=total_count,
            skip=skip,
            limit=limit,
        )
        return orders, total_count

    async def find_active_order_for_vehicle(
        self,
        vehicle_id: uuid.UUID,
        active_labels: Iterable[str],
        exclude_order_id: Optional[uuid.UUID] = None,
    ) -> Optional[Order]:
        """Another order holding this vehicle in an active status, if any."""
        return await self._find_active(
            Order.vehicle_id == vehicle_id, active_labels, exclude_order_id
        )

    async def find_active_order_for_driver(
        self,
        driver_id: uuid.UUID,
        active_labels: Iterable[str],
        exclude_order_id: Optional[uuid.UUID] = None,
    ) -> Optional[Order]:
        """Another order driven by this employee in an active status, if any."""
        return await self._find_active(
            Order.driver_id == driver_id, active_labels, exclude_order_id
        )

    async def _find_active(
        self,
        criterion: Any,
        active_labels: Iterable[str],
        exclude_order_id: Optional[uuid.UUID],
    ) -> Optional[Order]:
        conditions = [criterion, Order.status.in_(list(active_labels))]
        if exclude_order_id is not None:
            conditions.append(Order.id != exclude_order_id)

        stmt = select(Order).where(and_(*conditions)).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def active_orders_by(
        self,
        column: Any,
        ids: Sequence[uuid.UUID],
        active_labels: Iterable[str],
    ) -> dict[uuid.UUID, list[Order]]:
        """Active orders grouped by ``column`` (vehicle_id or driver_id)."""
        if not ids:
            return {}

        stmt = (
            select(Order)
            .where(column.in_(list(ids)), Order.status.in_(list(active_labels)))
            .order_by(Order.pickup_date)
        )
        result = await self.session.execute(stmt)

        grouped: dict[uuid.UUID, list[Order]] = {}
        for order in result.scalars().all():
            grouped.setdefault(getattr(order, column.key), []).append(order)
        return grouped

    async def distinct_statuses(self) -> set[str]:
        """Every status label present in orders or tracking events."""
        stmt = union(
            select(Order.status).distinct(),
            select(TrackingEvent.status).distinct(),
        )
        result = await self.session.execute(stmt)
        return {row[0] for row in result.all()}

    # Collaborator records

    async def get_customer(self, customer_id: uuid.UUID) -> Optional[Customer]:
        return await self._get_owned(Customer, customer_id)

    async def get_vehicle(self, vehicle_id: uuid.UUID) -> Optional[Vehicle]:
        return await self._get_owned(Vehicle, vehicle_id)

    async def get_employee(self, employee_id: uuid.UUID) -> Optional[Employee]:
        return await self._get_owned(Employee, employee_id)

    async def _get_owned(self, model: Any, record_id: uuid.UUID) -> Optional[Any]:
        record = await self.session.get(model, record_id)
        if record is None or not self._owns(record):
            return None
        return record

    async def list_dispatchable_vehicles(
        self, excluded_statuses: Iterable[str]
    ) -> Sequence[Vehicle]:
        """Active vehicles of the account whose fleet status is not excluded."""
        stmt = (
            select(Vehicle)
            .where(
                *self._account_filter(Vehicle),
                Vehicle.is_active.is_(True),
                Vehicle.status.not_in(list(excluded_statuses)),
            )
            .order_by(Vehicle.unit_number)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_active_drivers(self) -> Sequence[Employee]:
        """ACTIVE employees of the account whose position is a driver role."""
        stmt = (
            select(Employee)
            .where(
                *self._account_filter(Employee),
                Employee.status == EmployeeStatus.ACTIVE.value,
                Employee.position.ilike("%driver%"),
            )
            .order_by(Employee.first_name, Employee.last_name)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
