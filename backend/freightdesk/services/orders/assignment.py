"""Dispatch assignment of vehicle, driver and handler to an order.

A vehicle or driver is exclusive to one order at a time while that order is
in an active status. Assignment itself never changes an order's status; the
state machine asks the resolver to re-check availability when the order
enters a status that requires an assignment. That re-check also stamps the
vehicle and driver rows, whose version columns make two orders racing for
the same unit conflict at flush time.

The read side lists the account's dispatchable vehicles and drivers together
with the active orders they are currently on.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.errors import (
    AssignmentLockedError,
    DriverNotFoundError,
    DriverUnavailableError,
    HandlerNotFoundError,
    VehicleNotFoundError,
    VehicleUnavailableError,
)
from freightdesk.core.logging import get_logger
from freightdesk.database.base import utcnow
from freightdesk.database.models.employee import Employee
from freightdesk.database.models.order import Order
from freightdesk.database.models.vehicle import Vehicle, VehicleStatus
from freightdesk.services.orders.repository import OrderRepository
from freightdesk.services.orders.vocabulary import StatusVocabulary

logger = get_logger(__name__)

# Fleet statuses that take a vehicle off the road regardless of orders
GROUNDED_VEHICLE_STATUSES = frozenset(
    {VehicleStatus.MAINTENANCE.value, VehicleStatus.OUT_OF_SERVICE.value}
)


@dataclass(frozen=True)
class Assignment:
    vehicle_id: uuid.UUID
    driver_id: uuid.UUID
    handler_id: Optional[uuid.UUID]
    assigned_at: datetime


@dataclass(frozen=True)
class AvailableVehicle:
    vehicle: Vehicle
    active_orders: Sequence[Order]

    @property
    def is_free(self) -> bool:
        return not self.active_orders


@dataclass(frozen=True)
class AvailableDriver:
    driver: Employee
    active_orders: Sequence[Order]

    @property
    def is_free(self) -> bool:
        return not self.active_orders


class AssignmentResolver:
    """Validates and attaches vehicle/driver/handler assignments."""

    def __init__(
        self,
        session: AsyncSession,
        vocabulary: StatusVocabulary,
        account_id: Optional[str] = None,
    ):
        self.vocabulary = vocabulary
        self.repository = OrderRepository(session, account_id)

    async def assign(
        self,
        order: Order,
        vehicle_id: uuid.UUID,
        driver_id: uuid.UUID,
        handler_id: Optional[uuid.UUID] = None,
    ) -> Assignment:
        """
        Bind a vehicle, a driver and optionally a handler to ``order``.

        The order is modified in the session but not flushed or committed.

        Raises:
            AssignmentLockedError: If the order has already departed
            VehicleNotFoundError / DriverNotFoundError / HandlerNotFoundError
            VehicleUnavailableError / DriverUnavailableError
        """
        self._ensure_assignable(order)

        vehicle = await self._load_vehicle(vehicle_id)
        await self._check_vehicle(vehicle, order)

        driver = await self._load_driver(driver_id)
        await self._check_driver(driver, order)

        if handler_id is not None:
            handler = await self.repository.get_employee(handler_id)
            if handler is None:
                raise HandlerNotFoundError(
                    "Handler not found",
                    handler_id=str(handler_id),
                )

        assignment = Assignment(
            vehicle_id=vehicle.id,
            driver_id=driver.id,
            handler_id=handler_id,
            assigned_at=utcnow(),
        )

        order.vehicle_id = assignment.vehicle_id
        order.driver_id = assignment.driver_id
        order.handler_id = assignment.handler_id
        order.assigned_at = assignment.assigned_at

        logger.info(
            "Order assignment resolved",
            order_id=str(order.id),
            vehicle_id=str(vehicle.id),
            driver_id=str(driver.id),
            handler_id=str(handler_id) if handler_id else None,
        )
        return assignment

    async def ensure_available(self, order: Order) -> None:
        """
        Re-validate and claim the order's current vehicle and driver.

        Used right before an order becomes active, since two pending orders
        may have been given the same truck. Stamping ``last_dispatched_at``
        makes the next flush a versioned UPDATE of the vehicle and driver
        rows; a concurrent claim of either row fails with ``StaleDataError``.
        """
        now = utcnow()
        if order.vehicle_id is not None:
            vehicle = await self._load_vehicle(order.vehicle_id)
            await self._check_vehicle(vehicle, order)
            vehicle.last_dispatched_at = now
        if order.driver_id is not None:
            driver = await self._load_driver(order.driver_id)
            await self._check_driver(driver, order)
            driver.last_dispatched_at = now

    async def available_vehicles(self) -> list[AvailableVehicle]:
        """
        Active, non-grounded vehicles of the account with their active orders.

        Vehicles already on an order are listed too; ``is_free`` tells them
        apart.
        """
        vehicles = await self.repository.list_dispatchable_vehicles(
            GROUNDED_VEHICLE_STATUSES
        )
        busy = await self.repository.active_orders_by(
            Order.vehicle_id,
            [v.id for v in vehicles],
            self._active_labels(),
        )
        return [AvailableVehicle(v, busy.get(v.id, [])) for v in vehicles]

    async def available_drivers(self) -> list[AvailableDriver]:
        """ACTIVE drivers of the account with their active orders."""
        drivers = await self.repository.list_active_drivers()
        busy = await self.repository.active_orders_by(
            Order.driver_id,
            [d.id for d in drivers],
            self._active_labels(),
        )
        return [AvailableDriver(d, busy.get(d.id, [])) for d in drivers]

    def _active_labels(self) -> list[str]:
        return self.vocabulary.stored_labels(self.vocabulary.active_statuses)

    def _ensure_assignable(self, order: Order) -> None:
        current = self.vocabulary.canonical(order.status)
        if current == self.vocabulary.initial_status:
            return
        if self.vocabulary.requires_assignment(current):
            return
        raise AssignmentLockedError(
            f"Assignment cannot change once an order is {current}",
            order_id=str(order.id),
            status=current,
        )

    async def _load_vehicle(self, vehicle_id: uuid.UUID) -> Vehicle:
        vehicle = await self.repository.get_vehicle(vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError(
                "Vehicle not found",
                vehicle_id=str(vehicle_id),
            )
        return vehicle

    async def _load_driver(self, driver_id: uuid.UUID) -> Employee:
        driver = await self.repository.get_employee(driver_id)
        if driver is None:
            raise DriverNotFoundError(
                "Driver not found",
                driver_id=str(driver_id),
            )
        return driver

    async def _check_vehicle(self, vehicle: Vehicle, order: Order) -> None:
        if not vehicle.is_active or vehicle.status in GROUNDED_VEHICLE_STATUSES:
            raise VehicleUnavailableError(
                "Vehicle is not available for dispatch",
                vehicle_id=str(vehicle.id),
                reason="inactive",
                vehicle_status=vehicle.status,
            )

        busy = await self.repository.find_active_order_for_vehicle(
            vehicle.id,
            self._active_labels(),
            exclude_order_id=order.id,
        )
        if busy is not None:
            raise VehicleUnavailableError(
                "Vehicle is already dispatched on another order",
                vehicle_id=str(vehicle.id),
                reason="busy",
                conflicting_order=busy.order_number,
            )

    async def _check_driver(self, driver: Employee, order: Order) -> None:
        if not driver.is_active:
            raise DriverUnavailableError(
                "Driver is not active",
                driver_id=str(driver.id),
                reason="inactive",
                driver_status=driver.status,
            )

        busy = await self.repository.find_active_order_for_driver(
            driver.id,
            self._active_labels(),
            exclude_order_id=order.id,
        )
        if busy is not None:
            raise DriverUnavailableError(
                "Driver is already dispatched on another order",
                driver_id=str(driver.id),
                reason="busy",
                conflicting_order=busy.order_number,
            )
