"""
Tests for the dispatch assignment resolver.
"""

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from freightdesk.core.errors import (
    AssignmentLockedError,
    DriverNotFoundError,
    DriverUnavailableError,
    HandlerNotFoundError,
    VehicleNotFoundError,
    VehicleUnavailableError,
)
from freightdesk.database.models import Customer, Employee, Order, Vehicle
from freightdesk.services.orders.assignment import AssignmentResolver
from freightdesk.services.orders.vocabulary import StatusVocabulary


@pytest.fixture
def resolver(
    db_session: AsyncSession, vocabulary: StatusVocabulary, customer: Customer
) -> AssignmentResolver:
    return AssignmentResolver(db_session, vocabulary, account_id=customer.account_id)


async def _set_status(session: AsyncSession, order: Order, status: str, **fields) -> None:
    order.status = status
    for name, value in fields.items():
        setattr(order, name, value)
    await session.commit()


class TestAssign:
    """Binding vehicles, drivers and handlers to orders."""

    async def test_assign_sets_fields(
        self,
        resolver: AssignmentResolver,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
        handler: Employee,
    ) -> None:
        """Test a valid assignment is written onto the order."""
        assignment = await resolver.assign(pending_order, vehicle.id, driver.id, handler.id)

        assert pending_order.vehicle_id == vehicle.id
        assert pending_order.driver_id == driver.id
        assert pending_order.handler_id == handler.id
        assert pending_order.assigned_at == assignment.assigned_at
        assert pending_order.status == "PENDING"

    async def test_unknown_vehicle(
        self, resolver: AssignmentResolver, pending_order: Order, driver: Employee
    ) -> None:
        with pytest.raises(VehicleNotFoundError) as exc_info:
            await resolver.assign(pending_order, uuid4(), driver.id)

        assert exc_info.value.status_code == 404
        assert pending_order.vehicle_id is None

    async def test_unknown_driver(
        self, resolver: AssignmentResolver, pending_order: Order, vehicle: Vehicle
    ) -> None:
        with pytest.raises(DriverNotFoundError):
            await resolver.assign(pending_order, vehicle.id, uuid4())

    async def test_unknown_handler(
        self,
        resolver: AssignmentResolver,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        with pytest.raises(HandlerNotFoundError):
            await resolver.assign(pending_order, vehicle.id, driver.id, uuid4())

        assert pending_order.vehicle_id is None

    async def test_inactive_vehicle(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        """Test a deactivated vehicle cannot be dispatched."""
        vehicle.is_active = False
        await db_session.commit()

        with pytest.raises(VehicleUnavailableError) as exc_info:
            await resolver.assign(pending_order, vehicle.id, driver.id)

        assert exc_info.value.context["reason"] == "inactive"

    async def test_grounded_vehicle(
        self,
        resolver: AssignmentResolver,
        pending_order: Order,
        grounded_vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        """Test a vehicle in maintenance cannot be dispatched."""
        with pytest.raises(VehicleUnavailableError) as exc_info:
            await resolver.assign(pending_order, grounded_vehicle.id, driver.id)

        assert exc_info.value.context["vehicle_status"] == "MAINTENANCE"

    async def test_inactive_driver(
        self,
        resolver: AssignmentResolver,
        pending_order: Order,
        vehicle: Vehicle,
        inactive_driver: Employee,
    ) -> None:
        with pytest.raises(DriverUnavailableError) as exc_info:
            await resolver.assign(pending_order, vehicle.id, inactive_driver.id)

        assert exc_info.value.context["driver_status"] == "ON_LEAVE"

    async def test_vehicle_busy_on_order_in_transit(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        make_order,
        vehicle: Vehicle,
        driver: Employee,
        second_driver: Employee,
    ) -> None:
        """Test a vehicle already rolling on another order is unavailable."""
        busy_order = await make_order()
        await _set_status(
            db_session, busy_order, "IN_TRANSIT", vehicle_id=vehicle.id, driver_id=driver.id
        )
        new_order = await make_order()

        with pytest.raises(VehicleUnavailableError) as exc_info:
            await resolver.assign(new_order, vehicle.id, second_driver.id)

        assert exc_info.value.context["reason"] == "busy"
        assert exc_info.value.context["conflicting_order"] == busy_order.order_number

    async def test_vehicle_busy_under_legacy_label(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        make_order,
        vehicle: Vehicle,
        driver: Employee,
        second_driver: Employee,
    ) -> None:
        """Test rows stored with a legacy active label still hold the vehicle."""
        busy_order = await make_order()
        await _set_status(
            db_session, busy_order, "IN_PROGRESS", vehicle_id=vehicle.id, driver_id=driver.id
        )
        new_order = await make_order()

        with pytest.raises(VehicleUnavailableError):
            await resolver.assign(new_order, vehicle.id, second_driver.id)

    async def test_driver_busy(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        make_order,
        vehicle: Vehicle,
        second_vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        busy_order = await make_order()
        await _set_status(
            db_session, busy_order, "ASSIGNED", vehicle_id=vehicle.id, driver_id=driver.id
        )
        new_order = await make_order()

        with pytest.raises(DriverUnavailableError):
            await resolver.assign(new_order, second_vehicle.id, driver.id)

    async def test_vehicle_on_pending_or_closed_order_is_free(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        make_order,
        vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        """Test only active orders hold a vehicle."""
        pending = await make_order()
        await _set_status(db_session, pending, "PENDING", vehicle_id=vehicle.id, driver_id=driver.id)
        delivered = await make_order()
        await _set_status(
            db_session, delivered, "DELIVERED", vehicle_id=vehicle.id, driver_id=driver.id
        )
        new_order = await make_order()

        await resolver.assign(new_order, vehicle.id, driver.id)

        assert new_order.vehicle_id == vehicle.id

    async def test_reassign_while_assigned(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        pending_order: Order,
        vehicle: Vehicle,
        second_vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        """Test an assigned order may swap trucks and is not blocked by itself."""
        await _set_status(
            db_session, pending_order, "ASSIGNED", vehicle_id=vehicle.id, driver_id=driver.id
        )

        await resolver.assign(pending_order, second_vehicle.id, driver.id)

        assert pending_order.vehicle_id == second_vehicle.id

    @pytest.mark.parametrize("status", ["IN_TRANSIT", "DELIVERED", "CANCELLED"])
    async def test_assignment_locked_after_departure(
        self,
        status: str,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        await _set_status(db_session, pending_order, status)

        with pytest.raises(AssignmentLockedError) as exc_info:
            await resolver.assign(pending_order, vehicle.id, driver.id)

        assert exc_info.value.status_code == 409


class TestEnsureAvailable:
    """Re-validation right before an order becomes active."""

    async def test_detects_double_booking(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        make_order,
        vehicle: Vehicle,
        driver: Employee,
        second_driver: Employee,
    ) -> None:
        """Test two pending orders given the same truck cannot both go active."""
        first = await make_order()
        second = await make_order()
        await resolver.assign(first, vehicle.id, driver.id)
        await resolver.assign(second, vehicle.id, second_driver.id)
        await _set_status(db_session, first, "ASSIGNED")

        with pytest.raises(VehicleUnavailableError):
            await resolver.ensure_available(second)

    async def test_passes_for_free_assignment(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        await resolver.assign(pending_order, vehicle.id, driver.id)
        await db_session.commit()

        await resolver.ensure_available(pending_order)

    async def test_claims_vehicle_and_driver(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        """Test the re-check stamps both rows so their versions move on commit."""
        await resolver.assign(pending_order, vehicle.id, driver.id)
        await db_session.commit()

        await resolver.ensure_available(pending_order)
        await db_session.commit()

        assert vehicle.last_dispatched_at is not None
        assert driver.last_dispatched_at == vehicle.last_dispatched_at
        assert vehicle.version == 2
        assert driver.version == 2


class TestAccountScope:
    """Vehicles and employees of other accounts cannot be assigned."""

    async def test_foreign_vehicle(
        self,
        resolver: AssignmentResolver,
        pending_order: Order,
        foreign_vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        with pytest.raises(VehicleNotFoundError):
            await resolver.assign(pending_order, foreign_vehicle.id, driver.id)

        assert pending_order.vehicle_id is None

    async def test_foreign_driver(
        self,
        resolver: AssignmentResolver,
        pending_order: Order,
        vehicle: Vehicle,
        foreign_driver: Employee,
    ) -> None:
        with pytest.raises(DriverNotFoundError):
            await resolver.assign(pending_order, vehicle.id, foreign_driver.id)

    async def test_foreign_handler(
        self,
        resolver: AssignmentResolver,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
        foreign_driver: Employee,
    ) -> None:
        with pytest.raises(HandlerNotFoundError):
            await resolver.assign(pending_order, vehicle.id, driver.id, foreign_driver.id)


class TestAvailability:
    """Dispatch board listings of vehicles and drivers."""

    async def test_available_vehicles(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        vehicle: Vehicle,
        second_vehicle: Vehicle,
        grounded_vehicle: Vehicle,
        foreign_vehicle: Vehicle,
    ) -> None:
        """Test grounded, deactivated and foreign vehicles are left out."""
        second_vehicle.is_active = False
        await db_session.commit()

        entries = await resolver.available_vehicles()

        assert [e.vehicle.unit_number for e in entries] == ["101"]
        assert entries[0].is_free
        assert entries[0].active_orders == []

    async def test_vehicle_on_active_order_is_listed_busy(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        make_order,
        vehicle: Vehicle,
        second_vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        busy_order = await make_order()
        await _set_status(
            db_session, busy_order, "IN_TRANSIT", vehicle_id=vehicle.id, driver_id=driver.id
        )
        pending = await make_order()
        await _set_status(db_session, pending, "PENDING", vehicle_id=second_vehicle.id)

        entries = {e.vehicle.unit_number: e for e in await resolver.available_vehicles()}

        assert not entries["101"].is_free
        assert [o.id for o in entries["101"].active_orders] == [busy_order.id]
        assert entries["102"].is_free

    async def test_legacy_label_counts_as_active(
        self,
        resolver: AssignmentResolver,
        db_session: AsyncSession,
        pending_order: Order,
        vehicle: Vehicle,
        driver: Employee,
    ) -> None:
        await _set_status(
            db_session, pending_order, "IN_PROGRESS", vehicle_id=vehicle.id, driver_id=driver.id
        )

        [entry] = await resolver.available_drivers()

        assert entry.driver.id == driver.id
        assert not entry.is_free

    async def test_available_drivers(
        self,
        resolver: AssignmentResolver,
        driver: Employee,
        second_driver: Employee,
        inactive_driver: Employee,
        handler: Employee,
        foreign_driver: Employee,
    ) -> None:
        """Test only ACTIVE drivers of the account are listed, by name."""
        entries = await resolver.available_drivers()

        assert [e.driver.full_name for e in entries] == ["Dana Reyes", "Sam Okafor"]
        assert all(e.is_free for e in entries)

    async def test_unscoped_resolver_sees_every_account(
        self,
        db_session: AsyncSession,
        vocabulary: StatusVocabulary,
        vehicle: Vehicle,
        foreign_vehicle: Vehicle,
    ) -> None:
        entries = await AssignmentResolver(db_session, vocabulary).available_vehicles()

        assert {e.vehicle.unit_number for e in entries} == {"101", "901"}
