"""
Dispatch board API endpoints.

Lists the caller's vehicles and drivers that can take a load, each with the
active orders it is currently on.
"""

from fastapi import APIRouter

from freightdesk.api.deps import CurrentIdentity, OrderServiceDep
from freightdesk.schemas.dispatch import (
    ActiveOrderSummary,
    AvailableDriverResponse,
    AvailableDriversResponse,
    AvailableVehicleResponse,
    AvailableVehiclesResponse,
)

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@router.get(
    "/vehicles/available",
    response_model=AvailableVehiclesResponse,
    summary="List dispatchable vehicles",
)
async def list_available_vehicles(
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> AvailableVehiclesResponse:
    """Active vehicles not in the shop or out of service."""
    entries = await service.available_vehicles()
    return AvailableVehiclesResponse(
        vehicles=[
            AvailableVehicleResponse(
                id=entry.vehicle.id,
                unit_number=entry.vehicle.unit_number,
                display_name=entry.vehicle.display_name,
                license_plate=entry.vehicle.license_plate,
                status=entry.vehicle.status,
                last_dispatched_at=entry.vehicle.last_dispatched_at,
                is_free=entry.is_free,
                active_orders=[
                    ActiveOrderSummary.model_validate(o) for o in entry.active_orders
                ],
            )
            for entry in entries
        ],
        total=len(entries),
    )


@router.get(
    "/drivers/available",
    response_model=AvailableDriversResponse,
    summary="List dispatchable drivers",
)
async def list_available_drivers(
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> AvailableDriversResponse:
    entries = await service.available_drivers()
    return AvailableDriversResponse(
        drivers=[
            AvailableDriverResponse(
                id=entry.driver.id,
                full_name=entry.driver.full_name,
                email=entry.driver.email,
                position=entry.driver.position,
                last_dispatched_at=entry.driver.last_dispatched_at,
                is_free=entry.is_free,
                active_orders=[
                    ActiveOrderSummary.model_validate(o) for o in entry.active_orders
                ],
            )
            for entry in entries
        ],
        total=len(entries),
    )
