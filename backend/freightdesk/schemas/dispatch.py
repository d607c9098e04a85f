"""
Fleet availability schemas for the dispatch board.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from freightdesk.schemas.orders import UTCDateTime


class ActiveOrderSummary(BaseModel):
    """Order currently holding a vehicle or driver."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    status: str


class AvailableVehicleResponse(BaseModel):
    id: UUID
    unit_number: str
    display_name: str
    license_plate: Optional[str] = None
    status: str
    last_dispatched_at: Optional[UTCDateTime] = None
    is_free: bool
    active_orders: list[ActiveOrderSummary]


class AvailableDriverResponse(BaseModel):
    id: UUID
    full_name: str
    email: Optional[str] = None
    position: str
    last_dispatched_at: Optional[UTCDateTime] = None
    is_free: bool
    active_orders: list[ActiveOrderSummary]


class AvailableVehiclesResponse(BaseModel):
    vehicles: list[AvailableVehicleResponse]
    total: int


class AvailableDriversResponse(BaseModel):
    drivers: list[AvailableDriverResponse]
    total: int
