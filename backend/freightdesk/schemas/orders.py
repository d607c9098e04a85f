"""
Order Pydantic schemas for API request/response validation.

Status and priority travel as plain strings; they are checked against the
active vocabulary in the service layer so that a vocabulary change does not
require a schema change.
"""

from datetime import datetime
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from freightdesk.database.base import as_utc
from freightdesk.schemas.tracking import CoordinateSchema, TrackingEventResponse
from freightdesk.services.maps.geocoder import is_valid_postal_code

UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


def _check_postal_code(value: str) -> str:
    if not is_valid_postal_code(value):
        raise ValueError("Postal code must be 5 digits or ZIP+4 (12345-6789)")
    return value.strip()


PostalCode = Annotated[str, AfterValidator(_check_postal_code)]


class DocumentReference(BaseModel):
    """Reference to a document attached to an order."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    path: str = Field(..., min_length=1, max_length=1000)
    upload_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)


class OrderCreateRequest(BaseModel):
    """Request schema for creating an order."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    customer_id: UUID = Field(..., description="Customer the load is hauled for")
    customer_load_number: Optional[str] = Field(
        None,
        max_length=100,
        description="Customer's own reference for the load",
    )
    pickup_address: str = Field(..., min_length=1, max_length=500)
    pickup_postal_code: PostalCode
    delivery_address: str = Field(..., min_length=1, max_length=500)
    delivery_postal_code: PostalCode
    pickup_date: datetime = Field(..., description="Scheduled pickup date and time")
    priority: Optional[str] = Field(
        None,
        max_length=16,
        description="Priority label; defaults to the vocabulary default",
    )
    pieces: Optional[int] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0, description="Weight in pounds")
    load_pay: Optional[float] = Field(None, ge=0)
    driver_pay: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=5000)
    documents: list[DocumentReference] = Field(default_factory=list)

    def to_service_kwargs(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        data["documents"] = [d.model_dump(mode="json") for d in self.documents]
        return data


class OrderAssignRequest(BaseModel):
    """Request schema for dispatch assignment."""

    model_config = ConfigDict(extra="forbid")

    vehicle_id: UUID
    driver_id: UUID
    handler_id: Optional[UUID] = None


class OrderStatusUpdateRequest(BaseModel):
    """
    Request schema for a status transition.

    Location may be given as a postal code (geocoded server-side) or as an
    explicit coordinate, not both.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    status: str = Field(..., min_length=1, max_length=32)
    location: Optional[str] = Field(None, max_length=500)
    postal_code: Optional[PostalCode] = None
    coordinate: Optional[CoordinateSchema] = None
    notes: Optional[str] = Field(None, max_length=5000)

    @model_validator(mode="after")
    def check_single_location_source(self) -> "OrderStatusUpdateRequest":
        if self.postal_code and self.coordinate is not None:
            raise ValueError("Provide either postal_code or coordinate, not both")
        return self


class OrderPriorityUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    priority: str = Field(..., min_length=1, max_length=16)


class OrderResponse(BaseModel):
    """Response schema for an order."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    customer_id: UUID
    customer_load_number: Optional[str] = None
    vehicle_id: Optional[UUID] = None
    driver_id: Optional[UUID] = None
    handler_id: Optional[UUID] = None
    assigned_at: Optional[UTCDateTime] = None
    pickup_address: str
    pickup_postal_code: str
    delivery_address: str
    delivery_postal_code: str
    pickup_date: UTCDateTime
    delivery_date: Optional[UTCDateTime] = None
    status: str
    priority: str
    miles: Optional[float] = None
    estimated_duration_minutes: Optional[int] = None
    pieces: Optional[int] = None
    weight: Optional[float] = None
    load_pay: Optional[float] = None
    driver_pay: Optional[float] = None
    notes: Optional[str] = None
    documents: list[dict[str, Any]] = Field(default_factory=list)
    version: int
    created_at: UTCDateTime
    updated_at: UTCDateTime


class OrderListResponse(BaseModel):
    """Paginated order list."""

    items: list[OrderResponse]
    total: int
    skip: int
    limit: int


class OrderTransitionResponse(BaseModel):
    """Order after a transition together with the event it produced."""

    order: OrderResponse
    event: TrackingEventResponse


class RouteResponse(BaseModel):
    """Order after its driving route was recorded."""

    order: OrderResponse
    miles: float
    duration_minutes: int
    distance_text: Optional[str] = None
    duration_text: Optional[str] = None

    @field_validator("miles")
    @classmethod
    def round_miles(cls, v: float) -> float:
        return round(v, 1)
