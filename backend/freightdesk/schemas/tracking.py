"""
Tracking event schemas.
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from freightdesk.database.base import as_utc


class CoordinateSchema(BaseModel):
    """Latitude/longitude pair in decimal degrees."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class TrackingEventResponse(BaseModel):
    """One entry of an order's tracking history."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    sequence: int
    status: str
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: Annotated[datetime, AfterValidator(as_utc)]
    notes: Optional[str] = None


class TrackingHistoryResponse(BaseModel):
    """Ordered tracking history with the status it folds to."""

    order_id: UUID
    current_status: str
    events: list[TrackingEventResponse]
