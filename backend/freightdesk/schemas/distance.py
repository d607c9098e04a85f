"""
Distance query schemas.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from freightdesk.schemas.tracking import CoordinateSchema


class DistanceMode(str, Enum):
    """How a distance is computed."""

    ESTIMATE = "estimate"
    DRIVING = "driving"


class DistanceResponse(BaseModel):
    """
    Distance between two postal codes.

    ``duration_minutes`` is only present for driving distances; coordinates
    only for estimates.
    """

    origin: str
    destination: str
    mode: DistanceMode
    miles: float = Field(..., ge=0)
    duration_minutes: Optional[int] = Field(None, ge=0)
    origin_coordinate: Optional[CoordinateSchema] = None
    destination_coordinate: Optional[CoordinateSchema] = None
