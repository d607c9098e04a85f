"""
Database models package initialization.

Importing this package registers every model with ``Base.metadata`` so that
Alembic autogeneration and ``create_all`` see the full schema.
"""

from freightdesk.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from freightdesk.database.models.customer import Customer
from freightdesk.database.models.employee import Employee, EmployeeStatus
from freightdesk.database.models.order import Order
from freightdesk.database.models.tracking_event import TrackingEvent
from freightdesk.database.models.vehicle import Vehicle, VehicleStatus

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Customer",
    "Employee",
    "EmployeeStatus",
    "Order",
    "TrackingEvent",
    "Vehicle",
    "VehicleStatus",
]
