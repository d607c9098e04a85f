"""
Employee model covering drivers and office staff (order handlers).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from freightdesk.database.base import AccountMixin, BaseModel


class EmployeeStatus(str, Enum):
    """Employment status maintained by the HR screens."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    TERMINATED = "TERMINATED"
    ON_LEAVE = "ON_LEAVE"


class Employee(BaseModel, AccountMixin):
    """
    Person who can drive an order or handle it in the office.

    Like vehicles, drivers carry a ``version`` that is bumped whenever they
    become active on an order.
    """

    __tablename__ = "employees"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)

    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    position: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="Driver",
        comment="Job title, e.g. Driver or Dispatcher",
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EmployeeStatus.ACTIVE.value,
    )

    last_dispatched_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE.value

    @property
    def is_driver(self) -> bool:
        return "driver" in (self.position or "").lower()
