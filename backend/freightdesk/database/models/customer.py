"""
Customer model.

Customers are maintained by the external CRUD screens; the dispatch core only
verifies that an order's customer exists and belongs to the caller's account.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from freightdesk.database.base import AccountMixin, BaseModel


class Customer(BaseModel, AccountMixin):
    """Shipper or broker an order is hauled for."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Customer display name",
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
    )

    address: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )
