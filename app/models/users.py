"""
User model: maps to the users table.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import Mapped

from .base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = Column(String, primary_key=True)
    email: Mapped[Optional[str]] = Column(String, unique=True, nullable=True)
    first_name: Mapped[Optional[str]] = Column(String, nullable=True)
    last_name: Mapped[Optional[str]] = Column(String, nullable=True)
    business_name: Mapped[Optional[str]] = Column(String, nullable=True)
    trade: Mapped[Optional[str]] = Column(String, nullable=True)
    service_area: Mapped[Optional[str]] = Column(String, nullable=True)
    country: Mapped[Optional[str]] = Column(String, default="Australia")
    is_gst_registered: Mapped[bool] = Column(Boolean, nullable=False, default=False)
    # Legacy denormalized flag; organization_users.is_onboarded is authoritative
    is_onboarded: Mapped[bool] = Column(Boolean, nullable=False, default=False)
    is_demo_user: Mapped[bool] = Column(Boolean, nullable=False, default=False)
    first_login_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
