"""
OrganizationUser model: maps to the organization_users table.

Holds the per-organization onboarding flag. A user can be onboarded in one
organization and not in another.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, relationship

from .base import Base


class OrganizationUser(Base):
    __tablename__ = "organization_users"

    user_id: Mapped[str] = Column(
        String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    organization_id: Mapped[str] = Column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = Column(String, nullable=False, default="member")
    is_onboarded: Mapped[bool] = Column(Boolean, nullable=False, default=False)
    onboarded_at: Mapped[Optional[datetime]] = Column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[Optional[datetime]] = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    organization: Mapped["Organization"] = relationship("Organization", foreign_keys=[organization_id])
