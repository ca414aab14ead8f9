from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, DateTime, Index, func
from maintdesk.models.user import Base
from maintdesk.utils.clock import utcnow


class BuildingConfig(Base):
    __tablename__ = 'building_configs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    building_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    building_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    allow_custom_id: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    # Written only by services.identifiers (allocation) and services.buildings (reset)
    current_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reset_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class RequestIdentifier(Base):
    """Audit copy of every identifier handed out; sequence 0 marks a custom identifier."""
    __tablename__ = 'request_identifiers'
    CUSTOM_SEQUENCE = 0
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    identifier: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    building: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def is_custom(self) -> bool:
        return self.sequence == self.CUSTOM_SEQUENCE


# 'abc-1' and 'ABC-1' are the same identifier
Index('uq_request_identifiers_identifier_lower', func.lower(RequestIdentifier.identifier), unique=True)
