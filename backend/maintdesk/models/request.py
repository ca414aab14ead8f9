from __future__ import annotations
import enum
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Numeric, DateTime, Enum, ForeignKey, Index
from maintdesk.models.user import Base
from maintdesk.utils.clock import utcnow
import maintdesk.models.building  # noqa: F401  registers request_identifiers for the identifier FK


class RequestStatus(str, enum.Enum):
    DRAFT = 'DRAFT'
    SUBMITTED = 'SUBMITTED'
    ASSIGNED = 'ASSIGNED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CLOSED = 'CLOSED'
    REJECTED = 'REJECTED'


class Priority(str, enum.Enum):
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    URGENT = 'URGENT'


class MaintenanceRequest(Base):
    __tablename__ = 'maintenance_requests'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    custom_identifier: Mapped[str] = mapped_column(String(50), ForeignKey('request_identifiers.identifier'), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[Priority] = mapped_column(Enum(Priority, native_enum=False, length=16, validate_strings=True), nullable=False, default=Priority.MEDIUM, index=True)
    category_id: Mapped[Optional[int]] = mapped_column(ForeignKey('categories.id'), nullable=True, index=True)
    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus, native_enum=False, length=32, validate_strings=True), nullable=False, default=RequestStatus.SUBMITTED, index=True)
    building: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    specific_location: Mapped[Optional[str]] = mapped_column(String(200))
    estimated_cost: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False))
    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    # Set iff status == COMPLETED
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    requested_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    assigned_to_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    assigned_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index('ix_maintenance_requests_status_completed', 'status', 'completed_date'),)

# Status flow lives in services.lifecycle (REQUEST_FSM); role gates in constants.roles.
