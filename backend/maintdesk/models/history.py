from __future__ import annotations
import enum
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime, Enum, ForeignKey
from maintdesk.models.user import Base
from maintdesk.models.request import RequestStatus
from maintdesk.utils.clock import utcnow


class AssignmentType(str, enum.Enum):
    INITIAL_ASSIGNMENT = 'INITIAL_ASSIGNMENT'
    REASSIGNMENT = 'REASSIGNMENT'
    SELF_ASSIGNMENT = 'SELF_ASSIGNMENT'


class StatusHistoryEntry(Base):
    """Append-only; the autoincrement id is the commit order for a request's timeline."""
    __tablename__ = 'request_status_history'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    from_status: Mapped[Optional[RequestStatus]] = mapped_column(Enum(RequestStatus, native_enum=False, length=32), nullable=True)
    to_status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus, native_enum=False, length=32), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500))
    changed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class AssignmentHistoryEntry(Base):
    __tablename__ = 'request_assignment_history'
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    from_technician_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    to_technician_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    assignment_type: Mapped[AssignmentType] = mapped_column(Enum(AssignmentType, native_enum=False, length=32), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500))
    assigned_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
