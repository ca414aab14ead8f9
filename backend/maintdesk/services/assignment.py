"""Assignment tracking: admin assignment, reassignment and technician self-assignment.

Each accepted action writes exactly one AssignmentHistoryEntry carrying the
previous assignee, plus a status-history row when the status moves.
"""
from __future__ import annotations
import logging
from typing import Optional
from maintdesk.constants.roles import Role, ASSIGNER_ROLES, SELF_ASSIGN_ROLES
from maintdesk.decorators.transactional import transactional
from maintdesk.errors import InvalidTechnician, NotAvailableForAssignment, ConcurrentUpdate
from maintdesk.models.history import AssignmentHistoryEntry, AssignmentType
from maintdesk.models.request import MaintenanceRequest, RequestStatus
from maintdesk.models.user import User
from maintdesk.services import notifications
from maintdesk.services.lifecycle import load_request, compare_and_set, status_values, record_status_change
from maintdesk.services.policy import assert_role_in

logger = logging.getLogger(__name__)

SELF_ASSIGNABLE = frozenset({RequestStatus.SUBMITTED, RequestStatus.ASSIGNED})


def _require_technician(session, technician_id) -> User:
    try:
        technician_id = int(technician_id)
    except (TypeError, ValueError):
        raise InvalidTechnician('Invalid technician ID')
    user = session.get(User, technician_id)
    if not user or user.role != Role.TECHNICIAN.value or not user.is_active:
        raise InvalidTechnician('Invalid technician ID')
    return user


def _record_assignment(session, request_id: str, from_id: Optional[int], to_id: int, kind: AssignmentType,
                       reason: Optional[str], actor_id: int) -> AssignmentHistoryEntry:
    entry = AssignmentHistoryEntry(
        request_id=request_id,
        from_technician_id=from_id,
        to_technician_id=to_id,
        assignment_type=kind,
        reason=reason,
        assigned_by_id=actor_id,
    )
    session.add(entry)
    session.flush()
    return entry


def _assigned_event(request: MaintenanceRequest, kind: AssignmentType, previous: Optional[int], actor_id: int):
    notifications.dispatch(
        notifications.EVENT_ASSIGNED,
        request_id=request.id,
        identifier=request.custom_identifier,
        title=request.title,
        assignment_type=kind.value,
        from_technician_id=previous,
        to_technician_id=request.assigned_to_id,
        assigned_by_id=actor_id,
        status=request.status.value,
    )


@transactional
def assign(request_id: str, technician_id, actor_id: int, actor_role, reason: Optional[str] = None, *, session=None) -> MaintenanceRequest:
    """Assign (or reassign) a request to a technician; SUBMITTED requests move to ASSIGNED."""
    assert_role_in(actor_role, ASSIGNER_ROLES, 'assign requests')
    request = load_request(session, request_id)
    technician = _require_technician(session, technician_id)
    current, previous = request.status, request.assigned_to_id

    values = {'assigned_to_id': technician.id, 'assigned_by_id': actor_id}
    moves = current is RequestStatus.SUBMITTED
    if moves:
        values.update(status_values(RequestStatus.ASSIGNED))
    if not compare_and_set(session, request, {'status': current, 'assigned_to_id': previous}, values):
        logger.info('requests.assign.conflict request_id=%s actor=%s', request_id, actor_id)
        raise ConcurrentUpdate()
    if moves:
        record_status_change(session, request.id, current, RequestStatus.ASSIGNED, 'Request assigned to technician', actor_id)
    kind = AssignmentType.INITIAL_ASSIGNMENT if previous is None else AssignmentType.REASSIGNMENT
    _record_assignment(session, request.id, previous, technician.id, kind, reason, actor_id)
    session.commit()
    logger.info('requests.assign request_id=%s technician=%s previous=%s type=%s actor=%s',
                request.id, technician.id, previous, kind.value, actor_id)
    _assigned_event(request, kind, previous, actor_id)
    return request


@transactional
def self_assign(request_id: str, actor_id: int, actor_role, *, session=None) -> MaintenanceRequest:
    """Technician claims a SUBMITTED or ASSIGNED request, taking over any existing assignee."""
    assert_role_in(actor_role, SELF_ASSIGN_ROLES, 'self-assign requests')
    request = load_request(session, request_id)
    current, previous = request.status, request.assigned_to_id
    if current not in SELF_ASSIGNABLE:
        raise NotAvailableForAssignment()

    values = {'assigned_to_id': actor_id, 'assigned_by_id': actor_id}
    values.update(status_values(RequestStatus.ASSIGNED))
    if not compare_and_set(session, request, {'status': current, 'assigned_to_id': previous}, values):
        logger.info('requests.self_assign.conflict request_id=%s actor=%s', request_id, actor_id)
        raise NotAvailableForAssignment()
    if current is not RequestStatus.ASSIGNED:
        record_status_change(session, request.id, current, RequestStatus.ASSIGNED, 'Self-assigned by technician', actor_id)
    _record_assignment(session, request.id, previous, actor_id, AssignmentType.SELF_ASSIGNMENT, 'Self-assigned by technician', actor_id)
    session.commit()
    logger.info('requests.self_assign request_id=%s technician=%s previous=%s', request.id, actor_id, previous)
    _assigned_event(request, AssignmentType.SELF_ASSIGNMENT, previous, actor_id)
    return request


__all__ = ['assign', 'self_assign']
