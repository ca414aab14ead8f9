"""Request lifecycle: creation, status transitions and their history trail.

A transition is accepted only if it is an edge of REQUEST_FSM *and* the target is
in the actor role's permission set. The status write is a compare-and-set on the
status this call loaded; if another writer committed first the update matches
no row and the caller gets InvalidTransition naming the status that won. The
history row is written in the same transaction as the status change.
"""
from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy import select, update, func, or_
from maintdesk.constants.roles import CUSTOM_IDENTIFIER_ROLES, ALL_ROLES, Role, parse_role
from maintdesk.decorators.transactional import transactional
from maintdesk.errors import NotFound, InvalidInput, InvalidTransition, RoleNotPermitted
from maintdesk.models.comment import RequestComment
from maintdesk.models.history import StatusHistoryEntry, AssignmentHistoryEntry
from maintdesk.models.request import MaintenanceRequest, RequestStatus, Priority
from maintdesk.models.user import Category
from maintdesk.config.pagination import normalize_pagination
from maintdesk.services import notifications
from maintdesk.services.audit import add_audit
from maintdesk.services.buildings import find_config, normalize_building_name
from maintdesk.services.identifiers import allocate
from maintdesk.services.policy import assert_can_set_status, assert_can_view, assert_role_in, customer_scope
from maintdesk.utils.clock import utcnow
from maintdesk.utils.fsm import TransitionValidator
from maintdesk.utils.sorting import apply_multi_sort
from maintdesk.utils.validation import (
    parse_enum, parse_bool, require_text, optional_text, parse_datetime, parse_optional_int, parse_optional_float,
)

logger = logging.getLogger(__name__)

REQUEST_FSM = TransitionValidator({
    RequestStatus.DRAFT: {RequestStatus.SUBMITTED},
    RequestStatus.SUBMITTED: {RequestStatus.ASSIGNED, RequestStatus.REJECTED},
    RequestStatus.ASSIGNED: {RequestStatus.IN_PROGRESS, RequestStatus.REJECTED},
    RequestStatus.IN_PROGRESS: {RequestStatus.COMPLETED, RequestStatus.REJECTED},
    RequestStatus.COMPLETED: {RequestStatus.CLOSED, RequestStatus.IN_PROGRESS},  # revert path
    RequestStatus.CLOSED: set(),
    RequestStatus.REJECTED: {RequestStatus.SUBMITTED},
})

SORTABLE = {
    'created_at': MaintenanceRequest.created_at,
    'updated_at': MaintenanceRequest.updated_at,
    'priority': MaintenanceRequest.priority,
    'status': MaintenanceRequest.status,
    'building': MaintenanceRequest.building,
    'title': MaintenanceRequest.title,
    'custom_identifier': MaintenanceRequest.custom_identifier,
}

TITLE_MAX = 200
LOCATION_MAX = 200

# Fields update_request may write; status, completed_date, identifier, building and
# assignment columns only change through their own operations.
EDITABLE_FIELDS = frozenset({
    'title', 'description', 'location', 'specific_location', 'priority', 'category_id', 'estimated_cost', 'scheduled_date',
})


# ---------- building blocks shared with services.assignment ---------- #

def load_request(session, request_id: str) -> MaintenanceRequest:
    request = session.get(MaintenanceRequest, request_id, populate_existing=True)
    if not request:
        raise NotFound('Request not found')
    return request


def status_values(target: RequestStatus) -> Dict[str, Any]:
    """Column values for moving to target; completed_date is set iff target is COMPLETED."""
    return {
        'status': target,
        'completed_date': utcnow() if target is RequestStatus.COMPLETED else None,
    }


def compare_and_set(session, request: MaintenanceRequest, guards: Dict[str, Any], values: Dict[str, Any]) -> bool:
    """UPDATE request SET values WHERE every guard column still holds its expected value.

    Returns False when another writer changed a guarded column first. On success
    the in-session object is refreshed from the row.
    """
    conditions = [MaintenanceRequest.id == request.id]
    for column, expected in guards.items():
        attr = getattr(MaintenanceRequest, column)
        conditions.append(attr.is_(None) if expected is None else attr == expected)
    result = session.execute(
        update(MaintenanceRequest)
        .where(*conditions)
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    session.refresh(request)
    return True


def current_status(session, request_id: str) -> Optional[RequestStatus]:
    return session.execute(select(MaintenanceRequest.status).where(MaintenanceRequest.id == request_id)).scalar_one_or_none()


def record_status_change(session, request_id: str, from_status: Optional[RequestStatus], to_status: RequestStatus,
                         reason: Optional[str], actor_id: Optional[int]) -> StatusHistoryEntry:
    entry = StatusHistoryEntry(
        request_id=request_id,
        from_status=from_status,
        to_status=to_status,
        reason=reason,
        changed_by_id=actor_id,
    )
    session.add(entry)
    session.flush()
    return entry


def transition(session, request: MaintenanceRequest, target: RequestStatus, reason: Optional[str], actor_id: Optional[int]) -> StatusHistoryEntry:
    """Apply a graph-valid status change plus its history row; no role check, no commit."""
    current = request.status
    REQUEST_FSM.assert_can_transition(current, target)
    if not compare_and_set(session, request, {'status': current}, status_values(target)):
        winner = current_status(session, request.id)
        if winner is None:
            raise NotFound('Request not found')
        session.refresh(request)
        logger.info('requests.status.conflict request_id=%s expected=%s found=%s target=%s', request.id, current.value, winner.value, target.value)
        raise InvalidTransition(winner, target)
    return record_status_change(session, request.id, current, target, reason, actor_id)


def _status_event(request: MaintenanceRequest, from_status: RequestStatus, actor_id: Optional[int]):
    notifications.dispatch(
        notifications.EVENT_STATUS_CHANGED,
        request_id=request.id,
        identifier=request.custom_identifier,
        title=request.title,
        from_status=from_status.value,
        to_status=request.status.value,
        requested_by_id=request.requested_by_id,
        assigned_to_id=request.assigned_to_id,
        changed_by_id=actor_id,
    )


# ---------- operations ---------- #

@transactional
def create_request(requester_id: int, requester_role, building: Optional[str], title: Optional[str] = None,
                   description: Optional[str] = None, location: Optional[str] = None, priority=None, category_id=None,
                   specific_location: Optional[str] = None, estimated_cost=None, scheduled_date=None,
                   custom_identifier: Optional[str] = None, draft: bool = False, *, session=None) -> MaintenanceRequest:
    """Create a request (SUBMITTED, or DRAFT when draft=True) with its identifier and first history row."""
    role = assert_role_in(requester_role, ALL_ROLES, 'create requests')
    building = normalize_building_name(building)
    title = require_text(title, 'title', TITLE_MAX)
    description = require_text(description, 'description')
    location = require_text(location, 'location', LOCATION_MAX)
    specific_location = optional_text(specific_location, 'specific_location', LOCATION_MAX)
    draft = parse_bool(draft, 'draft', False)
    priority = parse_enum(priority, Priority, 'priority') if priority is not None else Priority.MEDIUM
    category_id = _validated_category(session, category_id)
    if custom_identifier:
        config = find_config(session, building)
        if role not in CUSTOM_IDENTIFIER_ROLES and not (config and config.allow_custom_id):
            raise RoleNotPermitted(f'Role {role.value} cannot set a custom identifier for building {building}')

    identifier = allocate(building, custom_identifier or None, requester_id, session=session)
    initial = RequestStatus.DRAFT if draft else RequestStatus.SUBMITTED
    request = MaintenanceRequest(
        custom_identifier=identifier,
        title=title,
        description=description,
        priority=priority,
        category_id=category_id,
        status=initial,
        building=building,
        location=location,
        specific_location=specific_location,
        estimated_cost=parse_optional_float(estimated_cost, 'estimated_cost'),
        scheduled_date=parse_datetime(scheduled_date, 'scheduled_date'),
        requested_by_id=requester_id,
    )
    session.add(request)
    session.flush()
    record_status_change(session, request.id, None, initial, 'Request created', requester_id)
    session.commit()
    logger.info('requests.create request_id=%s identifier=%s building=%s status=%s actor=%s',
                request.id, identifier, building, initial.value, requester_id)
    notifications.dispatch(
        notifications.EVENT_REQUEST_CREATED,
        request_id=request.id,
        identifier=identifier,
        title=request.title,
        priority=request.priority.value,
        building=building,
        requested_by_id=requester_id,
    )
    return request


@transactional
def update_status(request_id: str, target, actor_id: int, actor_role, reason: Optional[str] = None, *, session=None) -> MaintenanceRequest:
    target = parse_enum(target, RequestStatus, 'status')
    request = load_request(session, request_id)
    assert_can_view(request, actor_id, actor_role)
    current = request.status
    # Graph first, so impossible pairs report InvalidTransition for every role
    REQUEST_FSM.assert_can_transition(current, target)
    assert_can_set_status(actor_role, target)
    transition(session, request, target, reason, actor_id)
    session.commit()
    logger.info('requests.status.update request_id=%s from=%s to=%s actor=%s', request.id, current.value, target.value, actor_id)
    _status_event(request, current, actor_id)
    return request


def get_request(request_id: str, actor_id: Optional[int], actor_role, *, session=None) -> MaintenanceRequest:
    from maintdesk import get_db
    session = session or get_db()
    request = load_request(session, request_id)
    assert_can_view(request, actor_id, actor_role)
    return request


def get_history(request_id: str, *, session=None):
    """Return (status_entries, assignment_entries), each in commit order."""
    from maintdesk import get_db
    session = session or get_db()
    statuses = session.execute(
        select(StatusHistoryEntry).where(StatusHistoryEntry.request_id == request_id).order_by(StatusHistoryEntry.id.asc())
    ).scalars().all()
    assignments = session.execute(
        select(AssignmentHistoryEntry).where(AssignmentHistoryEntry.request_id == request_id).order_by(AssignmentHistoryEntry.id.asc())
    ).scalars().all()
    return statuses, assignments


def _validated_category(session, value) -> Optional[int]:
    category_id = parse_optional_int(value, 'category_id')
    if category_id is not None and session.get(Category, category_id) is None:
        raise InvalidInput('Invalid category')
    return category_id


def _edit_values(session, changes: Dict[str, Any]) -> Dict[str, Any]:
    parsers = {
        'title': lambda v: require_text(v, 'title', TITLE_MAX),
        'description': lambda v: require_text(v, 'description'),
        'location': lambda v: require_text(v, 'location', LOCATION_MAX),
        'specific_location': lambda v: optional_text(v, 'specific_location', LOCATION_MAX),
        'priority': lambda v: parse_enum(v, Priority, 'priority'),
        'category_id': lambda v: _validated_category(session, v),
        'estimated_cost': lambda v: parse_optional_float(v, 'estimated_cost'),
        'scheduled_date': lambda v: parse_datetime(v, 'scheduled_date'),
    }
    return {field: parsers[field](value) for field, value in changes.items()}


def _audit_value(value):
    if isinstance(value, (RequestStatus, Priority)):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@transactional
def update_request(request_id: str, changes: Optional[Dict[str, Any]], actor_id: int, actor_role, *, session=None) -> MaintenanceRequest:
    """Edit the descriptive fields of a request.

    Only EDITABLE_FIELDS are accepted; anything else (status and completed_date
    included) is rejected as a whole before the row is touched. Customers may
    only edit their own requests.
    """
    assert_role_in(actor_role, ALL_ROLES, 'update requests')
    changes = changes or {}
    if not isinstance(changes, dict):
        raise InvalidInput('Request body must be a JSON object')
    unsupported = sorted(set(changes) - EDITABLE_FIELDS)
    if unsupported:
        raise InvalidInput(f"{', '.join(unsupported)} cannot be updated")
    if not changes:
        raise InvalidInput('No fields to update')
    request = load_request(session, request_id)
    assert_can_view(request, actor_id, actor_role)
    diff = {}
    for field, value in _edit_values(session, changes).items():
        current = getattr(request, field)
        if current != value:
            diff[field] = {'before': _audit_value(current), 'after': _audit_value(value)}
            setattr(request, field, value)
    if diff:
        session.flush()
        add_audit(session, 'REQUEST.UPDATE', actor_id, 'MaintenanceRequest', request.id, {'changes': diff}, actor_role=actor_role)
    session.commit()
    logger.info('requests.update request_id=%s fields=%s actor=%s', request.id, sorted(diff), actor_id)
    return request


@transactional
def add_comment(request_id: str, text, actor_id: int, actor_role, is_internal=False, *, session=None) -> RequestComment:
    """Attach a comment; public comments notify, internal ones are staff-only and silent."""
    role = assert_role_in(actor_role, ALL_ROLES, 'comment on requests')
    text = require_text(text, 'text', RequestComment.MAX_TEXT_LENGTH)
    is_internal = parse_bool(is_internal, 'is_internal', False)
    if is_internal and role is Role.CUSTOMER:
        raise RoleNotPermitted(f'Role {role.value} cannot add internal comments')
    request = load_request(session, request_id)
    assert_can_view(request, actor_id, role)
    comment = RequestComment(request_id=request.id, user_id=actor_id, text=text, is_internal=is_internal)
    session.add(comment)
    session.commit()
    logger.info('requests.comment request_id=%s comment_id=%s internal=%s actor=%s', request.id, comment.id, is_internal, actor_id)
    if not is_internal:
        notifications.dispatch(
            notifications.EVENT_COMMENTED,
            request_id=request.id,
            identifier=request.custom_identifier,
            title=request.title,
            comment_id=comment.id,
            text=text,
            author_id=actor_id,
            requested_by_id=request.requested_by_id,
            assigned_to_id=request.assigned_to_id,
        )
    return comment


def list_comments(request_id: str, actor_role, *, session=None):
    """Comments in posting order; customers never see internal ones."""
    from maintdesk import get_db
    session = session or get_db()
    stmt = select(RequestComment).where(RequestComment.request_id == request_id)
    if parse_role(actor_role) is Role.CUSTOMER:
        stmt = stmt.where(RequestComment.is_internal.is_(False))
    return session.execute(stmt.order_by(RequestComment.id.asc())).scalars().all()


def list_requests(actor_id: Optional[int], actor_role, filters: Optional[Dict[str, Any]] = None, limit=None, offset=None,
                  sort: Optional[str] = None, *, session=None):
    """Return (rows, total, limit, offset); customers only ever see their own requests."""
    from maintdesk import get_db
    session = session or get_db()
    filters = filters or {}
    limit, offset = normalize_pagination(limit, offset)
    conditions = []
    owner = customer_scope(actor_role, actor_id)
    if owner is not None:
        conditions.append(MaintenanceRequest.requested_by_id == owner)
    if filters.get('status'):
        conditions.append(MaintenanceRequest.status == parse_enum(filters['status'], RequestStatus, 'status'))
    if filters.get('priority'):
        conditions.append(MaintenanceRequest.priority == parse_enum(filters['priority'], Priority, 'priority'))
    for key, column in (('category_id', MaintenanceRequest.category_id),
                        ('assigned_to_id', MaintenanceRequest.assigned_to_id),
                        ('requested_by_id', MaintenanceRequest.requested_by_id)):
        value = parse_optional_int(filters.get(key), key)
        if value is not None:
            conditions.append(column == value)
    if filters.get('building'):
        conditions.append(func.lower(MaintenanceRequest.building).contains(str(filters['building']).lower()))
    if filters.get('search'):
        term = f"%{str(filters['search']).lower()}%"
        conditions.append(or_(
            func.lower(MaintenanceRequest.title).like(term),
            func.lower(MaintenanceRequest.description).like(term),
            func.lower(MaintenanceRequest.location).like(term),
            func.lower(MaintenanceRequest.custom_identifier).like(term),
        ))
    date_from = parse_datetime(filters.get('date_from'), 'date_from')
    date_to = parse_datetime(filters.get('date_to'), 'date_to')
    if date_from:
        conditions.append(MaintenanceRequest.created_at >= date_from)
    if date_to:
        conditions.append(MaintenanceRequest.created_at <= date_to)

    total = session.execute(select(func.count(MaintenanceRequest.id)).where(*conditions)).scalar_one()
    stmt = apply_multi_sort(select(MaintenanceRequest).where(*conditions), sort, SORTABLE, MaintenanceRequest.id, default='-created_at')
    rows = session.execute(stmt.offset(offset).limit(limit)).scalars().all()
    return rows, total, limit, offset


def auto_close_candidates(days: int = 3, *, session=None, now=None):
    """Requests COMPLETED at least `days` days before now, oldest first."""
    from maintdesk import get_db
    session = session or get_db()
    if days < 0:
        raise InvalidInput('days must not be negative')
    cutoff = (now or utcnow()) - timedelta(days=days)
    return session.execute(
        select(MaintenanceRequest)
        .where(MaintenanceRequest.status == RequestStatus.COMPLETED, MaintenanceRequest.completed_date <= cutoff)
        .order_by(MaintenanceRequest.completed_date.asc())
    ).scalars().all()


@transactional
def auto_close_completed(days: int = 3, actor_id: Optional[int] = None, *, session=None, now=None) -> int:
    """Close requests COMPLETED for at least `days` days; returns how many were closed."""
    candidates = auto_close_candidates(days, session=session, now=now)
    closed = []
    for request in candidates:
        try:
            transition(session, request, RequestStatus.CLOSED, f'Automatically closed after {days} days', actor_id)
        except InvalidTransition as exc:
            # Reopened or closed by someone else since the scan; leave it alone
            logger.info('requests.auto_close.skip request_id=%s reason=%s', request.id, exc.description)
            continue
        closed.append(request)
    session.commit()
    logger.info('requests.auto_close processed=%s days=%s', len(closed), days)
    for request in closed:
        _status_event(request, RequestStatus.COMPLETED, actor_id)
    return len(closed)


__all__ = [
    'REQUEST_FSM', 'EDITABLE_FIELDS', 'create_request', 'update_status', 'update_request', 'add_comment', 'list_comments',
    'get_request', 'get_history', 'list_requests', 'auto_close_completed', 'auto_close_candidates',
    'transition', 'compare_and_set', 'record_status_change', 'status_values', 'load_request',
]
