from __future__ import annotations
from flask import Blueprint, request
from maintdesk.config.pagination import pagination_meta
from maintdesk.constants.roles import Role
from maintdesk.decorators.auth import require_roles, current_actor
from maintdesk.services import lifecycle, assignment
from maintdesk.utils.validation import require_fields

req_bp = Blueprint('requests', __name__)


def _iso(value):
    return value.isoformat() if value else None


def _request_json(r) -> dict:
    return {
        'id': r.id,
        'custom_identifier': r.custom_identifier,
        'title': r.title,
        'description': r.description,
        'priority': r.priority.value,
        'category_id': r.category_id,
        'status': r.status.value,
        'building': r.building,
        'location': r.location,
        'specific_location': r.specific_location,
        'estimated_cost': r.estimated_cost,
        'scheduled_date': _iso(r.scheduled_date),
        'completed_date': _iso(r.completed_date),
        'requested_by_id': r.requested_by_id,
        'assigned_to_id': r.assigned_to_id,
        'assigned_by_id': r.assigned_by_id,
        'created_at': _iso(r.created_at),
        'updated_at': _iso(r.updated_at),
    }


def _status_entry_json(h) -> dict:
    return {
        'id': h.id,
        'from_status': h.from_status.value if h.from_status else None,
        'to_status': h.to_status.value,
        'reason': h.reason,
        'changed_by_id': h.changed_by_id,
        'created_at': _iso(h.created_at),
    }


def _assignment_entry_json(h) -> dict:
    return {
        'id': h.id,
        'from_technician_id': h.from_technician_id,
        'to_technician_id': h.to_technician_id,
        'assignment_type': h.assignment_type.value,
        'reason': h.reason,
        'assigned_by_id': h.assigned_by_id,
        'created_at': _iso(h.created_at),
    }


def _comment_json(c) -> dict:
    return {
        'id': c.id,
        'user_id': c.user_id,
        'text': c.text,
        'is_internal': c.is_internal,
        'created_at': _iso(c.created_at),
    }


@req_bp.post('')
@require_roles()
def create_request():
    data = request.get_json(silent=True) or {}
    user_id, role = current_actor()
    r = lifecycle.create_request(
        user_id,
        role,
        data.get('building'),
        title=data.get('title'),
        description=data.get('description'),
        location=data.get('location'),
        priority=data.get('priority'),
        category_id=data.get('category_id'),
        specific_location=data.get('specific_location'),
        estimated_cost=data.get('estimated_cost'),
        scheduled_date=data.get('scheduled_date'),
        custom_identifier=data.get('custom_identifier'),
        draft=data.get('draft'),
    )
    return _request_json(r), 201


@req_bp.get('')
@require_roles()
def list_requests():
    user_id, role = current_actor()
    args = request.args
    filters = {k: args.get(k) for k in (
        'status', 'priority', 'category_id', 'assigned_to_id', 'requested_by_id', 'building', 'search', 'date_from', 'date_to'
    )}
    rows, total, limit, offset = lifecycle.list_requests(
        user_id, role, filters, limit=args.get('limit'), offset=args.get('offset'), sort=args.get('sort')
    )
    return {
        'data': [_request_json(r) for r in rows],
        'pagination': pagination_meta(total, limit, offset, len(rows)),
    }


@req_bp.get('/<request_id>')
@require_roles()
def get_request(request_id: str):
    user_id, role = current_actor()
    r = lifecycle.get_request(request_id, user_id, role)
    statuses, assignments = lifecycle.get_history(r.id)
    body = _request_json(r)
    body['status_history'] = [_status_entry_json(h) for h in statuses]
    body['assignment_history'] = [_assignment_entry_json(h) for h in assignments]
    body['comments'] = [_comment_json(c) for c in lifecycle.list_comments(r.id, role)]
    return body


@req_bp.patch('/<request_id>')
@require_roles()
def update_request(request_id: str):
    data = request.get_json(silent=True) or {}
    user_id, role = current_actor()
    r = lifecycle.update_request(request_id, data, user_id, role)
    return _request_json(r)


@req_bp.post('/<request_id>/comments')
@require_roles()
def add_comment(request_id: str):
    data = request.get_json(silent=True) or {}
    user_id, role = current_actor()
    c = lifecycle.add_comment(request_id, data.get('text'), user_id, role, is_internal=data.get('is_internal'))
    return _comment_json(c), 201


@req_bp.patch('/<request_id>/status')
@require_roles()
def update_status(request_id: str):
    data = request.get_json(silent=True) or {}
    require_fields(data, ['status'])
    user_id, role = current_actor()
    r = lifecycle.update_status(request_id, data['status'], user_id, role, reason=data.get('reason'))
    return _request_json(r)


@req_bp.post('/<request_id>/assign')
@require_roles(Role.SUPER_ADMIN, Role.MAINTENANCE_ADMIN)
def assign_request(request_id: str):
    data = request.get_json(silent=True) or {}
    require_fields(data, ['technician_id'])
    user_id, role = current_actor()
    r = assignment.assign(request_id, data['technician_id'], user_id, role, reason=data.get('reason'))
    return _request_json(r)


@req_bp.post('/<request_id>/self-assign')
@require_roles(Role.TECHNICIAN)
def self_assign_request(request_id: str):
    user_id, role = current_actor()
    r = assignment.self_assign(request_id, user_id, role)
    return _request_json(r)
