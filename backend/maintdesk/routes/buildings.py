from __future__ import annotations
from flask import Blueprint, request
from maintdesk.constants.roles import BUILDING_ADMIN_ROLES
from maintdesk.decorators.auth import require_roles, current_actor
from maintdesk.services import buildings, identifiers
from maintdesk.utils.validation import require_fields, parse_bool

bld_bp = Blueprint('buildings', __name__)


def _config_json(c) -> dict:
    return {
        'id': c.id,
        'building_name': c.building_name,
        'building_code': c.building_code,
        'display_name': c.display_name,
        'allow_custom_id': c.allow_custom_id,
        'is_active': c.is_active,
        'current_sequence': c.current_sequence,
        'last_reset_year': c.last_reset_year,
        'created_by': c.created_by,
        'created_at': c.created_at.isoformat() if c.created_at else None,
        'updated_at': c.updated_at.isoformat() if c.updated_at else None,
    }


@bld_bp.get('')
@require_roles()
def list_configs():
    rows = buildings.list_configs(include_inactive=parse_bool(request.args.get('include_inactive'), 'include_inactive', False))
    return {'data': [_config_json(c) for c in rows]}


@bld_bp.post('')
@require_roles(*BUILDING_ADMIN_ROLES)
def create_config():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['building_name'])
    user_id, role = current_actor()
    c = buildings.create_config(
        data['building_name'],
        user_id,
        building_code=data.get('building_code'),
        display_name=data.get('display_name'),
        allow_custom_id=data.get('allow_custom_id'),
        actor_role=role,
    )
    return _config_json(c), 201


@bld_bp.get('/statistics')
@require_roles(*BUILDING_ADMIN_ROLES)
def statistics():
    return buildings.statistics(request.args.get('building') or None)


@bld_bp.get('/identifiers')
@require_roles(*BUILDING_ADMIN_ROLES)
def identifier_history():
    args = request.args
    return identifiers.identifier_history(
        args.get('building') or None,
        args.get('year', type=int),
        limit=args.get('limit'),
        offset=args.get('offset'),
    )


@bld_bp.get('/<building_name>')
@require_roles()
def get_config(building_name: str):
    return _config_json(buildings.get_config(building_name))


@bld_bp.put('/<building_name>')
@require_roles(*BUILDING_ADMIN_ROLES)
def update_config(building_name: str):
    data = request.get_json(silent=True) or {}
    user_id, role = current_actor()
    c = buildings.update_config(
        building_name,
        user_id,
        building_code=data.get('building_code'),
        display_name=data.get('display_name'),
        allow_custom_id=data.get('allow_custom_id'),
        is_active=data.get('is_active'),
        reset_sequence=data.get('reset_sequence'),
        actor_role=role,
    )
    return _config_json(c)


@bld_bp.delete('/<building_name>')
@require_roles(*BUILDING_ADMIN_ROLES)
def delete_config(building_name: str):
    user_id, role = current_actor()
    buildings.delete_config(building_name, user_id, actor_role=role)
    return '', 204


@bld_bp.get('/<building_name>/next-identifier')
@require_roles()
def next_identifier(building_name: str):
    return {'building_name': building_name, 'next_identifier': identifiers.next_identifier(building_name)}


@bld_bp.post('/<building_name>/reset-sequence')
@require_roles(*BUILDING_ADMIN_ROLES)
def reset_sequence(building_name: str):
    user_id, role = current_actor()
    return _config_json(buildings.reset_sequence(building_name, user_id, actor_role=role))
