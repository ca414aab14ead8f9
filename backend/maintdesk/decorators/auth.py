from functools import wraps
from typing import Optional, Tuple
from flask import abort
from flask_jwt_extended import verify_jwt_in_request, get_jwt, get_jwt_identity
from maintdesk.constants.roles import Role, parse_role
from maintdesk.errors import RoleNotPermitted


def current_actor() -> Tuple[int, Optional[str]]:
    """(user_id, role claim) of the verified caller; call after verify_jwt_in_request."""
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        abort(401, description='Invalid token identity')
    return user_id, get_jwt().get('role')


def require_roles(*roles: Role):
    """Reject callers whose role claim is not one of roles; no roles means any known role."""
    allowed = set(roles)

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            claim = get_jwt().get('role')
            role = parse_role(claim)
            if role is None or (allowed and role not in allowed):
                raise RoleNotPermitted(f'Role {claim} cannot access this resource')
            return fn(*args, **kwargs)
        return wrapper
    return outer
