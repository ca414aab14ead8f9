from __future__ import annotations
from typing import Iterable, Optional
from maintdesk.constants.roles import Role, ROLE_STATUS_PERMISSIONS, parse_role
from maintdesk.errors import RoleNotPermitted, AccessDenied
from maintdesk.models.request import MaintenanceRequest, RequestStatus


def _role_label(role) -> str:
    return getattr(role, 'value', None) or str(role)


def can_set_status(role, target: RequestStatus) -> bool:
    """True when role may request target; unknown roles are denied."""
    parsed = parse_role(role)
    if parsed is None:
        return False
    return target in ROLE_STATUS_PERMISSIONS.get(parsed, frozenset())


def assert_can_set_status(role, target: RequestStatus):
    if not can_set_status(role, target):
        raise RoleNotPermitted(f"Role {_role_label(role)} cannot update status to {target.value}")


def assert_role_in(role, allowed: Iterable[Role], action: str) -> Role:
    """Return the parsed role or raise RoleNotPermitted naming the action."""
    parsed = parse_role(role)
    if parsed is None or parsed not in set(allowed):
        raise RoleNotPermitted(f"Role {_role_label(role)} cannot {action}")
    return parsed


def is_own_request(request: MaintenanceRequest, actor_id: Optional[int]) -> bool:
    return actor_id is not None and request.requested_by_id == actor_id


def assert_can_view(request: MaintenanceRequest, actor_id: Optional[int], role):
    # Customers are scoped to their own requests; staff roles see everything
    if parse_role(role) is Role.CUSTOMER and not is_own_request(request, actor_id):
        raise AccessDenied('Access denied')


def customer_scope(role, actor_id: Optional[int]) -> Optional[int]:
    """Requester id to filter listings by, or None when the role is not scoped."""
    if parse_role(role) is Role.CUSTOMER:
        return actor_id
    return None
