"""Closed role set and the fixed status permission table.

Adding a role is a data change here; nothing else branches on role names.
"""
from __future__ import annotations
import enum
from typing import Dict, FrozenSet, Optional
from maintdesk.models.request import RequestStatus


class Role(str, enum.Enum):
    CUSTOMER = 'CUSTOMER'
    TECHNICIAN = 'TECHNICIAN'
    BASMA_ADMIN = 'BASMA_ADMIN'
    MAINTENANCE_ADMIN = 'MAINTENANCE_ADMIN'
    SUPER_ADMIN = 'SUPER_ADMIN'


# Target states each role may request through update_status.
ROLE_STATUS_PERMISSIONS: Dict[Role, FrozenSet[RequestStatus]] = {
    Role.CUSTOMER: frozenset({RequestStatus.DRAFT, RequestStatus.SUBMITTED}),
    Role.TECHNICIAN: frozenset({RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED}),
    Role.BASMA_ADMIN: frozenset(),  # view-only
    Role.MAINTENANCE_ADMIN: frozenset({
        RequestStatus.ASSIGNED, RequestStatus.REJECTED, RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED,
    }),
    Role.SUPER_ADMIN: frozenset(RequestStatus),
}

ASSIGNER_ROLES: FrozenSet[Role] = frozenset({Role.SUPER_ADMIN, Role.MAINTENANCE_ADMIN})
SELF_ASSIGN_ROLES: FrozenSet[Role] = frozenset({Role.TECHNICIAN})
BUILDING_ADMIN_ROLES: FrozenSet[Role] = frozenset({Role.SUPER_ADMIN, Role.MAINTENANCE_ADMIN})
CUSTOM_IDENTIFIER_ROLES: FrozenSet[Role] = frozenset({Role.SUPER_ADMIN, Role.MAINTENANCE_ADMIN})
ALL_ROLES: FrozenSet[Role] = frozenset(Role)


def parse_role(value) -> Optional[Role]:
    """Return the Role for value (member or string), or None when it is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


__all__ = [
    'Role', 'ROLE_STATUS_PERMISSIONS', 'ASSIGNER_ROLES', 'SELF_ASSIGN_ROLES', 'BUILDING_ADMIN_ROLES',
    'CUSTOM_IDENTIFIER_ROLES', 'ALL_ROLES', 'parse_role',
]
