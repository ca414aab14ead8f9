"""Typed errors raised by the lifecycle services.

Every error is a werkzeug HTTPException so the application error handler renders
it with the standard JSON error shape; ``error_code`` is the stable machine code
callers and tests assert on.
"""
from __future__ import annotations
from typing import Optional
from werkzeug.exceptions import HTTPException


class DomainError(HTTPException):
    code = 400
    error_code = 'DOMAIN_ERROR'
    default_message = 'Request could not be processed'

    def __init__(self, message: Optional[str] = None):
        super().__init__(description=message or self.default_message)

    @property
    def message(self) -> str:
        return self.description


class NotFound(DomainError):
    code = 404
    error_code = 'NOT_FOUND'
    default_message = 'Resource not found'


class InvalidInput(DomainError):
    error_code = 'INVALID_INPUT'
    default_message = 'Invalid input'


class InvalidTransition(DomainError):
    error_code = 'INVALID_TRANSITION'

    def __init__(self, current, target, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(message or f'Invalid status transition from {_label(current)} to {_label(target)}')


class RoleNotPermitted(DomainError):
    code = 403
    error_code = 'ROLE_NOT_PERMITTED'
    default_message = 'Role not permitted'


class AccessDenied(DomainError):
    code = 403
    error_code = 'ACCESS_DENIED'
    default_message = 'Access denied'


class InvalidTechnician(DomainError):
    error_code = 'INVALID_TECHNICIAN'
    default_message = 'Invalid technician'


class NotAvailableForAssignment(DomainError):
    error_code = 'NOT_AVAILABLE_FOR_ASSIGNMENT'
    default_message = 'Request is not available for assignment'


class ConcurrentUpdate(DomainError):
    code = 409
    error_code = 'CONCURRENT_UPDATE'
    default_message = 'Request was modified by another user; reload and retry'


class DuplicateIdentifier(DomainError):
    code = 409
    error_code = 'DUPLICATE_IDENTIFIER'
    default_message = 'This identifier already exists. Please use a different one.'


class InvalidIdentifierFormat(DomainError):
    error_code = 'INVALID_IDENTIFIER_FORMAT'
    default_message = 'Invalid custom identifier format. Use 3-20 characters, letters, numbers, and hyphens only.'


class BuildingRequired(DomainError):
    error_code = 'BUILDING_REQUIRED'
    default_message = 'Building is required for creating a maintenance request'


class BuildingExists(DomainError):
    code = 409
    error_code = 'BUILDING_EXISTS'
    default_message = 'Building configuration already exists'


class BuildingInUse(DomainError):
    code = 409
    error_code = 'BUILDING_IN_USE'
    default_message = 'Cannot delete building configuration. There are maintenance requests associated with this building.'


class InvalidBuildingCode(DomainError):
    error_code = 'INVALID_BUILDING_CODE'
    default_message = 'Invalid building code. Use 2-10 characters, letters and numbers only.'


class PersistenceError(DomainError):
    code = 500
    error_code = 'INTERNAL_ERROR'
    default_message = 'Unexpected persistence failure'


def _label(value) -> str:
    if value is None:
        return 'NONE'
    return getattr(value, 'value', value)


__all__ = [
    'DomainError', 'NotFound', 'InvalidInput', 'InvalidTransition', 'RoleNotPermitted', 'AccessDenied',
    'InvalidTechnician', 'NotAvailableForAssignment', 'ConcurrentUpdate', 'DuplicateIdentifier',
    'InvalidIdentifierFormat', 'BuildingRequired', 'BuildingExists', 'BuildingInUse', 'InvalidBuildingCode',
    'PersistenceError',
]
