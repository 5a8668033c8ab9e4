"""
Authorization Policy
One declarative table of which roles may perform which actions per resource
"""

from typing import Dict, FrozenSet

from fastapi import Depends

from claimflow.models.employee import Employee, EmployeeRole
from claimflow.services.auth_service import auth_service
from claimflow.utils.exceptions import AuthorizationError

ALL_ROLES = frozenset(EmployeeRole)
MANAGERS = frozenset({EmployeeRole.ADMIN, EmployeeRole.HR})
REVIEWERS = frozenset({EmployeeRole.COORDINATOR, EmployeeRole.HR, EmployeeRole.ACCOUNTS, EmployeeRole.ADMIN})

# resource -> action -> roles allowed
POLICY: Dict[str, Dict[str, FrozenSet[EmployeeRole]]] = {
    "claims": {
        "read": ALL_ROLES,
        "submit": ALL_ROLES,
        "edit": ALL_ROLES,
        # Whether a review is permitted is decided by the review state machine
        "review": ALL_ROLES,
        "review_queue": REVIEWERS,
    },
    "projects": {
        "read": ALL_ROLES,
        "create": MANAGERS,
        "update": MANAGERS,
        "delete": MANAGERS,
    },
    "allowance_rates": {
        "read": ALL_ROLES,
        "create": MANAGERS,
        "update": MANAGERS,
        "delete": MANAGERS,
    },
    "departments": {
        "read": ALL_ROLES,
    },
    "designations": {
        "read": ALL_ROLES,
    },
    "coordinator_departments": {
        "read": MANAGERS,
        "create": MANAGERS,
        "update": MANAGERS,
        # No delete: mappings are reassigned instead
    },
}


def is_allowed(role: EmployeeRole, resource: str, action: str) -> bool:
    return role in POLICY.get(resource, {}).get(action, frozenset())


def authorize(employee: Employee, resource: str, action: str):
    """
    Raises:
        AuthorizationError: If the employee's role may not perform the action
    """
    if not is_allowed(employee.role, resource, action):
        raise AuthorizationError(
            f"Access denied. Role '{employee.role.value}' is not allowed: {resource}.{action}"
        )


def require(resource: str, action: str):
    """
    Dependency that authenticates and checks the policy table

    Args:
        resource: Resource name in POLICY
        action: Action name
    """
    async def permission_checker(current_employee: Employee = Depends(auth_service.get_current_employee)):
        authorize(current_employee, resource, action)
        return current_employee

    return permission_checker
