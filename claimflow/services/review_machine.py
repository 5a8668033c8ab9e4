"""
Review State Machine
Decides the next status of a claim for a reviewer's approve/reject action
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from claimflow.models.claim import ClaimStatus, ReviewStage
from claimflow.models.employee import EmployeeRole
from claimflow.utils.exceptions import AuthorizationError, InvalidTransitionError

APPROVE = "approve"
REJECT = "reject"

SELF_APPROVAL_MESSAGE = (
    "You are not allowed to approve/reject your own expense. "
    "Your coordinator assignment does not match your department."
)

# (acting role, current status) -> {action: next status}
TRANSITIONS: Dict[Tuple[EmployeeRole, ClaimStatus], Dict[str, ClaimStatus]] = {
    (EmployeeRole.COORDINATOR, ClaimStatus.PENDING): {
        APPROVE: ClaimStatus.COORDINATOR_APPROVED,
        REJECT: ClaimStatus.COORDINATOR_REJECTED,
    },
    (EmployeeRole.HR, ClaimStatus.COORDINATOR_APPROVED): {
        APPROVE: ClaimStatus.HR_APPROVED,
        REJECT: ClaimStatus.HR_REJECTED,
    },
    (EmployeeRole.ACCOUNTS, ClaimStatus.HR_APPROVED): {
        APPROVE: ClaimStatus.ACCOUNTS_APPROVED,
        REJECT: ClaimStatus.ACCOUNTS_REJECTED,
    },
}

# Role that normally acts on a claim in the given status; admins act as it
STAGE_OWNER: Dict[ClaimStatus, EmployeeRole] = {
    status: role for (role, status) in TRANSITIONS
}


@dataclass(frozen=True)
class Transition:
    """Outcome of a permitted review action"""
    previous_status: ClaimStatus
    next_status: ClaimStatus
    action: str

    @property
    def stage(self) -> ReviewStage:
        """Stage whose reviewer triple is written"""
        return self.next_status.stage

    @property
    def is_rejection(self) -> bool:
        return self.next_status.is_rejected


def check_self_approval(role: EmployeeRole, is_own_claim: bool, has_department_assignment: bool):
    """
    A coordinator may review their own claim only when assigned to their own department

    Raises:
        AuthorizationError: If the rule is violated
    """
    if role is EmployeeRole.COORDINATOR and is_own_claim and not has_department_assignment:
        raise AuthorizationError(SELF_APPROVAL_MESSAGE)


def decide(
    role: EmployeeRole,
    current_status: ClaimStatus,
    action: str,
    is_own_claim: bool = False,
    has_department_assignment: bool = False,
) -> Transition:
    """
    Validate a review action and compute the transition

    Args:
        role: Reviewer's role
        current_status: Claim status before the action
        action: "approve" or "reject"
        is_own_claim: Reviewer is the claim's submitter
        has_department_assignment: Reviewer is an assigned coordinator of their own department

    Returns:
        Transition

    Raises:
        AuthorizationError: Self-approval rule violated
        InvalidTransitionError: (role, status, action) not in the table
    """
    check_self_approval(role, is_own_claim, has_department_assignment)

    acting_role: Optional[EmployeeRole] = role
    if role is EmployeeRole.ADMIN:
        acting_role = STAGE_OWNER.get(current_status)

    next_status = TRANSITIONS.get((acting_role, current_status), {}).get(action)
    if next_status is None:
        raise InvalidTransitionError(role.value, action, current_status.value)

    return Transition(previous_status=current_status, next_status=next_status, action=action)
