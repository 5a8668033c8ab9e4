"""
Visibility Filter
Which claims a viewer may see, as a query predicate
"""

from sqlalchemy import or_, select, true
from sqlalchemy.orm import Session

from claimflow.models.claim import Claim
from claimflow.models.employee import CoordinatorDepartment, Employee, EmployeeRole


def assigned_department_ids(coordinator_id: int):
    """Subquery of department IDs assigned to a coordinator"""
    return select(CoordinatorDepartment.department_id).where(
        CoordinatorDepartment.coordinator_id == coordinator_id
    )


def visibility_predicate(viewer: Employee):
    """
    Build the claim filter for a viewer

    Own claims are always visible. Beyond that:
    admin sees everything; coordinator sees claims from assigned departments;
    hr sees claims past coordinator review; accounts sees claims past HR review.

    Args:
        viewer: Authenticated employee

    Returns:
        SQLAlchemy boolean clause over Claim
    """
    own = Claim.employee_id == viewer.id

    if viewer.role is EmployeeRole.ADMIN:
        return true()
    if viewer.role is EmployeeRole.COORDINATOR:
        return or_(
            Claim.submitter.has(Employee.department_id.in_(assigned_department_ids(viewer.id))),
            own,
        )
    if viewer.role is EmployeeRole.HR:
        return or_(Claim.coordinator_reviewed_by.isnot(None), own)
    if viewer.role is EmployeeRole.ACCOUNTS:
        return or_(Claim.hr_reviewed_by.isnot(None), own)
    return own


def is_visible(db: Session, viewer: Employee, claim_id: int) -> bool:
    """Re-derive the list predicate for a single claim"""
    return db.query(Claim.id).filter(Claim.id == claim_id, visibility_predicate(viewer)).first() is not None
