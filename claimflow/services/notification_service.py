"""
Notification Dispatcher
Turns claim events into role-specific emails after the change is committed
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from claimflow.models.claim import Claim, ClaimStatus
from claimflow.models.employee import CoordinatorDepartment, Employee, EmployeeRole
from claimflow.services.email_service import email_service
from claimflow.services.totals import ClaimTotals
from claimflow.utils.exceptions import NotificationError
from claimflow.utils.logger import setup_logger, log_notification

logger = setup_logger()


class EventKind:
    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    REVIEWED = "reviewed"


@dataclass
class NotificationEvent:
    """A committed claim change to notify about"""
    kind: str
    claim_id: int
    actor_id: int
    new_status: str
    totals: ClaimTotals
    previous_status: Optional[str] = None
    comment: Optional[str] = None
    # Reviewers recorded on the claim before this change
    prior_reviewer_ids: List[int] = field(default_factory=list)


# Next stage's reviewers to alert, by destination status
NEXT_REVIEWERS = {
    ClaimStatus.COORDINATOR_APPROVED.value: EmployeeRole.HR,
    ClaimStatus.HR_APPROVED.value: EmployeeRole.ACCOUNTS,
}


class NotificationDispatcher:
    """Notification dispatcher"""

    def department_coordinators(self, db: Session, department_id: Optional[int]) -> List[Employee]:
        """Active coordinators assigned to a department"""
        if department_id is None:
            return []
        return (
            db.query(Employee)
            .join(CoordinatorDepartment, CoordinatorDepartment.coordinator_id == Employee.id)
            .filter(
                CoordinatorDepartment.department_id == department_id,
                Employee.role == EmployeeRole.COORDINATOR,
                Employee.is_active.is_(True),
            )
            .order_by(Employee.id)
            .all()
        )

    def claim_data(self, claim: Claim, event: NotificationEvent, reviewer: Optional[Employee]) -> dict:
        """Template data for a claim event"""
        submitter = claim.submitter
        return {
            "claim_id": claim.id,
            "employee_name": submitter.full_name,
            "employee_code": submitter.emp_code,
            "department": submitter.department.name if submitter.department else None,
            "designation": submitter.designation.name if submitter.designation else None,
            "project_code": claim.project.code,
            "project_name": claim.project.name,
            "site_location": claim.site_location or claim.project.site_location,
            "status": event.new_status,
            "previous_status": event.previous_status,
            "comment": event.comment,
            "reviewer_name": reviewer.full_name if reviewer else None,
            "totals": event.totals.as_dict(),
            "claim_amount": event.totals.grand,
        }

    def _deliver(self, send: Callable[[str, str, dict], bool], recipient: Employee, claim_data: dict):
        kind = send.__name__.replace("send_", "")
        try:
            delivered = send(recipient.email, recipient.full_name, claim_data)
        except NotificationError as e:
            logger.error(f"Notification for claim {claim_data['claim_id']} to {recipient.emp_code} failed: {e.message}")
            log_notification(claim_data["claim_id"], recipient.emp_code, kind, False, e.message)
            return
        log_notification(claim_data["claim_id"], recipient.emp_code, kind, bool(delivered))

    def dispatch(self, db: Session, event: NotificationEvent):
        """
        Send every email an event calls for

        Delivery failures are logged per recipient and never raised.

        Args:
            db: Database session
            event: Committed claim event
        """
        try:
            claim = db.query(Claim).filter(Claim.id == event.claim_id).first()
            if claim is None:
                logger.warning(f"Notification skipped: claim {event.claim_id} not found")
                return

            actor = db.query(Employee).filter(Employee.id == event.actor_id).first()
            claim_data = self.claim_data(claim, event, actor)

            if event.kind in (EventKind.SUBMITTED, EventKind.RESUBMITTED):
                send = (
                    email_service.send_submission_notice
                    if event.kind == EventKind.SUBMITTED
                    else email_service.send_resubmission_notice
                )
                for coordinator in self.department_coordinators(db, claim.submitter.department_id):
                    self._deliver(send, coordinator, claim_data)
                return

            self._deliver(email_service.send_status_update, claim.submitter, claim_data)

            next_role = NEXT_REVIEWERS.get(event.new_status)
            if next_role is not None:
                reviewers = (
                    db.query(Employee)
                    .filter(Employee.role == next_role, Employee.is_active.is_(True))
                    .order_by(Employee.id)
                    .all()
                )
                for reviewer in reviewers:
                    self._deliver(email_service.send_action_required, reviewer, claim_data)

            if ClaimStatus(event.new_status).is_rejected and event.prior_reviewer_ids:
                previous_reviewers = (
                    db.query(Employee)
                    .filter(Employee.id.in_(event.prior_reviewer_ids))
                    .order_by(Employee.id)
                    .all()
                )
                for reviewer in previous_reviewers:
                    self._deliver(email_service.send_rejection_notice, reviewer, claim_data)

        except Exception as e:
            # The claim change is already committed
            logger.exception(f"Notification dispatch for claim {event.claim_id} failed: {e}")


# Create singleton instance
notification_dispatcher = NotificationDispatcher()
