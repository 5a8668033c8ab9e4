"""
Claim Service
Submit, edit/resubmit, review and read expense claims

Every write runs inside one unit of work; notifications are sent only
after it commits.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from claimflow.config.database import unit_of_work
from claimflow.models.claim import (
    Claim, ClaimStatus, LineItems, StageReview, TravelSegment,
    JourneyAllowance, ReturnAllowance, StayAllowance, HotelExpense, FoodExpense,
)
from claimflow.models.employee import CoordinatorDepartment, Employee, EmployeeRole
from claimflow.models.history import ClaimHistory, HistoryAction
from claimflow.models.project import Project
from claimflow.schemas.claim import ClaimEdit, ClaimPayload
from claimflow.services import review_machine
from claimflow.services.history_service import history_service
from claimflow.services.notification_service import EventKind, NotificationEvent, notification_dispatcher
from claimflow.services.totals import MAX_AMOUNT, MAX_DAYS, exceeds_max_amount, parse_amount, parse_days, totals_for_items
from claimflow.services.visibility import assigned_department_ids, is_visible, visibility_predicate
from claimflow.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from claimflow.utils.file_handler import delete_file, save_upload_file, validate_receipt
from claimflow.utils.logger import setup_logger, log_audit

logger = setup_logger()


@dataclass
class ReceiptUploads:
    """Optional receipt files of a submit or edit request"""
    travel_receipt: Optional[UploadFile] = None
    hotel_receipt: Optional[UploadFile] = None
    food_receipt: Optional[UploadFile] = None
    special_approval: Optional[UploadFile] = None

    def validate(self):
        for receipt in fields(self):
            upload = getattr(self, receipt.name)
            if upload is not None:
                validate_receipt(upload, receipt.name, pdf_only=receipt.name == "special_approval")

    def provided(self):
        """(field name, upload) pairs for the files actually sent"""
        return [(receipt.name, getattr(self, receipt.name)) for receipt in fields(self) if getattr(self, receipt.name) is not None]


@dataclass
class ReceiptDeletions:
    delete_travel_receipt: bool = False
    delete_hotel_receipt: bool = False
    delete_food_receipt: bool = False
    delete_special_approval: bool = False


def _path_column(receipt_name: str) -> str:
    return "special_approval_path" if receipt_name == "special_approval" else f"{receipt_name}_path"


def build_line_items(payload: ClaimPayload) -> LineItems:
    """
    Turn request rows into line-item rows

    Amounts are stored clamped and quantized so that totals recomputed
    from stored rows equal the totals computed here.
    """
    def allowances(model, rows):
        return [
            model(
                scope=row.scope,
                from_date=row.from_date,
                to_date=row.to_date,
                no_of_days=parse_days(row.no_of_days),
                amount=parse_amount(row.amount),
            )
            for row in rows
        ]

    def stay_bills(model, rows):
        return [
            model(
                from_date=row.from_date,
                to_date=row.to_date,
                sharing=row.sharing,
                location=row.location,
                bill_amount=parse_amount(row.bill_amount),
            )
            for row in rows
        ]

    return LineItems(
        travel=[
            TravelSegment(
                travel_date=row.travel_date,
                from_location=row.from_location,
                to_location=row.to_location,
                mode_of_transport=row.mode_of_transport,
                fare_amount=parse_amount(row.fare_amount),
            )
            for row in payload.travel_data
        ],
        journey=allowances(JourneyAllowance, payload.journey_allowance),
        return_=allowances(ReturnAllowance, payload.return_allowance),
        stay=allowances(StayAllowance, payload.stay_allowance),
        hotel=stay_bills(HotelExpense, payload.hotel_expenses),
        food=stay_bills(FoodExpense, payload.food_expenses),
    )


def check_storage_limits(payload: ClaimPayload):
    """
    Raises:
        ValidationError: An amount or day count is too large to store
    """
    allowance_rows = payload.journey_allowance + payload.return_allowance + payload.stay_allowance
    amounts = (
        [("fare_amount", row.fare_amount) for row in payload.travel_data]
        + [("amount", row.amount) for row in allowance_rows]
        + [("bill_amount", row.bill_amount) for row in payload.hotel_expenses + payload.food_expenses]
    )
    for field_name, value in amounts:
        if exceeds_max_amount(value):
            raise ValidationError(f"{field_name} exceeds the maximum of {MAX_AMOUNT}")
    if any(parse_days(row.no_of_days) > MAX_DAYS for row in allowance_rows):
        raise ValidationError(f"no_of_days exceeds the maximum of {MAX_DAYS}")


class ClaimService:
    """Claim workflow service"""

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_claim_or_404(self, db: Session, claim_id: int) -> Claim:
        claim = db.query(Claim).filter(Claim.id == claim_id).first()
        if claim is None:
            raise NotFoundError(f"Expense {claim_id} not found")
        return claim

    def resolve_project(self, db: Session, payload: ClaimPayload):
        """
        Find the project and the site details to store with the claim

        Returns:
            tuple: (project, site_location, site_incharge_emp_code)

        Raises:
            NotFoundError: Unknown project code
            ValidationError: General project without site details
        """
        code = payload.project_code.strip()
        project = db.query(Project).filter(func.lower(Project.code) == code.lower()).first()
        if project is None:
            raise NotFoundError(f"Project '{code}' not found")

        if not project.is_general:
            return project, None, None

        site_location = (payload.site_location or "").strip()
        site_incharge = (payload.site_incharge_emp_code or "").strip()
        if not site_location:
            raise ValidationError("Site location is required for the general project")
        if not site_incharge:
            raise ValidationError("Site incharge employee code is required for the general project")
        return project, site_location, site_incharge

    def has_own_department_assignment(self, db: Session, employee: Employee) -> bool:
        """Whether the employee is an assigned coordinator of their own department"""
        if employee.department_id is None:
            return False
        return db.query(CoordinatorDepartment.id).filter(
            CoordinatorDepartment.coordinator_id == employee.id,
            CoordinatorDepartment.department_id == employee.department_id,
        ).first() is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _prepare(self, db: Session, payload: ClaimPayload, receipts: ReceiptUploads):
        """Validate everything a write needs before touching the store"""
        project, site_location, site_incharge = self.resolve_project(db, payload)
        check_storage_limits(payload)
        items = build_line_items(payload)
        totals = totals_for_items(items)
        if totals.grand <= 0:
            raise ValidationError("claim amount must be positive")
        if totals.grand > MAX_AMOUNT:
            raise ValidationError(f"claim amount exceeds the maximum of {MAX_AMOUNT}")
        receipts.validate()
        return project, site_location, site_incharge, items, totals

    def submit(self, db: Session, employee: Employee, payload: ClaimPayload, receipts: Optional[ReceiptUploads] = None) -> Claim:
        """
        Submit a new claim in pending status

        Args:
            db: Database session
            employee: Submitter
            payload: Claim payload
            receipts: Uploaded receipts

        Returns:
            Claim: The stored claim

        Raises:
            ValidationError: Bad input or non-positive total; nothing is stored
            NotFoundError: Unknown project
        """
        receipts = receipts or ReceiptUploads()
        project, site_location, site_incharge, items, totals = self._prepare(db, payload, receipts)

        saved_paths = {_path_column(name): save_upload_file(upload, employee.id) for name, upload in receipts.provided()}

        try:
            with unit_of_work(db):
                claim = Claim(
                    employee_id=employee.id,
                    project_id=project.id,
                    site_location=site_location,
                    site_incharge_emp_code=site_incharge,
                    claim_amount=totals.grand,
                    status=ClaimStatus.PENDING,
                    **saved_paths,
                )
                claim.replace_line_items(items)
                db.add(claim)
                db.flush()

                history_service.append(
                    db, claim,
                    action=HistoryAction.SUBMITTED,
                    previous_status=None,
                    new_status=ClaimStatus.PENDING.value,
                    comment=None,
                    actor_id=employee.id,
                )
        except Exception:
            for path in saved_paths.values():
                delete_file(path)
            raise

        db.refresh(claim)
        logger.info(f"Expense {claim.id} submitted by {employee.emp_code} for {totals.grand}")
        log_audit(employee.id, "CLAIM_SUBMITTED", f"claim={claim.id} amount={totals.grand}")

        notification_dispatcher.dispatch(db, NotificationEvent(
            kind=EventKind.SUBMITTED,
            claim_id=claim.id,
            actor_id=employee.id,
            new_status=ClaimStatus.PENDING.value,
            totals=totals,
        ))
        return claim

    def resubmit(
        self,
        db: Session,
        employee: Employee,
        claim_id: int,
        edit: ClaimEdit,
        receipts: Optional[ReceiptUploads] = None,
        deletions: Optional[ReceiptDeletions] = None,
    ) -> Claim:
        """
        Edit a claim and restart its review cycle

        Line items are replaced wholesale, the amount recomputed, the status
        reset to pending and all three stage reviews cleared.

        Raises:
            NotFoundError: Unknown claim or project
            AuthorizationError: Not the submitter (or an admin)
            ValidationError: Claim already fully approved, bad input, or non-positive total
        """
        receipts = receipts or ReceiptUploads()
        deletions = deletions or ReceiptDeletions()

        claim = self.get_claim_or_404(db, claim_id)
        if claim.employee_id != employee.id and employee.role is not EmployeeRole.ADMIN:
            raise AuthorizationError("You can only edit your own expense")
        if claim.status is ClaimStatus.ACCOUNTS_APPROVED:
            raise ValidationError("Expense is already approved by accounts and cannot be edited")

        project, site_location, site_incharge, items, totals = self._prepare(db, edit, receipts)
        previous_status = claim.status

        saved_paths = {_path_column(name): save_upload_file(upload, claim.employee_id) for name, upload in receipts.provided()}
        replaced_files = []

        try:
            with unit_of_work(db):
                claim.project_id = project.id
                claim.site_location = site_location
                claim.site_incharge_emp_code = site_incharge
                claim.replace_line_items(items)
                claim.claim_amount = totals.grand
                claim.status = ClaimStatus.PENDING
                claim.clear_reviews()

                for flag in fields(deletions):
                    if getattr(deletions, flag.name):
                        column = _path_column(flag.name[len("delete_"):])
                        replaced_files.append(getattr(claim, column))
                        setattr(claim, column, None)
                for column, path in saved_paths.items():
                    replaced_files.append(getattr(claim, column))
                    setattr(claim, column, path)

                db.flush()

                history_service.append(
                    db, claim,
                    action=HistoryAction.RESUBMITTED,
                    previous_status="rejected",
                    new_status=ClaimStatus.PENDING.value,
                    comment=edit.comment,
                    actor_id=employee.id,
                )
        except Exception:
            for path in saved_paths.values():
                delete_file(path)
            raise

        for path in replaced_files:
            delete_file(path)

        db.refresh(claim)
        logger.info(f"Expense {claim.id} resubmitted by {employee.emp_code} (was {previous_status.value})")
        log_audit(employee.id, "CLAIM_RESUBMITTED", f"claim={claim.id} from={previous_status.value} amount={totals.grand}")

        notification_dispatcher.dispatch(db, NotificationEvent(
            kind=EventKind.RESUBMITTED,
            claim_id=claim.id,
            actor_id=employee.id,
            previous_status=previous_status.value,
            new_status=ClaimStatus.PENDING.value,
            comment=edit.comment,
            totals=totals,
        ))
        return claim

    def review(self, db: Session, employee: Employee, claim_id: int, action: str, comment: Optional[str] = None) -> Claim:
        """
        Approve or reject a claim at the reviewer's stage

        Args:
            db: Database session
            employee: Reviewer
            claim_id: Claim ID
            action: "approve" or "reject"
            comment: Reviewer comment

        Returns:
            Claim: The updated claim

        Raises:
            NotFoundError: Unknown claim
            AuthorizationError: Self-approval rule, or claim outside a coordinator's departments
            InvalidTransitionError: Action not allowed for this role and status
        """
        claim = self.get_claim_or_404(db, claim_id)
        is_own_claim = claim.employee_id == employee.id

        transition = review_machine.decide(
            employee.role,
            claim.status,
            action,
            is_own_claim=is_own_claim,
            has_department_assignment=is_own_claim and self.has_own_department_assignment(db, employee),
        )

        if employee.role is EmployeeRole.COORDINATOR and not is_own_claim and not is_visible(db, employee, claim.id):
            raise AuthorizationError("You are not assigned as coordinator for this employee's department")

        prior_reviewer_ids = [review.reviewer_id for review in claim.reviews()]
        history_action = HistoryAction.REJECTED if transition.is_rejection else HistoryAction.APPROVED

        with unit_of_work(db):
            claim.status = transition.next_status
            claim.record_review(StageReview(
                stage=transition.stage,
                reviewer_id=employee.id,
                reviewed_at=datetime.utcnow(),
                comment=comment,
            ))
            db.flush()

            history_service.append(
                db, claim,
                action=history_action,
                previous_status=transition.previous_status.value,
                new_status=transition.next_status.value,
                comment=comment,
                actor_id=employee.id,
            )

        db.refresh(claim)
        totals = totals_for_items(claim.line_items())

        logger.info(
            f"Expense {claim.id} {history_action} by {employee.emp_code}: "
            f"{transition.previous_status.value} -> {transition.next_status.value}"
        )
        log_audit(
            employee.id,
            f"CLAIM_{history_action.upper()}",
            f"claim={claim.id} from={transition.previous_status.value} to={transition.next_status.value}",
        )

        notification_dispatcher.dispatch(db, NotificationEvent(
            kind=EventKind.REVIEWED,
            claim_id=claim.id,
            actor_id=employee.id,
            previous_status=transition.previous_status.value,
            new_status=transition.next_status.value,
            comment=comment,
            totals=totals,
            prior_reviewer_ids=prior_reviewer_ids,
        ))
        return claim

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_claims(self, db: Session, viewer: Employee) -> List[Claim]:
        """Claims visible to the viewer, newest first"""
        return (
            db.query(Claim)
            .filter(visibility_predicate(viewer))
            .order_by(Claim.created_at.desc(), Claim.id.desc())
            .all()
        )

    def own_claims(self, db: Session, employee: Employee) -> List[Claim]:
        """Claims the employee submitted, newest first, whatever their role"""
        return (
            db.query(Claim)
            .filter(Claim.employee_id == employee.id)
            .order_by(Claim.created_at.desc(), Claim.id.desc())
            .all()
        )

    def pending_claims(self, db: Session, viewer: Employee) -> List[Claim]:
        """
        Claims waiting on the viewer's review stage

        Coordinators see pending claims of their assigned departments,
        hr sees coordinator-approved claims, accounts sees hr-approved
        claims, and admins see all three queues.
        """
        query = db.query(Claim)
        if viewer.role is EmployeeRole.COORDINATOR:
            query = query.filter(
                Claim.status == ClaimStatus.PENDING,
                Claim.submitter.has(Employee.department_id.in_(assigned_department_ids(viewer.id))),
            )
        elif viewer.role is EmployeeRole.ADMIN:
            query = query.filter(Claim.status.in_(list(review_machine.STAGE_OWNER)))
        else:
            awaiting = [status for status, role in review_machine.STAGE_OWNER.items() if role is viewer.role]
            query = query.filter(Claim.status.in_(awaiting))
        return query.order_by(Claim.created_at.asc(), Claim.id.asc()).all()

    def get_visible_claim(self, db: Session, viewer: Employee, claim_id: int) -> Claim:
        """
        Raises:
            NotFoundError: Unknown claim
            AuthorizationError: Claim outside the viewer's visibility
        """
        claim = self.get_claim_or_404(db, claim_id)
        if not is_visible(db, viewer, claim.id):
            raise AuthorizationError("You are not allowed to view this expense")
        return claim

    def history(self, db: Session, viewer: Employee, claim_id: int, with_snapshots: bool = False) -> List[ClaimHistory]:
        claim = self.get_visible_claim(db, viewer, claim_id)
        return history_service.list_entries(db, claim.id, with_snapshots=with_snapshots)


# Create singleton instance
claim_service = ClaimService()
