"""
Claim Views
Shapes claims and history entries for API responses
"""

from typing import Dict, List

from sqlalchemy.orm import Session

from claimflow.models.allowance_rate import AllowanceRate
from claimflow.models.claim import Claim
from claimflow.models.history import ClaimHistory
from claimflow.services.notification_service import notification_dispatcher
from claimflow.services.totals import parse_amount, parse_days
from claimflow.schemas.claim import (
    AllowanceEntryOut, AllowanceRateView, ClaimDetail, ClaimSummary, CoordinatorView,
    GroupedAllowance, HistoryEntryOut, HistoryEntryWithData, ScopeTotal,
    StayBillOut, TravelSegmentOut,
)


def claim_summary(claim: Claim) -> ClaimSummary:
    submitter = claim.submitter
    project = claim.project
    return ClaimSummary(
        id=claim.id,
        employee_id=claim.employee_id,
        emp_code=submitter.emp_code,
        employee_name=submitter.full_name,
        department=submitter.department.name if submitter.department else None,
        project_code=project.code,
        project_name=project.name,
        site_location=claim.site_location or project.site_location,
        site_incharge_emp_code=claim.site_incharge_emp_code or project.site_incharge_emp_code,
        claim_amount=claim.claim_amount,
        status=claim.status.value,
        coordinator_reviewed_by=claim.coordinator_reviewed_by,
        coordinator_reviewed_at=claim.coordinator_reviewed_at,
        coordinator_comment=claim.coordinator_comment,
        hr_reviewed_by=claim.hr_reviewed_by,
        hr_reviewed_at=claim.hr_reviewed_at,
        hr_comment=claim.hr_comment,
        accounts_reviewed_by=claim.accounts_reviewed_by,
        accounts_reviewed_at=claim.accounts_reviewed_at,
        accounts_comment=claim.accounts_comment,
        travel_receipt_path=claim.travel_receipt_path,
        hotel_receipt_path=claim.hotel_receipt_path,
        food_receipt_path=claim.food_receipt_path,
        special_approval_path=claim.special_approval_path,
        created_at=claim.created_at,
        updated_at=claim.updated_at,
    )


def group_allowances(rows) -> List[GroupedAllowance]:
    """
    Group allowance rows by scope, in first-seen order

    The per-day amount of a group is taken from its last row.
    """
    groups: Dict[str, list] = {}
    for row in rows:
        groups.setdefault(row.scope, []).append(row)

    grouped = []
    for scope, entries in groups.items():
        total_days = sum(parse_days(entry.no_of_days) for entry in entries)
        amount_per_day = parse_amount(entries[-1].amount)
        grouped.append(GroupedAllowance(
            scope=scope,
            total_days=total_days,
            amount_per_day=amount_per_day,
            total_amount=amount_per_day * total_days,
            entries=[AllowanceEntryOut.model_validate(entry) for entry in entries],
        ))
    return grouped


def scope_totals(*row_sets) -> List[ScopeTotal]:
    """Total days per scope across all allowance kinds"""
    days: Dict[str, int] = {}
    for rows in row_sets:
        for row in rows:
            days[row.scope] = days.get(row.scope, 0) + parse_days(row.no_of_days)
    return [ScopeTotal(scope=scope, total_days=total) for scope, total in days.items()]


def claim_detail(db: Session, claim: Claim) -> ClaimDetail:
    """Full claim with line items, grouped allowances and reference data"""
    submitter = claim.submitter

    rates = []
    if submitter.designation_id is not None:
        rates = (
            db.query(AllowanceRate)
            .filter(AllowanceRate.designation_id == submitter.designation_id)
            .order_by(AllowanceRate.scope)
            .all()
        )
    coordinators = notification_dispatcher.department_coordinators(db, submitter.department_id)

    return ClaimDetail(
        **claim_summary(claim).model_dump(),
        travel_data=[TravelSegmentOut.model_validate(row) for row in claim.travel_segments],
        journey_allowance=[AllowanceEntryOut.model_validate(row) for row in claim.journey_allowances],
        return_allowance=[AllowanceEntryOut.model_validate(row) for row in claim.return_allowances],
        stay_allowance=[AllowanceEntryOut.model_validate(row) for row in claim.stay_allowances],
        hotel_expenses=[StayBillOut.model_validate(row) for row in claim.hotel_expenses],
        food_expenses=[StayBillOut.model_validate(row) for row in claim.food_expenses],
        journey_allowance_grouped=group_allowances(claim.journey_allowances),
        return_allowance_grouped=group_allowances(claim.return_allowances),
        stay_allowance_grouped=group_allowances(claim.stay_allowances),
        allowance_scope_totals=scope_totals(claim.journey_allowances, claim.return_allowances, claim.stay_allowances),
        allowance_rates=[AllowanceRateView.model_validate(rate) for rate in rates],
        coordinators=[CoordinatorView.model_validate(coordinator) for coordinator in coordinators],
    )


def history_entry(entry: ClaimHistory) -> HistoryEntryOut:
    actor = entry.actor
    return HistoryEntryOut(
        id=entry.id,
        claim_id=entry.claim_id,
        action=entry.action,
        previous_status=entry.previous_status,
        new_status=entry.new_status,
        comment=entry.comment,
        action_by=entry.action_by,
        action_at=entry.action_at,
        actor_name=actor.full_name if actor else None,
        actor_emp_code=actor.emp_code if actor else None,
        actor_role=actor.role.value if actor else None,
    )


def history_entry_with_data(entry: ClaimHistory) -> HistoryEntryWithData:
    return HistoryEntryWithData(
        **history_entry(entry).model_dump(),
        travel_data=[TravelSegmentOut.model_validate(row) for row in entry.travel_snapshot],
        journey_allowance=[AllowanceEntryOut.model_validate(row) for row in entry.journey_snapshot],
        return_allowance=[AllowanceEntryOut.model_validate(row) for row in entry.return_snapshot],
        stay_allowance=[AllowanceEntryOut.model_validate(row) for row in entry.stay_snapshot],
        hotel_expenses=[StayBillOut.model_validate(row) for row in entry.hotel_snapshot],
        food_expenses=[StayBillOut.model_validate(row) for row in entry.food_snapshot],
    )
