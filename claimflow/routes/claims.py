"""
Expense Claim Routes
Submit, edit/resubmit, review, list and history endpoints
"""

import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from claimflow.config.database import get_db
from claimflow.models.employee import Employee
from claimflow.schemas.claim import (
    ClaimDetail, ClaimEdit, ClaimPayload, ClaimSummary, HistoryEntryOut,
    HistoryEntryWithData, ReviewActionIn,
)
from claimflow.services.authorization import require
from claimflow.services.claim_service import ReceiptDeletions, ReceiptUploads, claim_service
from claimflow.services.claim_views import claim_detail, claim_summary, history_entry, history_entry_with_data
from claimflow.utils.exceptions import ValidationError
from claimflow.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


def parse_form_data(data: str, schema):
    """
    Parse the JSON `data` field of a multipart form into a request schema

    Raises:
        ValidationError: If `data` is not JSON
        RequestValidationError: If it does not match the schema
    """
    try:
        raw = json.loads(data)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON in 'data' field")
    if not isinstance(raw, dict):
        raise ValidationError("'data' must be a JSON object")
    try:
        return schema.model_validate(raw)
    except SchemaValidationError as e:
        raise RequestValidationError(e.errors(include_url=False))


@router.get("/", response_model=List[ClaimSummary])
async def list_expenses(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "read"))
):
    """List expenses visible to the current employee, newest first"""
    return [claim_summary(claim) for claim in claim_service.list_claims(db, current_employee)]


@router.get("/my", response_model=List[ClaimSummary])
async def list_my_expenses(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "read"))
):
    """List the current employee's own expenses, newest first"""
    return [claim_summary(claim) for claim in claim_service.own_claims(db, current_employee)]


@router.get("/pending", response_model=List[ClaimSummary])
async def list_pending_expenses(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "review_queue"))
):
    """Expenses waiting on the current reviewer's stage"""
    return [claim_summary(claim) for claim in claim_service.pending_claims(db, current_employee)]


@router.get("/{claim_id}", response_model=ClaimDetail)
async def get_expense(
    claim_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "read"))
):
    """Get expense detail with line items and grouped allowances"""
    claim = claim_service.get_visible_claim(db, current_employee, claim_id)
    return claim_detail(db, claim)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def submit_expense(
    data: str = Form(...),
    travel_receipt: Optional[UploadFile] = File(None),
    hotel_receipt: Optional[UploadFile] = File(None),
    food_receipt: Optional[UploadFile] = File(None),
    special_approval: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "submit"))
):
    """
    Submit a new expense claim

    `data` carries the claim as JSON: project_code, site details for the
    general project, and the line-item lists. The special approval
    attachment must be a PDF.
    """
    payload = parse_form_data(data, ClaimPayload)
    receipts = ReceiptUploads(
        travel_receipt=travel_receipt,
        hotel_receipt=hotel_receipt,
        food_receipt=food_receipt,
        special_approval=special_approval,
    )
    claim = claim_service.submit(db, current_employee, payload, receipts)
    return {
        "success": True,
        "message": "Expense submitted successfully",
        "expense": claim_detail(db, claim),
    }


@router.put("/{claim_id}")
async def update_expense(
    claim_id: int,
    data: str = Form(...),
    travel_receipt: Optional[UploadFile] = File(None),
    hotel_receipt: Optional[UploadFile] = File(None),
    food_receipt: Optional[UploadFile] = File(None),
    special_approval: Optional[UploadFile] = File(None),
    delete_travel_receipt: bool = Form(False),
    delete_hotel_receipt: bool = Form(False),
    delete_food_receipt: bool = Form(False),
    delete_special_approval: bool = Form(False),
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "edit"))
):
    """Edit an expense and resubmit it for review from the coordinator stage"""
    edit = parse_form_data(data, ClaimEdit)
    receipts = ReceiptUploads(
        travel_receipt=travel_receipt,
        hotel_receipt=hotel_receipt,
        food_receipt=food_receipt,
        special_approval=special_approval,
    )
    deletions = ReceiptDeletions(
        delete_travel_receipt=delete_travel_receipt,
        delete_hotel_receipt=delete_hotel_receipt,
        delete_food_receipt=delete_food_receipt,
        delete_special_approval=delete_special_approval,
    )
    claim = claim_service.resubmit(db, current_employee, claim_id, edit, receipts, deletions)
    return {
        "success": True,
        "message": "Expense updated and resubmitted",
        "expense": claim_detail(db, claim),
    }


@router.post("/{claim_id}/review")
async def review_expense(
    claim_id: int,
    review: ReviewActionIn,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "review"))
):
    """Approve or reject an expense at the reviewer's stage"""
    claim = claim_service.review(db, current_employee, claim_id, review.action, review.comment)
    return {
        "success": True,
        "message": f"Expense status updated to {claim.status.value}",
        "expense": claim_summary(claim),
    }


@router.get("/{claim_id}/history", response_model=List[HistoryEntryOut])
async def get_expense_history(
    claim_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "read"))
):
    """History of an expense, newest first"""
    return [history_entry(entry) for entry in claim_service.history(db, current_employee, claim_id)]


@router.get("/{claim_id}/history-with-data", response_model=List[HistoryEntryWithData])
async def get_expense_history_with_data(
    claim_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("claims", "read"))
):
    """History of an expense with the line items as they were at each entry"""
    entries = claim_service.history(db, current_employee, claim_id, with_snapshots=True)
    return [history_entry_with_data(entry) for entry in entries]
