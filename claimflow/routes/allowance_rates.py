"""
Allowance Rate Routes
Reference per-day allowance amounts by designation and scope
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload
from typing import List

from claimflow.config.database import get_db, unit_of_work
from claimflow.models.allowance_rate import AllowanceRate
from claimflow.models.employee import Designation, Employee
from claimflow.schemas.reference import AllowanceRateCreate, AllowanceRateResponse, AllowanceRateUpdate
from claimflow.services.authorization import require
from claimflow.utils.exceptions import NotFoundError, ValidationError
from claimflow.utils.logger import setup_logger, log_audit

logger = setup_logger()
router = APIRouter()


def rate_response(rate: AllowanceRate) -> AllowanceRateResponse:
    return AllowanceRateResponse(
        id=rate.id,
        designation_id=rate.designation_id,
        designation_name=rate.designation.name if rate.designation else None,
        scope=rate.scope,
        amount=rate.amount,
    )


def ensure_unique(db: Session, designation_id: int, scope: str, exclude_id: int = None):
    query = db.query(AllowanceRate.id).filter(
        AllowanceRate.designation_id == designation_id,
        AllowanceRate.scope == scope,
    )
    if exclude_id is not None:
        query = query.filter(AllowanceRate.id != exclude_id)
    if query.first() is not None:
        raise ValidationError("Allowance rate already exists for this designation and scope")


@router.get("/", response_model=List[AllowanceRateResponse])
async def list_allowance_rates(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("allowance_rates", "read"))
):
    """List all allowance rates"""
    rates = (
        db.query(AllowanceRate)
        .options(joinedload(AllowanceRate.designation))
        .order_by(AllowanceRate.designation_id, AllowanceRate.scope)
        .all()
    )
    return [rate_response(rate) for rate in rates]


@router.get("/designation/{designation_id}", response_model=List[AllowanceRateResponse])
async def list_rates_for_designation(
    designation_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("allowance_rates", "read"))
):
    """Allowance rates of one designation"""
    rates = (
        db.query(AllowanceRate)
        .filter(AllowanceRate.designation_id == designation_id)
        .order_by(AllowanceRate.scope)
        .all()
    )
    return [rate_response(rate) for rate in rates]


@router.post("/", response_model=AllowanceRateResponse, status_code=status.HTTP_201_CREATED)
async def create_allowance_rate(
    rate_data: AllowanceRateCreate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("allowance_rates", "create"))
):
    """Create an allowance rate"""
    if db.query(Designation.id).filter(Designation.id == rate_data.designation_id).first() is None:
        raise NotFoundError(f"Designation {rate_data.designation_id} not found")

    scope = rate_data.scope.strip()
    ensure_unique(db, rate_data.designation_id, scope)

    with unit_of_work(db):
        rate = AllowanceRate(designation_id=rate_data.designation_id, scope=scope, amount=rate_data.amount)
        db.add(rate)

    db.refresh(rate)
    log_audit(current_employee.id, "ALLOWANCE_RATE_CREATED", f"rate={rate.id} {scope}={rate.amount}")
    return rate_response(rate)


@router.put("/{rate_id}", response_model=AllowanceRateResponse)
async def update_allowance_rate(
    rate_id: int,
    rate_data: AllowanceRateUpdate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("allowance_rates", "update"))
):
    """Update an allowance rate"""
    rate = db.query(AllowanceRate).filter(AllowanceRate.id == rate_id).first()
    if rate is None:
        raise NotFoundError(f"Allowance rate {rate_id} not found")

    scope = rate_data.scope.strip() if rate_data.scope else rate.scope
    ensure_unique(db, rate.designation_id, scope, exclude_id=rate.id)

    with unit_of_work(db):
        rate.scope = scope
        if rate_data.amount is not None:
            rate.amount = rate_data.amount

    db.refresh(rate)
    log_audit(current_employee.id, "ALLOWANCE_RATE_UPDATED", f"rate={rate.id} {scope}={rate.amount}")
    return rate_response(rate)


@router.delete("/{rate_id}")
async def delete_allowance_rate(
    rate_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("allowance_rates", "delete"))
):
    """Delete an allowance rate"""
    rate = db.query(AllowanceRate).filter(AllowanceRate.id == rate_id).first()
    if rate is None:
        raise NotFoundError(f"Allowance rate {rate_id} not found")

    with unit_of_work(db):
        db.delete(rate)

    log_audit(current_employee.id, "ALLOWANCE_RATE_DELETED", f"rate={rate_id}")
    return {"success": True, "message": "Allowance rate deleted successfully"}
