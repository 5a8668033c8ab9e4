"""
Organization Routes
Departments and designations referenced by employees, rates and assignments
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from claimflow.config.database import get_db
from claimflow.models.employee import Department, Designation, Employee
from claimflow.schemas.employee import DepartmentResponse, DesignationResponse
from claimflow.services.authorization import require

router = APIRouter()


@router.get("/departments", response_model=List[DepartmentResponse])
async def list_departments(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("departments", "read"))
):
    """List departments by name"""
    return db.query(Department).order_by(Department.name).all()


@router.get("/designations", response_model=List[DesignationResponse])
async def list_designations(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("designations", "read"))
):
    """List designations by name"""
    return db.query(Designation).order_by(Designation.name).all()
