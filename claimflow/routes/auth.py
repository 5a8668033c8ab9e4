"""
Authentication Routes
"""

from fastapi import APIRouter, Depends

from claimflow.models.employee import Employee
from claimflow.schemas.employee import EmployeeResponse
from claimflow.services.auth_service import auth_service

router = APIRouter()


@router.get("/me", response_model=EmployeeResponse)
async def get_current_employee_info(
    current_employee: Employee = Depends(auth_service.get_current_employee)
):
    """Get current employee information"""
    return current_employee
