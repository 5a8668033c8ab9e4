"""
Employee Schemas - Pydantic V2
"""

from pydantic import BaseModel, ConfigDict
from typing import Optional

from claimflow.models.employee import EmployeeRole


class EmployeeResponse(BaseModel):
    """Employee response schema"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    emp_code: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str
    email: Optional[str] = None
    role: EmployeeRole
    department_id: Optional[int] = None
    designation_id: Optional[int] = None
    is_active: bool


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class DesignationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
