"""
Reference Data Schemas - Pydantic V2
Projects, allowance rates and coordinator-department assignments
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


# ============================================================================
# PROJECTS
# ============================================================================

class ProjectCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    site_location: Optional[str] = None
    site_incharge_emp_code: Optional[str] = None


class ProjectUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    site_location: Optional[str] = None
    site_incharge_emp_code: Optional[str] = None


class ProjectResponse(BaseModel):
    id: int
    code: str
    name: str
    site_location: Optional[str] = None
    site_incharge_emp_code: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# ALLOWANCE RATES
# ============================================================================

class AllowanceRateCreate(BaseModel):
    designation_id: int
    scope: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)


class AllowanceRateUpdate(BaseModel):
    scope: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[Decimal] = Field(None, ge=0)


class AllowanceRateResponse(BaseModel):
    id: int
    designation_id: int
    designation_name: Optional[str] = None
    scope: str
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# COORDINATOR ASSIGNMENTS
# ============================================================================

class CoordinatorAssignmentCreate(BaseModel):
    coordinator_id: int
    department_id: int


class CoordinatorAssignmentUpdate(BaseModel):
    coordinator_id: Optional[int] = None
    department_id: Optional[int] = None


class CoordinatorAssignmentResponse(BaseModel):
    id: int
    coordinator_id: int
    coordinator_emp_code: Optional[str] = None
    coordinator_name: Optional[str] = None
    department_id: int
    department_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
