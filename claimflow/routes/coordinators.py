"""
Coordinator Assignment Routes
Which coordinator reviews claims from which department
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload
from typing import List

from claimflow.config.database import get_db, unit_of_work
from claimflow.models.employee import CoordinatorDepartment, Department, Employee, EmployeeRole
from claimflow.schemas.reference import (
    CoordinatorAssignmentCreate, CoordinatorAssignmentResponse, CoordinatorAssignmentUpdate,
)
from claimflow.services.auth_service import auth_service
from claimflow.services.authorization import require
from claimflow.utils.exceptions import NotFoundError, ValidationError
from claimflow.utils.logger import setup_logger, log_audit

logger = setup_logger()
router = APIRouter()


def assignment_response(assignment: CoordinatorDepartment) -> CoordinatorAssignmentResponse:
    coordinator = assignment.coordinator
    department = assignment.department
    return CoordinatorAssignmentResponse(
        id=assignment.id,
        coordinator_id=assignment.coordinator_id,
        coordinator_emp_code=coordinator.emp_code if coordinator else None,
        coordinator_name=coordinator.full_name if coordinator else None,
        department_id=assignment.department_id,
        department_name=department.name if department else None,
        created_at=assignment.created_at,
        updated_at=assignment.updated_at,
    )


def validate_pair(db: Session, coordinator_id: int, department_id: int, exclude_id: int = None):
    """
    Raises:
        NotFoundError: Unknown employee or department
        ValidationError: Employee is not a coordinator, or the pair already exists
    """
    coordinator = db.query(Employee).filter(Employee.id == coordinator_id).first()
    if coordinator is None:
        raise NotFoundError(f"Employee {coordinator_id} not found")
    if coordinator.role is not EmployeeRole.COORDINATOR:
        raise ValidationError(f"Employee {coordinator.emp_code} is not a coordinator")
    if db.query(Department.id).filter(Department.id == department_id).first() is None:
        raise NotFoundError(f"Department {department_id} not found")

    query = db.query(CoordinatorDepartment.id).filter(
        CoordinatorDepartment.coordinator_id == coordinator_id,
        CoordinatorDepartment.department_id == department_id,
    )
    if exclude_id is not None:
        query = query.filter(CoordinatorDepartment.id != exclude_id)
    if query.first() is not None:
        raise ValidationError("Coordinator is already assigned to this department")


@router.get("/", response_model=List[CoordinatorAssignmentResponse])
async def list_assignments(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("coordinator_departments", "read"))
):
    """List coordinator-department assignments"""
    assignments = (
        db.query(CoordinatorDepartment)
        .options(joinedload(CoordinatorDepartment.coordinator), joinedload(CoordinatorDepartment.department))
        .order_by(CoordinatorDepartment.department_id, CoordinatorDepartment.id)
        .all()
    )
    return [assignment_response(assignment) for assignment in assignments]


@router.post("/", response_model=CoordinatorAssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    assignment_data: CoordinatorAssignmentCreate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("coordinator_departments", "create"))
):
    """Assign a coordinator to a department"""
    validate_pair(db, assignment_data.coordinator_id, assignment_data.department_id)

    with unit_of_work(db):
        assignment = CoordinatorDepartment(
            coordinator_id=assignment_data.coordinator_id,
            department_id=assignment_data.department_id,
        )
        db.add(assignment)

    db.refresh(assignment)
    log_audit(
        current_employee.id,
        "COORDINATOR_ASSIGNED",
        f"coordinator={assignment.coordinator_id} department={assignment.department_id}",
    )
    return assignment_response(assignment)


@router.put("/{assignment_id}", response_model=CoordinatorAssignmentResponse)
async def reassign(
    assignment_id: int,
    assignment_data: CoordinatorAssignmentUpdate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("coordinator_departments", "update"))
):
    """Reassign a mapping to another coordinator or department"""
    assignment = db.query(CoordinatorDepartment).filter(CoordinatorDepartment.id == assignment_id).first()
    if assignment is None:
        raise NotFoundError(f"Coordinator assignment {assignment_id} not found")

    coordinator_id = assignment_data.coordinator_id or assignment.coordinator_id
    department_id = assignment_data.department_id or assignment.department_id
    validate_pair(db, coordinator_id, department_id, exclude_id=assignment.id)

    previous = (assignment.coordinator_id, assignment.department_id)
    with unit_of_work(db):
        assignment.coordinator_id = coordinator_id
        assignment.department_id = department_id

    db.refresh(assignment)
    log_audit(
        current_employee.id,
        "COORDINATOR_REASSIGNED",
        f"assignment={assignment.id} from={previous} to={(coordinator_id, department_id)}",
    )
    return assignment_response(assignment)


@router.delete("/{assignment_id}", status_code=status.HTTP_400_BAD_REQUEST)
async def delete_assignment(
    assignment_id: int,
    current_employee: Employee = Depends(auth_service.get_current_employee)
):
    """Assignments are reassigned, never deleted"""
    raise ValidationError("Direct delete is disabled. Reassign the coordinator instead.")
