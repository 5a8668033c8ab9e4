"""
Project Routes
Projects that claims are booked against
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List

from claimflow.config.database import get_db, unit_of_work
from claimflow.models.claim import Claim
from claimflow.models.employee import Employee
from claimflow.models.project import Project
from claimflow.schemas.reference import ProjectCreate, ProjectResponse, ProjectUpdate
from claimflow.services.authorization import require
from claimflow.utils.exceptions import NotFoundError, ValidationError
from claimflow.utils.logger import setup_logger, log_audit

logger = setup_logger()
router = APIRouter()


def get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


def ensure_code_available(db: Session, code: str, exclude_id: int = None):
    query = db.query(Project.id).filter(func.lower(Project.code) == code.lower())
    if exclude_id is not None:
        query = query.filter(Project.id != exclude_id)
    if query.first() is not None:
        raise ValidationError(f"Project code '{code}' already exists")


@router.get("/", response_model=List[ProjectResponse])
async def list_projects(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("projects", "read"))
):
    """List all projects"""
    return db.query(Project).order_by(Project.code).all()


@router.get("/search", response_model=List[ProjectResponse])
async def search_projects(
    code: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("projects", "read"))
):
    """
    Find a project by code

    The general project has no default site; claims against it carry
    their own site details, so its site fields are returned empty.
    """
    projects = db.query(Project).filter(func.lower(Project.code) == code.strip().lower()).all()
    results = []
    for project in projects:
        view = ProjectResponse.model_validate(project)
        if project.is_general:
            view.site_location = None
            view.site_incharge_emp_code = None
        results.append(view)
    return results


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("projects", "create"))
):
    """Create a project"""
    code = project_data.code.strip()
    ensure_code_available(db, code)

    with unit_of_work(db):
        project = Project(
            code=code,
            name=project_data.name.strip(),
            site_location=project_data.site_location or None,
            site_incharge_emp_code=project_data.site_incharge_emp_code or None,
        )
        db.add(project)

    db.refresh(project)
    log_audit(current_employee.id, "PROJECT_CREATED", f"project={project.id} code={project.code}")
    return project


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("projects", "update"))
):
    """Update a project"""
    project = get_project_or_404(db, project_id)
    updates = project_data.model_dump(exclude_unset=True)
    if updates.get("code"):
        updates["code"] = updates["code"].strip()
        ensure_code_available(db, updates["code"], exclude_id=project.id)

    with unit_of_work(db):
        for field, value in updates.items():
            if field.startswith("site_"):
                setattr(project, field, value or None)
            elif value:
                setattr(project, field, value)

    db.refresh(project)
    log_audit(current_employee.id, "PROJECT_UPDATED", f"project={project.id} fields={sorted(updates)}")
    return project


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require("projects", "delete"))
):
    """Delete a project that no expense uses"""
    project = get_project_or_404(db, project_id)

    in_use = db.query(func.count(Claim.id)).filter(Claim.project_id == project.id).scalar()
    if in_use:
        raise ValidationError("Cannot delete project as it is being used in expense forms")

    with unit_of_work(db):
        db.delete(project)

    log_audit(current_employee.id, "PROJECT_DELETED", f"project={project_id}")
    return {"success": True, "message": "Project deleted successfully", "project_id": project_id}
