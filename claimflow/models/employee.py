"""
Employee Models
Employees, their departments and designations, and the
coordinator-to-department assignments that route claims for review
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from claimflow.config.database import Base, string_enum
from claimflow.utils.helpers import compose_full_name


class EmployeeRole(str, enum.Enum):
    """Employee roles"""
    USER = "user"
    COORDINATOR = "coordinator"
    HR = "hr"
    ACCOUNTS = "accounts"
    ADMIN = "admin"


class Department(Base):
    """Department model"""
    __tablename__ = "departments"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), unique=True, nullable=False)
    
    employees = relationship("Employee", back_populates="department")
    coordinator_assignments = relationship("CoordinatorDepartment", back_populates="department")
    
    def __repr__(self):
        return f"<Department {self.name}>"


class Designation(Base):
    """Designation model; allowance rates are keyed by designation"""
    __tablename__ = "designations"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), unique=True, nullable=False)
    
    employees = relationship("Employee", back_populates="designation")
    allowance_rates = relationship("AllowanceRate", back_populates="designation")
    
    def __repr__(self):
        return f"<Designation {self.name}>"


class Employee(Base):
    """Employee model"""
    __tablename__ = "employees"
    
    id = Column(Integer, primary_key=True, index=True)
    emp_code = Column(String(50), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    
    role = Column(string_enum(EmployeeRole), default=EmployeeRole.USER, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    designation_id = Column(Integer, ForeignKey("designations.id"), nullable=True)
    
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    department = relationship("Department", back_populates="employees")
    designation = relationship("Designation", back_populates="employees")
    claims = relationship("Claim", back_populates="submitter", foreign_keys="Claim.employee_id")
    coordinated_departments = relationship("CoordinatorDepartment", back_populates="coordinator")
    
    def __repr__(self):
        return f"<Employee {self.emp_code} ({self.role.value})>"
    
    @property
    def full_name(self) -> str:
        return compose_full_name(self.first_name, self.middle_name, self.last_name)


class CoordinatorDepartment(Base):
    """
    Department-coordinator assignment
    
    Governs which claims a coordinator sees and whether a coordinator may
    review their own claim. Rows are reassigned, never deleted directly.
    """
    __tablename__ = "coordinator_departments"
    __table_args__ = (
        UniqueConstraint("coordinator_id", "department_id", name="uq_coordinator_department"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    coordinator_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    coordinator = relationship("Employee", back_populates="coordinated_departments")
    department = relationship("Department", back_populates="coordinator_assignments")
    
    def __repr__(self):
        return f"<CoordinatorDepartment coordinator={self.coordinator_id} department={self.department_id}>"
