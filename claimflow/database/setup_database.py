"""
Database Setup Script
Creates all tables and seeds reference data for a working demo
"""

import sys
from pathlib import Path
from decimal import Decimal

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from claimflow.config.database import Base, SessionLocal, engine, unit_of_work
from claimflow.config.settings import settings
from claimflow.models.allowance_rate import AllowanceRate, AllowanceScope
from claimflow.models.employee import CoordinatorDepartment, Department, Designation, Employee, EmployeeRole
from claimflow.models.project import Project
from claimflow.models import claim, history  # noqa: F401
from claimflow.utils.security import create_access_token


DEPARTMENTS = ["Engineering", "Operations", "Human Resources", "Finance"]

DESIGNATIONS = ["Engineer", "Senior Engineer", "Manager"]

RATES = {
    "Engineer": {AllowanceScope.DAILY_METRO: "800", AllowanceScope.DAILY_NON_METRO: "600", AllowanceScope.SITE_FIXED: "500"},
    "Senior Engineer": {AllowanceScope.DAILY_METRO: "1000", AllowanceScope.DAILY_NON_METRO: "800", AllowanceScope.SITE_FIXED: "650"},
    "Manager": {AllowanceScope.DAILY_METRO: "1500", AllowanceScope.DAILY_NON_METRO: "1200", AllowanceScope.SITE_FIXED: "900"},
}

# (emp_code, first, last, email, role, department, designation)
EMPLOYEES = [
    ("EMP001", "System", "Administrator", "admin@claimflow.local", EmployeeRole.ADMIN, "Operations", "Manager"),
    ("EMP002", "Priya", "Nair", "coordinator@claimflow.local", EmployeeRole.COORDINATOR, "Engineering", "Manager"),
    ("EMP003", "Arjun", "Mehta", "hr@claimflow.local", EmployeeRole.HR, "Human Resources", "Manager"),
    ("EMP004", "Kavya", "Rao", "accounts@claimflow.local", EmployeeRole.ACCOUNTS, "Finance", "Manager"),
    ("EMP005", "Rahul", "Sharma", "rahul@claimflow.local", EmployeeRole.USER, "Engineering", "Engineer"),
    ("EMP006", "Sneha", "Iyer", "sneha@claimflow.local", EmployeeRole.USER, "Engineering", "Senior Engineer"),
]

PROJECTS = [
    (settings.GENERAL_PROJECT_CODE, "General", None, None),
    ("PRJ-101", "Metro Line Extension", "Bengaluru", "EMP002"),
    ("PRJ-202", "Substation Upgrade", "Pune", "EMP002"),
]


def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Database tables created successfully")


def seed_reference_data():
    """Seed departments, designations, employees, projects, rates and assignments"""
    print("\nSeeding reference data...")
    db = SessionLocal()

    try:
        if db.query(Employee).first():
            print("✓ Employees already exist, skipping...")
            return

        with unit_of_work(db):
            departments = {name: Department(name=name) for name in DEPARTMENTS}
            designations = {name: Designation(name=name) for name in DESIGNATIONS}
            db.add_all(list(departments.values()) + list(designations.values()))
            db.flush()

            employees = {}
            for emp_code, first, last, email, role, department, designation in EMPLOYEES:
                employees[emp_code] = Employee(
                    emp_code=emp_code,
                    first_name=first,
                    last_name=last,
                    email=email,
                    role=role,
                    department_id=departments[department].id,
                    designation_id=designations[designation].id,
                )
            db.add_all(employees.values())

            for code, name, site_location, site_incharge in PROJECTS:
                db.add(Project(code=code, name=name, site_location=site_location, site_incharge_emp_code=site_incharge))

            for designation, scopes in RATES.items():
                for scope, amount in scopes.items():
                    db.add(AllowanceRate(designation_id=designations[designation].id, scope=scope, amount=Decimal(amount)))

            db.flush()
            db.add(CoordinatorDepartment(
                coordinator_id=employees["EMP002"].id,
                department_id=departments["Engineering"].id,
            ))

        print(f"✓ Seeded {len(EMPLOYEES)} employees, {len(PROJECTS)} projects")

        print("\nDevelopment bearer tokens:")
        for employee in db.query(Employee).order_by(Employee.id):
            token = create_access_token({"sub": str(employee.id)})
            print(f"  {employee.emp_code} ({employee.role.value}): {token}")

    finally:
        db.close()


def main():
    """Main setup function"""
    print("=" * 60)
    print(f"{settings.APP_NAME} - Database Setup")
    print("=" * 60)

    create_tables()
    seed_reference_data()

    print("\n" + "=" * 60)
    print("✓ Database setup completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
