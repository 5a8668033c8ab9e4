"""
Shared test fixtures
In-memory database, seeded employees and projects, bearer tokens
"""

import os
import tempfile

# Set test environment variables before the application is imported
_tmp_dir = tempfile.mkdtemp(prefix="claimflow-tests-")
os.environ["SECRET_KEY"] = "test-secret-key-for-claimflow"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIRECTORY"] = os.path.join(_tmp_dir, "uploads")
os.environ["LOG_DIRECTORY"] = os.path.join(_tmp_dir, "logs")
os.environ["LOG_FILE"] = os.path.join(_tmp_dir, "logs", "app.log")
os.environ["SMTP_USERNAME"] = "test@test.com"
os.environ["SMTP_PASSWORD"] = "test_password"
os.environ["FROM_EMAIL"] = "test@test.com"

import json
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from claimflow.main import app
from claimflow.config.database import Base, get_db
from claimflow.models.allowance_rate import AllowanceRate, AllowanceScope
from claimflow.models.employee import CoordinatorDepartment, Department, Designation, Employee, EmployeeRole
from claimflow.models.project import Project
from claimflow.services.email_service import email_service
from claimflow.utils.security import create_access_token

# Test database
engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def sent_emails():
    """Capture outgoing email instead of talking to SMTP"""
    with patch.object(email_service, "_send_email", return_value=True) as send:
        yield send


@pytest.fixture
def org(db):
    """
    Two departments with employees in every role

    The engineering coordinator is assigned to engineering; the operations
    coordinator has no assignment.
    """
    engineering = Department(name="Engineering")
    operations = Department(name="Operations")
    engineer = Designation(name="Engineer")
    manager = Designation(name="Manager")
    db.add_all([engineering, operations, engineer, manager])
    db.flush()

    def employee(code, first, role, department, designation=engineer):
        person = Employee(
            emp_code=code,
            first_name=first,
            last_name="Test",
            email=f"{first.lower()}@example.com",
            role=role,
            department_id=department.id,
            designation_id=designation.id,
        )
        db.add(person)
        return person

    people = SimpleNamespace(
        engineering=engineering,
        operations=operations,
        engineer=engineer,
        manager=manager,
        user=employee("EMP100", "Rahul", EmployeeRole.USER, engineering),
        ops_user=employee("EMP101", "Meera", EmployeeRole.USER, operations),
        coordinator=employee("EMP200", "Priya", EmployeeRole.COORDINATOR, engineering, manager),
        ops_coordinator=employee("EMP201", "Vikram", EmployeeRole.COORDINATOR, operations, manager),
        hr=employee("EMP300", "Arjun", EmployeeRole.HR, operations, manager),
        accounts=employee("EMP400", "Kavya", EmployeeRole.ACCOUNTS, operations, manager),
        admin=employee("EMP500", "Admin", EmployeeRole.ADMIN, operations, manager),
    )
    db.flush()

    people.assignment = CoordinatorDepartment(coordinator_id=people.coordinator.id, department_id=engineering.id)
    db.add(people.assignment)

    people.project = Project(code="PRJ-101", name="Metro Line Extension", site_location="Bengaluru", site_incharge_emp_code="EMP200")
    people.general = Project(code="general", name="General")
    db.add_all([people.project, people.general])

    db.add_all([
        AllowanceRate(designation_id=engineer.id, scope=AllowanceScope.DAILY_METRO, amount=Decimal("800")),
        AllowanceRate(designation_id=engineer.id, scope=AllowanceScope.SITE_FIXED, amount=Decimal("500")),
    ])
    db.commit()
    return people


def auth_headers(employee: Employee) -> dict:
    token = create_access_token({"sub": str(employee.id)})
    return {"Authorization": f"Bearer {token}"}


def claim_payload(fare="500", project_code="PRJ-101", **extra) -> dict:
    payload = {
        "project_code": project_code,
        "travel_data": [
            {
                "travel_date": "2024-05-02",
                "from_location": "Bengaluru",
                "to_location": "Mysuru",
                "mode_of_transport": "Bus",
                "fare_amount": fare,
            }
        ],
    }
    payload.update(extra)
    return payload


class Api:
    """Thin client for the expense endpoints"""

    def __init__(self, client: TestClient):
        self.client = client

    headers = staticmethod(auth_headers)
    payload = staticmethod(claim_payload)

    def submit(self, employee, payload=None, files=None):
        return self.client.post(
            "/api/expenses/",
            data={"data": json.dumps(payload or claim_payload())},
            files=files,
            headers=auth_headers(employee),
        )

    def edit(self, employee, claim_id, payload=None, files=None, **form):
        data = {"data": json.dumps(payload or claim_payload())}
        data.update({key: str(value).lower() for key, value in form.items()})
        return self.client.put(
            f"/api/expenses/{claim_id}",
            data=data,
            files=files,
            headers=auth_headers(employee),
        )

    def review(self, employee, claim_id, action="approve", comment=None):
        return self.client.post(
            f"/api/expenses/{claim_id}/review",
            json={"action": action, "comment": comment},
            headers=auth_headers(employee),
        )

    def get(self, employee, path):
        return self.client.get(path, headers=auth_headers(employee))


@pytest.fixture
def api(client):
    return Api(client)
