"""
Authentication Service
Resolves the bearer token to the acting employee
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from typing import Optional

from claimflow.config.database import get_db
from claimflow.models.employee import Employee
from claimflow.utils.security import decode_token
from claimflow.utils.logger import setup_logger

logger = setup_logger()

bearer_scheme = HTTPBearer(auto_error=False)


class AuthService:
    """Authentication service"""

    async def get_current_employee(
        self,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
        db: Session = Depends(get_db)
    ) -> Employee:
        """
        Get current authenticated employee from token

        Args:
            credentials: Bearer credentials
            db: Database session

        Returns:
            Employee: Current employee

        Raises:
            HTTPException: 401 if the token is missing or invalid, 403 if the account is inactive
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        if credentials is None:
            raise credentials_exception

        payload = decode_token(credentials.credentials)
        if payload is None or payload.get("type") != "access":
            logger.warning("Rejected invalid or expired token")
            raise credentials_exception

        employee_id = payload.get("sub")
        try:
            employee_id = int(employee_id)
        except (TypeError, ValueError):
            raise credentials_exception

        employee = db.query(Employee).filter(Employee.id == employee_id).first()
        if employee is None:
            raise credentials_exception

        if not employee.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Employee account is inactive"
            )

        return employee


# Create singleton instance
auth_service = AuthService()
